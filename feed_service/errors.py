"""Classified errors raised by the feed and the handlers that render them.

Every failure that reaches a client is a ``FeedError`` carrying a message and
a status code. Anything else is treated as an internal error.
"""
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from feed_service.db import db


logger = logging.getLogger(__name__)


class FeedError(Exception):
    status_code = 500

    def __init__(self, message, status_code=None, data=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.data = data

    def to_dict(self):
        payload = {"message": self.message}
        if self.data:
            payload["data"] = self.data
        return payload


class ValidationError(FeedError):
    status_code = 422


class AuthenticationError(FeedError):
    status_code = 401


class ForbiddenError(FeedError):
    status_code = 403


class NotFoundError(FeedError):
    status_code = 404


class InternalError(FeedError):
    status_code = 500


class ImageStoreError(InternalError):
    pass


def error_response(message, status_code, data=None):
    payload = {"message": message}
    if data:
        payload["data"] = data
    return jsonify(payload), status_code


def register_error_handlers(app):
    @app.errorhandler(FeedError)
    def handle_feed_error(error):
        if error.status_code >= 500:
            logger.error("Request failed: %s", error.message, exc_info=error)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return error_response(error.description, error.code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception("Unhandled error while processing request")
        db.session.rollback()
        return error_response("An unexpected error occurred.", 500)


def register_jwt_handlers(jwt):
    @jwt.unauthorized_loader
    def missing_token(reason):
        return error_response(reason, 401)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return error_response(reason, 401)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return error_response("Token has expired", 401)
