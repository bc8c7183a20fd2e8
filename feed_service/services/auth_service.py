import logging

from flask_jwt_extended import create_access_token, create_refresh_token
from marshmallow import ValidationError as SchemaValidationError
from werkzeug.security import check_password_hash, generate_password_hash

from feed_service.errors import AuthenticationError, ValidationError
from feed_service.repositories import user_repository
from feed_service.schemas.user_schema import SignupSchema


logger = logging.getLogger(__name__)

signup_schema = SignupSchema()


def _require_non_empty_string(value):
    return isinstance(value, str) and value.strip()


def _issue_tokens(user):
    identity = str(user.id)
    return {
        "token": create_access_token(identity=identity),
        "refreshToken": create_refresh_token(identity=identity),
        "userId": user.id,
    }


def register(email, name, password):
    try:
        data = signup_schema.load({"email": email, "name": name, "password": password})
    except SchemaValidationError as e:
        raise ValidationError("Validation failed.", data=e.messages) from e

    if user_repository.get_by_email(data["email"]):
        raise ValidationError(
            "Validation failed.",
            data={"email": ["E-Mail address already exists!"]},
        )

    user = user_repository.create_user(
        email=data["email"],
        name=data["name"],
        password_hash=generate_password_hash(data["password"]),
    )
    logger.info("Registered user %s", user.id)
    return user


def login(email, password):
    if not _require_non_empty_string(email) or not _require_non_empty_string(password):
        raise AuthenticationError("Invalid credentials")

    user = user_repository.get_by_email(email.strip().lower())
    if not user or not check_password_hash(user.password_hash, password):
        raise AuthenticationError("Invalid credentials")

    return _issue_tokens(user)


def refresh_access_token(identity):
    return {
        "token": create_access_token(identity=identity)
    }
