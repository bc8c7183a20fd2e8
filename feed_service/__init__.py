import logging

from flask import Flask

from feed_service.config import Config
from feed_service.db import db
from feed_service.errors import register_error_handlers, register_jwt_handlers
from feed_service.extensions.extensions import jwt, ma, socketio


def _configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("feed_service").setLevel(level)
    app.logger.setLevel(level)


def create_app(config_overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    _configure_logging(app)

    db.init_app(app)
    jwt.init_app(app)
    ma.init_app(app)

    from feed_service.socket_events import register_socket_events

    # handlers registered before init_app are replayed onto every new server
    register_socket_events()
    socketio.init_app(
        app,
        cors_allowed_origins=app.config["CORS_ALLOWED_ORIGINS"],
        message_queue=app.config.get("SOCKETIO_MESSAGE_QUEUE"),
    )

    register_error_handlers(app)
    register_jwt_handlers(jwt)

    from feed_service import models  # noqa: F401
    from feed_service.routes.auth_routes import auth_bp
    from feed_service.routes.feed_routes import feed_bp
    from feed_service.services.broadcaster import SocketIOBroadcaster
    from feed_service.services.feed_service import FeedService
    from feed_service.services.image_store import build_image_store

    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(feed_bp, url_prefix="/feed")

    app.extensions["feed_service"] = FeedService(
        image_store=build_image_store(app.config),
        broadcaster=SocketIOBroadcaster(socketio),
        per_page=app.config["POSTS_PER_PAGE"],
        allowed_image_types=app.config["ALLOWED_IMAGE_MIME_TYPES"],
        title_min_length=app.config["POST_TITLE_MIN_LENGTH"],
        content_min_length=app.config["POST_CONTENT_MIN_LENGTH"],
    )

    with app.app_context():
        db.create_all()

    app.logger.info(
        "Feed service ready (image storage: %s)",
        app.config["IMAGE_STORAGE_BACKEND"],
    )
    return app
