import os
from datetime import timedelta

from dotenv import load_dotenv


load_dotenv()


BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///feed.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(
        minutes=int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_MINUTES", "60"))
    )
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(
        days=int(os.getenv("JWT_REFRESH_TOKEN_EXPIRES_DAYS", "30"))
    )

    POSTS_PER_PAGE = int(os.getenv("POSTS_PER_PAGE", "2"))
    POST_TITLE_MIN_LENGTH = int(os.getenv("POST_TITLE_MIN_LENGTH", "5"))
    POST_CONTENT_MIN_LENGTH = int(os.getenv("POST_CONTENT_MIN_LENGTH", "5"))

    # "local" keeps images under UPLOAD_FOLDER, "minio" pushes them to MINIO_BUCKET.
    IMAGE_STORAGE_BACKEND = os.getenv("IMAGE_STORAGE_BACKEND", "local").strip().lower()
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", BASE_DIR)
    ALLOWED_IMAGE_MIME_TYPES = set(
        _env_list(
            "ALLOWED_IMAGE_MIME_TYPES",
            ["image/png", "image/jpeg", "image/jpg", "image/webp"],
        )
    )
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(8 * 1024 * 1024)))

    MINIO_ENDPOINT = os.getenv("MINIO_ENDPOINT", "localhost:9000")
    MINIO_ACCESS_KEY = os.getenv("MINIO_ACCESS_KEY", "admin")
    MINIO_SECRET_KEY = os.getenv("MINIO_SECRET_KEY", "supersecret")
    MINIO_BUCKET = os.getenv("MINIO_BUCKET", "feed-images")
    MINIO_SECURE = _env_bool("MINIO_SECURE", False)
    MINIO_CONNECT_TIMEOUT = float(os.getenv("MINIO_CONNECT_TIMEOUT", "5"))
    MINIO_READ_TIMEOUT = float(os.getenv("MINIO_READ_TIMEOUT", "20"))
    MINIO_HTTP_POOL_MAXSIZE = int(os.getenv("MINIO_HTTP_POOL_MAXSIZE", "32"))

    # Credentialed CORS cannot use a wildcard origin.
    CORS_ALLOWED_ORIGINS = [
        origin for origin in _env_list(
            "CORS_ALLOWED_ORIGINS",
            ["http://localhost:3000", "http://127.0.0.1:3000"],
        )
        if origin != "*"
    ]

    # e.g. redis://localhost:6379/0 to fan broadcasts out across worker processes
    # (needs the `queue` extra)
    SOCKETIO_MESSAGE_QUEUE = os.getenv("SOCKETIO_MESSAGE_QUEUE") or None

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
