"""Storage for the images attached to posts.

A post keeps a relative reference (``images/<uuid>.<ext>``) into one of the
backends below. Both resolve the same reference format so switching backend
only affects where the bytes live.
"""
import logging
import os
import uuid
from threading import Lock

import urllib3
from minio import Minio
from minio.error import S3Error

from feed_service.errors import ImageStoreError


logger = logging.getLogger(__name__)

IMAGE_FOLDER = "images"

_MISSING_OBJECT_CODES = {"NoSuchKey", "NoSuchObject", "NoSuchBucket"}


def extension_for_mimetype(mimetype: str) -> str:
    mapping = {
        "image/jpeg": "jpeg",
        "image/jpg": "jpg",
        "image/png": "png",
        "image/webp": "webp",
        "image/gif": "gif",
    }
    return mapping.get(mimetype, mimetype.split("/")[-1])


def _build_image_name(file_storage) -> str:
    mimetype = getattr(file_storage, "mimetype", None) or "application/octet-stream"
    return f"{IMAGE_FOLDER}/{uuid.uuid4()}.{extension_for_mimetype(mimetype)}"


def _get_stream_and_length(file_storage):
    stream = getattr(file_storage, "stream", file_storage)
    try:
        stream.seek(0, 2)
        length = stream.tell()
        stream.seek(0)
        return stream, length
    except (AttributeError, OSError):
        return stream, -1


class ImageStore:
    """Interface shared by the image backends."""

    def save(self, file_storage) -> str:
        raise NotImplementedError

    def delete(self, image_url: str) -> bool:
        """Remove ``image_url``; returns False when it was already gone."""
        raise NotImplementedError

    def exists(self, image_url: str) -> bool:
        raise NotImplementedError


class LocalImageStore(ImageStore):
    def __init__(self, root_dir: str):
        self.root_dir = os.path.abspath(root_dir)
        self.image_dir = os.path.join(self.root_dir, IMAGE_FOLDER)

    def _resolve(self, image_url: str | None) -> str | None:
        if not image_url:
            return None
        absolute_path = os.path.abspath(os.path.join(self.root_dir, image_url))
        if not absolute_path.startswith(self.image_dir + os.sep):
            return None
        return absolute_path

    def save(self, file_storage) -> str:
        image_url = _build_image_name(file_storage)
        absolute_path = os.path.join(self.root_dir, image_url)

        try:
            os.makedirs(self.image_dir, exist_ok=True)
            stream = getattr(file_storage, "stream", None)
            if stream is not None and hasattr(stream, "seek"):
                stream.seek(0)
            file_storage.save(absolute_path)
        except OSError as e:
            raise ImageStoreError("Image storage is unavailable") from e

        logger.debug("Stored image %s", image_url)
        return image_url

    def delete(self, image_url: str) -> bool:
        absolute_path = self._resolve(image_url)
        if absolute_path is None:
            logger.warning("Refusing to delete image outside the image folder: %s", image_url)
            return False

        try:
            os.remove(absolute_path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise ImageStoreError("Could not delete image") from e

        logger.debug("Deleted image %s", image_url)
        return True

    def exists(self, image_url: str) -> bool:
        absolute_path = self._resolve(image_url)
        return absolute_path is not None and os.path.isfile(absolute_path)


_minio_client = None
_minio_signature = None
_minio_lock = Lock()


def _minio_signature_for(config):
    return (
        config["MINIO_ENDPOINT"],
        config["MINIO_ACCESS_KEY"],
        config["MINIO_SECRET_KEY"],
        config["MINIO_SECURE"],
        config["MINIO_CONNECT_TIMEOUT"],
        config["MINIO_READ_TIMEOUT"],
        config.get("MINIO_HTTP_POOL_MAXSIZE", 32),
    )


def get_minio_client(config):
    """Return a shared MinIO client, rebuilt whenever the connection settings change."""
    global _minio_client, _minio_signature

    signature = _minio_signature_for(config)
    with _minio_lock:
        if _minio_client is not None and _minio_signature == signature:
            return _minio_client

        http_client = urllib3.PoolManager(
            timeout=urllib3.Timeout(
                connect=config["MINIO_CONNECT_TIMEOUT"],
                read=config["MINIO_READ_TIMEOUT"],
            ),
            retries=False,
            maxsize=config.get("MINIO_HTTP_POOL_MAXSIZE", 32),
        )
        _minio_client = Minio(
            config["MINIO_ENDPOINT"],
            access_key=config["MINIO_ACCESS_KEY"],
            secret_key=config["MINIO_SECRET_KEY"],
            secure=config["MINIO_SECURE"],
            http_client=http_client,
        )
        _minio_signature = signature
        return _minio_client


class MinioImageStore(ImageStore):
    def __init__(self, bucket: str, client_factory):
        self.bucket = bucket
        self._client_factory = client_factory
        self._bucket_ready = False

    def _client(self):
        return self._client_factory()

    def _ensure_bucket(self, minio):
        if self._bucket_ready:
            return
        if not minio.bucket_exists(bucket_name=self.bucket):
            minio.make_bucket(bucket_name=self.bucket)
        self._bucket_ready = True

    def save(self, file_storage) -> str:
        image_url = _build_image_name(file_storage)
        stream, length = _get_stream_and_length(file_storage)
        upload_kwargs = {
            "bucket_name": self.bucket,
            "object_name": image_url,
            "data": stream,
            "length": length,
            "content_type": getattr(file_storage, "mimetype", None) or "application/octet-stream",
        }
        if length == -1:
            upload_kwargs["part_size"] = 10 * 1024 * 1024

        try:
            minio = self._client()
            self._ensure_bucket(minio)
            minio.put_object(**upload_kwargs)
        except (S3Error, urllib3.exceptions.HTTPError, OSError) as e:
            raise ImageStoreError("Image storage is unavailable") from e

        logger.debug("Uploaded image %s to bucket %s", image_url, self.bucket)
        return image_url

    def delete(self, image_url: str) -> bool:
        if not self.exists(image_url):
            return False

        try:
            self._client().remove_object(bucket_name=self.bucket, object_name=image_url)
        except (S3Error, urllib3.exceptions.HTTPError, OSError) as e:
            raise ImageStoreError("Could not delete image") from e

        logger.debug("Removed image %s from bucket %s", image_url, self.bucket)
        return True

    def exists(self, image_url: str) -> bool:
        if not image_url:
            return False
        try:
            self._client().stat_object(bucket_name=self.bucket, object_name=image_url)
        except S3Error as e:
            if e.code in _MISSING_OBJECT_CODES:
                return False
            raise ImageStoreError("Image storage is unavailable") from e
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise ImageStoreError("Image storage is unavailable") from e
        return True


def build_image_store(config) -> ImageStore:
    backend = config.get("IMAGE_STORAGE_BACKEND", "local")
    if backend == "local":
        return LocalImageStore(config["UPLOAD_FOLDER"])
    if backend == "minio":
        return MinioImageStore(
            config["MINIO_BUCKET"],
            client_factory=lambda: get_minio_client(config),
        )
    raise ValueError(f"Unknown image storage backend: {backend}")
