"""Post lifecycle for the feed.

``FeedService`` ties the post/user tables to the image store and to the
broadcaster that notifies connected clients. Every mutating operation takes
the authenticated caller id explicitly.
"""
import logging

from marshmallow import ValidationError as SchemaValidationError
from sqlalchemy.exc import SQLAlchemyError

from feed_service.db import db
from feed_service.errors import (
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from feed_service.repositories import post_repository, user_repository
from feed_service.schemas.post_schema import PostInputSchema, creator_schema, post_schema, posts_schema
from feed_service.services.broadcaster import POSTS_CHANNEL


logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 2


def normalize_page(page) -> int:
    try:
        page = int(page)
    except (TypeError, ValueError):
        return 1
    return page if page >= 1 else 1


class FeedService:
    def __init__(
        self,
        image_store,
        broadcaster,
        per_page: int = DEFAULT_PER_PAGE,
        allowed_image_types=None,
        title_min_length: int = 5,
        content_min_length: int = 5,
    ):
        self.image_store = image_store
        self.broadcaster = broadcaster
        self.per_page = per_page
        self.allowed_image_types = set(allowed_image_types) if allowed_image_types else None
        self.input_schema = PostInputSchema(
            title_min_length=title_min_length,
            content_min_length=content_min_length,
        )

    def _validate_input(self, title, content):
        data = {
            key: value
            for key, value in (("title", title), ("content", content))
            if value is not None
        }
        try:
            return self.input_schema.load(data)
        except SchemaValidationError as e:
            raise ValidationError(
                "Validation failed, entered data is incorrect.",
                data=e.messages,
            ) from e

    def _validate_image_file(self, image_file):
        if self.allowed_image_types is None:
            return
        mimetype = getattr(image_file, "mimetype", None) or ""
        if mimetype not in self.allowed_image_types:
            raise ValidationError(f"Unsupported image type: {mimetype or 'unknown'}")

    def _commit(self):
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise InternalError("Could not save changes.") from e

    def _publish(self, action, post):
        try:
            self.broadcaster.publish(POSTS_CHANNEL, {"action": action, "post": post})
        except Exception:
            logger.exception("Broadcast of %s event failed", action)

    def _discard_image(self, image_url):
        try:
            self.image_store.delete(image_url)
        except Exception:
            logger.warning("Could not remove image %s", image_url, exc_info=True)

    def _get_post_or_404(self, post_id):
        post = post_repository.get_by_id(post_id)
        if post is None:
            raise NotFoundError("No post found")
        return post

    @staticmethod
    def _ensure_owner(post, caller_id):
        if post.creator is None or str(post.creator.id) != str(caller_id):
            raise ForbiddenError("Not authorized!")

    def list_posts(self, page=1, per_page=None):
        page = normalize_page(page)
        per_page = per_page or self.per_page

        total_items = post_repository.count_posts()
        if (page - 1) * per_page >= total_items:
            posts = []
        else:
            posts = post_repository.get_page(page, per_page)
        return {
            "posts": posts_schema.dump(posts),
            "total_items": total_items,
        }

    def create_post(self, title, content, image_file, author_id):
        data = self._validate_input(title, content)
        if not image_file:
            raise ValidationError("No image provided.")
        self._validate_image_file(image_file)

        author = user_repository.get_by_id(author_id)
        if author is None:
            raise NotFoundError("User not found")

        image_url = self.image_store.save(image_file)
        try:
            post = post_repository.create_post(
                title=data["title"],
                content=data["content"],
                image_url=image_url,
                creator=author,
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            self._discard_image(image_url)
            raise InternalError("Could not save the post.") from e

        logger.info("User %s created post %s", author.id, post.id)

        post_payload = post_schema.dump(post)
        creator = creator_schema.dump(author)
        self._publish("create", {**post_payload, "creator": creator})
        return {"post": post_payload, "creator": creator}

    def get_post(self, post_id):
        return post_schema.dump(self._get_post_or_404(post_id))

    def update_post(self, post_id, title, content, caller_id, image_file=None, image_ref=None):
        data = self._validate_input(title, content)
        if not image_file and not image_ref:
            raise ValidationError("No file picked.")
        if image_file:
            self._validate_image_file(image_file)

        post = self._get_post_or_404(post_id)
        self._ensure_owner(post, caller_id)

        if image_file:
            image_url = self.image_store.save(image_file)
        else:
            image_url = image_ref
            if image_url != post.image_url and not self.image_store.exists(image_url):
                raise ValidationError("Image not found.")

        previous_image_url = post.image_url
        post.title = data["title"]
        post.content = data["content"]
        post.image_url = image_url
        try:
            self._commit()
        except InternalError:
            if image_file:
                self._discard_image(image_url)
            raise

        if image_url != previous_image_url:
            self._discard_image(previous_image_url)

        logger.info("User %s updated post %s", caller_id, post.id)

        post_payload = post_schema.dump(post)
        self._publish("update", post_payload)
        return post_payload

    def delete_post(self, post_id, caller_id):
        post = self._get_post_or_404(post_id)
        self._ensure_owner(post, caller_id)

        deleted_id = post.id
        image_url = post.image_url
        post_repository.delete_post(post, post.creator)
        self._commit()

        self._discard_image(image_url)

        logger.info("User %s deleted post %s", caller_id, deleted_id)

        self._publish("delete", deleted_id)
        return {"message": "Post deleted successfully"}
