from marshmallow import EXCLUDE, ValidationError, pre_load, validates

from feed_service.extensions.extensions import ma


class CreatorSchema(ma.Schema):
    id = ma.Int()
    name = ma.Str()


class PostSchema(ma.Schema):
    id = ma.Int()
    title = ma.Str()
    content = ma.Str()
    image_url = ma.Str(data_key="imageUrl")
    creator = ma.Nested(CreatorSchema)
    created_at = ma.DateTime(data_key="createdAt")
    updated_at = ma.DateTime(data_key="updatedAt")


class PostInputSchema(ma.Schema):
    """Title and content submitted when creating or editing a post."""

    class Meta:
        unknown = EXCLUDE

    title = ma.Str(required=True)
    content = ma.Str(required=True)

    def __init__(self, title_min_length=5, content_min_length=5, **kwargs):
        super().__init__(**kwargs)
        self.title_min_length = title_min_length
        self.content_min_length = content_min_length

    @pre_load
    def strip_text(self, data, **kwargs):
        return {
            key: value.strip() if isinstance(value, str) else value
            for key, value in data.items()
        }

    @validates("title")
    def validate_title(self, value, **kwargs):
        if len(value) < self.title_min_length:
            raise ValidationError(
                f"Title must be at least {self.title_min_length} characters long."
            )

    @validates("content")
    def validate_content(self, value, **kwargs):
        if len(value) < self.content_min_length:
            raise ValidationError(
                f"Content must be at least {self.content_min_length} characters long."
            )


post_schema = PostSchema()
posts_schema = PostSchema(many=True)
creator_schema = CreatorSchema()
