from feed_service.models.post_model import Post
from feed_service.models.user_model import User
