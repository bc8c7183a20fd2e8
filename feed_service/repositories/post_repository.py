from sqlalchemy.orm import joinedload

from feed_service.db import db
from feed_service.models.post_model import Post


def count_posts():
    return Post.query.count()


def get_page(page, per_page):
    return (
        Post.query
        .options(joinedload(Post.creator))
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )


def get_by_id(post_id):
    return db.session.get(Post, post_id, options=[joinedload(Post.creator)])


def create_post(title, content, image_url, creator):
    post = Post(
        title=title,
        content=content,
        image_url=image_url,
        creator_id=creator.id
    )
    db.session.add(post)
    db.session.flush()

    creator.posts.append(post)
    return post


def delete_post(post, owner):
    if post in owner.posts:
        owner.posts.remove(post)
    db.session.delete(post)
