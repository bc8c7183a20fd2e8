from feed_service.db import db

class User(db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)

    # posts authored by this user, oldest first
    posts = db.relationship(
        "Post",
        back_populates="creator",
        order_by="Post.created_at",
        lazy="select"
    )
