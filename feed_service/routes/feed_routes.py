from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import get_jwt_identity, jwt_required

from feed_service.errors import AuthenticationError


feed_bp = Blueprint("feed", __name__)


def _feed_service():
    return current_app.extensions["feed_service"]


def _caller_id():
    identity = get_jwt_identity()
    try:
        return int(identity)
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token identity")


def _post_form():
    if request.mimetype == "application/json":
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form


@feed_bp.route("/posts", methods=["GET"])
def list_posts():
    page = request.args.get("page", default=1, type=int)

    result = _feed_service().list_posts(page)
    return jsonify({
        "message": "Posts fetched successfully",
        "posts": result["posts"],
        "totalItems": result["total_items"]
    }), 200


@feed_bp.route("/post", methods=["POST"])
@jwt_required()
def create_post():
    form = _post_form()

    result = _feed_service().create_post(
        title=form.get("title"),
        content=form.get("content"),
        image_file=request.files.get("image"),
        author_id=_caller_id(),
    )
    return jsonify({
        "message": "Post created successfully!",
        "post": result["post"],
        "creator": result["creator"]
    }), 201


@feed_bp.route("/post/<int:post_id>", methods=["GET"])
def get_post(post_id):
    post = _feed_service().get_post(post_id)
    return jsonify({"message": "Post fetched", "post": post}), 200


@feed_bp.route("/post/<int:post_id>", methods=["PUT"])
@jwt_required()
def update_post(post_id):
    form = _post_form()

    post = _feed_service().update_post(
        post_id,
        title=form.get("title"),
        content=form.get("content"),
        caller_id=_caller_id(),
        image_file=request.files.get("image"),
        image_ref=form.get("image"),
    )
    return jsonify({"message": "Post updated!", "post": post}), 201


@feed_bp.route("/post/<int:post_id>", methods=["DELETE"])
@jwt_required()
def delete_post(post_id):
    result = _feed_service().delete_post(post_id, caller_id=_caller_id())
    return jsonify(result), 200
