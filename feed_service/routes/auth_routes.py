from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity

from feed_service.errors import ValidationError
from feed_service.services import auth_service



auth_bp = Blueprint("auth", __name__)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON body")
    return data


@auth_bp.route("/signup", methods=["PUT", "POST"])
def signup():
    data = _json_body()

    user = auth_service.register(
        data.get("email"),
        data.get("name"),
        data.get("password"),
    )
    return jsonify({"message": "User created!", "userId": user.id}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = _json_body()

    tokens = auth_service.login(
        data.get("email"),
        data.get("password")
    )
    return jsonify(tokens), 200


@auth_bp.route("/refresh", methods=["POST"])
@jwt_required(refresh=True)
def refresh_token():
    identity = get_jwt_identity()
    return jsonify(auth_service.refresh_access_token(identity)), 200
