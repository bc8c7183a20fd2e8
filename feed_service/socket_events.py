import logging

from flask import request
from flask_jwt_extended import decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from flask_socketio import emit
from jwt.exceptions import PyJWTError

from feed_service.extensions.extensions import socketio


logger = logging.getLogger(__name__)

_registered = False
_connected_clients = {}


def _extract_access_token(auth):
    if isinstance(auth, dict):
        token = auth.get("token") or auth.get("access_token")
        if token:
            return token

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip()

    return request.args.get("token")


def connected_client_count():
    return len(_connected_clients)


def register_socket_events():
    """Attach the connection handlers; feed events are pushed by the broadcaster."""
    global _registered
    if _registered:
        return

    @socketio.on("connect")
    def handle_connect(auth=None):
        user_id = None
        token = _extract_access_token(auth)
        if token:
            try:
                claims = decode_token(token)
            except (PyJWTError, JWTExtendedException):
                logger.info("Rejected socket connection with an invalid token")
                return False
            user_id = claims.get("sub")

        _connected_clients[request.sid] = user_id
        logger.debug("Socket client %s connected (user=%s)", request.sid, user_id)
        emit("connected", {"userId": user_id})

    @socketio.on("disconnect")
    def handle_disconnect(*args):
        _connected_clients.pop(request.sid, None)

    _registered = True
