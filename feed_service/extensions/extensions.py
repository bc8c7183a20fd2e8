from flask_jwt_extended import JWTManager
from flask_marshmallow import Marshmallow
from flask_socketio import SocketIO


jwt = JWTManager()
ma = Marshmallow()
socketio = SocketIO()
