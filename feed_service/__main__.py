import os

from feed_service import create_app
from feed_service.extensions.extensions import socketio


app = create_app()


if __name__ == "__main__":
    socketio.run(
        app,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8080")),
    )
