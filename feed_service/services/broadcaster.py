POSTS_CHANNEL = "posts"


class Broadcaster:
    def publish(self, channel: str, payload: dict) -> None:
        raise NotImplementedError


class SocketIOBroadcaster(Broadcaster):
    """Fans an event out to every client connected to the default namespace."""

    def __init__(self, socketio):
        self.socketio = socketio

    def publish(self, channel: str, payload: dict) -> None:
        self.socketio.emit(channel, payload)
