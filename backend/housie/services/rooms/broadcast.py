class SocketIOBroadcaster:
    """Delivers events to one connection or to every connection in a room.

    Uses ``socketio.emit`` directly so it works from handlers and from
    background tasks alike.
    """

    def __init__(self, socketio, namespace='/ws'):
        self.socketio = socketio
        self.namespace = namespace

    def to_room(self, room_id, event, *args):
        self.socketio.emit(event, *args, to=room_id, namespace=self.namespace)

    def to_sid(self, sid, event, *args):
        if sid is None:
            return
        self.socketio.emit(event, *args, to=sid, namespace=self.namespace)

    def enter(self, sid, room_id):
        if sid is None:
            return
        self.socketio.server.enter_room(sid, room_id, namespace=self.namespace)
