# medvault_pkg/sockets.py
from flask import current_app, request, session
from flask_socketio import SocketIO, join_room, leave_room
from .utils import load_user_from_token

# Create the SocketIO instance but don't attach it to the app yet
socketio = SocketIO(cors_allowed_origins="*") # Use a specific origin in production

CHANGE_KINDS = ('insert', 'update', 'delete')


def user_room(user_id):
    return f"user:{user_id}"


@socketio.on('connect')
def handle_connect(auth=None):
    """
    Handles a new client connection.
    The client must provide a valid access token to be placed in its private room.
    """
    access_token = request.args.get('token') or (auth or {}).get('token')
    if not access_token:
        return False # Reject connection if no token is provided

    user = load_user_from_token(access_token)
    if isinstance(user, str):
        current_app.logger.info(f"[Realtime] Connection rejected: {user}")
        return False

    session['socket_user_id'] = user.id
    join_room(user_room(user.id))
    current_app.logger.info(f"[Realtime] user_id {user.id} subscribed to {user_room(user.id)}")


@socketio.on('unsubscribe')
def handle_unsubscribe():
    user_id = session.get('socket_user_id')
    if user_id is not None:
        leave_room(user_room(user_id))
        current_app.logger.info(f"[Realtime] user_id {user_id} unsubscribed")


@socketio.on('subscribe')
def handle_subscribe():
    user_id = session.get('socket_user_id')
    if user_id is not None:
        join_room(user_room(user_id))


@socketio.on('disconnect')
def handle_disconnect():
    # Socket.IO removes the connection from its rooms on disconnect.
    current_app.logger.info(f"[Realtime] Client disconnected (user_id {session.get('socket_user_id')})")


def publish_change(table, row_id, kind, recipient_user_ids, data=None):
    """
    Sends a typed change event to each recipient's room.
    Clients apply the row-level change instead of re-fetching the whole table.
    """
    if kind not in CHANGE_KINDS:
        raise ValueError(f"Unknown change kind: {kind}")
    payload = {"table": table, "id": row_id, "kind": kind, "data": data}
    for user_id in sorted({uid for uid in recipient_user_ids if uid is not None}):
        socketio.emit('record_changed', payload, to=user_room(user_id))


def publish_auth_event(event, user_id):
    """Session-change channel: SIGNED_IN, SIGNED_OUT, USER_UPDATED."""
    socketio.emit('auth_state_changed', {"event": event, "user_id": user_id}, to=user_room(user_id))
