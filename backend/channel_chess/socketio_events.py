from flask_socketio import join_room, leave_room, emit
from flask import current_app
from channel_chess.models import MAX_SEQUENCE_NUMBER, GameSession
from channel_chess.services.sessions.digest import move_digest


RELAY_FIELDS = ('session_code', 'sequence_number', 'prior_transcript', 'move', 'signature')


def _room(session_code: str) -> str:
    return f"session:{session_code.upper()}"


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_session(data):
    session_code = (data or {}).get('session_code')
    if not session_code:
        emit('error', {'message': 'session_code is required'})
        return
    room = _room(session_code)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_session(data):
    session_code = (data or {}).get('session_code')
    if not session_code:
        emit('error', {'message': 'session_code is required'})
        return
    room = _room(session_code)
    leave_room(room)
    emit('left', {'room': room})


def handle_relay_move(data):
    """Forward a signed move to the opponent without touching the ledger.

    This is the off-path channel: players keep exchanging signed moves here
    and only submit one to /signed-move when they need to checkpoint or
    dispute. The relay checks the signature so clients can ignore forgeries,
    but never changes session state.
    """
    data = data or {}
    missing = [f for f in RELAY_FIELDS if f not in data]
    if missing:
        emit('error', {'message': f"missing fields: {', '.join(missing)}"})
        return
    sequence_number = data['sequence_number']
    if (not isinstance(sequence_number, int) or isinstance(sequence_number, bool)
            or not 0 <= sequence_number <= MAX_SEQUENCE_NUMBER):
        emit('error', {'message': 'sequence_number must be a non-negative 64-bit integer'})
        return
    session = GameSession.query.filter_by(code=str(data['session_code']).upper()).first()
    if not session:
        emit('error', {'message': 'session not found'})
        return

    signer = session.seat_for_sequence(sequence_number)
    verified = False
    if signer and isinstance(data['signature'], str):
        digest = move_digest(session.code, sequence_number, str(data['prior_transcript']), str(data['move']))
        verified = current_app.extensions['signature_verifier'].verify(digest, data['signature'], signer)
    payload = {f: data[f] for f in RELAY_FIELDS}
    payload['session_code'] = session.code
    payload['signer'] = signer
    payload['verified'] = verified
    emit('signed_move', payload, to=_room(session.code), include_self=False)


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from channel_chess import socketio

    handlers = {
        'connect': handle_connect,
        'join_session': handle_join_session,
        'leave_session': handle_leave_session,
        'relay_move': handle_relay_move,
        'ping': handle_ping,
    }
    for event, handler in handlers.items():
        socketio.on_event(event, handler, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace='/')
