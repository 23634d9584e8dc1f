from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from channel_chess import db, socketio
from channel_chess.models import MAX_SEQUENCE_NUMBER, GameSession, Phase
from channel_chess.services.sessions import lifecycle, moves
from channel_chess.services.sessions.digest import move_digest
from channel_chess.services.sessions.errors import InvalidInput
from channel_chess.services.sessions.scheduler import schedule_timeout_watch
from channel_chess.services.sessions.schemas import GameStateModel, SignedMoveModel
from sqlalchemy import or_


sessions = Blueprint('sessions', __name__)


def _load_session(code: str, for_update: bool = False) -> GameSession:
    query = GameSession.query.filter_by(code=code.upper())
    if for_update:
        # Serialize writers on this session row (no-op on SQLite)
        query = query.with_for_update()
    return query.first_or_404()


def _verifier():
    return current_app.extensions['signature_verifier']


def _commit_and_notify(session: GameSession):
    db.session.commit()
    socketio.emit('state_update', {'session_code': session.code}, to=f"session:{session.code}", namespace='/ws')
    if session.phase == Phase.ACTIVE.value:
        schedule_timeout_watch(current_app._get_current_object(), session.id)
    return jsonify(session.to_dict())


@sessions.route('', methods=['POST'])
@login_required
def create_session():
    """
    Opens a session with the caller as player1; the deposit must equal the stake.
    """
    data = request.get_json(silent=True) or {}
    timeout_interval = data.get('timeout_interval', current_app.config.get('DEFAULT_TIMEOUT_INTERVAL_SEC', 600))
    session = lifecycle.create_session(
        current_user.address,
        data.get('stake'),
        timeout_interval,
        data.get('deposit'),
    )
    db.session.commit()
    return jsonify(session.to_dict()), 201


@sessions.route('/active', methods=['GET'])
@login_required
def get_active_sessions():
    caller = current_user.address
    open_phases = [Phase.AWAITING_OPPONENT.value, Phase.ACTIVE.value]
    rows = (
        GameSession.query
        .filter(or_(GameSession.player1 == caller, GameSession.player2 == caller))
        .filter(GameSession.phase.in_(open_phases))
        .order_by(GameSession.id)
        .all()
    )
    return jsonify([s.to_dict() for s in rows])


@sessions.route('/<string:code>', methods=['GET'])
def get_session(code):
    return jsonify(_load_session(code).to_dict())


@sessions.route('/<string:code>/state', methods=['GET'])
def get_state(code):
    return jsonify(_load_session(code).state_dict())


@sessions.route('/<string:code>/escrow', methods=['GET'])
def get_escrow(code):
    session = _load_session(code)
    return jsonify({
        'balance': session.escrow_balance,
        'transfers': [t.to_dict() for t in session.transfers],
    })


@sessions.route('/<string:code>/moves', methods=['GET'])
def get_moves(code):
    session = _load_session(code)
    return jsonify([m.to_dict() for m in session.moves])


@sessions.route('/<string:code>/move-digest', methods=['GET'])
def get_move_digest(code):
    """
    Returns the digest a player signs to authorize a move off-path, and who must sign it.
    """
    session = _load_session(code)
    sequence_number = request.args.get('sequence_number', type=int)
    move_notation = request.args.get('move')
    prior_transcript = request.args.get('prior_transcript', session.transcript)
    if sequence_number is None or not 0 <= sequence_number <= MAX_SEQUENCE_NUMBER or not move_notation:
        raise InvalidInput("sequence_number and move are required")
    digest = move_digest(session.code, sequence_number, prior_transcript, move_notation)
    return jsonify({
        'digest': '0x' + digest.hex(),
        'signer': session.seat_for_sequence(sequence_number),
        'sequence_number': sequence_number,
        'prior_transcript': prior_transcript,
    })


@sessions.route('/<string:code>/join', methods=['POST'])
@login_required
def join_session(code):
    data = request.get_json(silent=True) or {}
    session = _load_session(code, for_update=True)
    lifecycle.join_session(session, current_user.address, data.get('deposit'))
    return _commit_and_notify(session)


@sessions.route('/<string:code>/cancel', methods=['POST'])
@login_required
def cancel_session(code):
    session = _load_session(code, for_update=True)
    lifecycle.cancel_session(session, current_user.address)
    return _commit_and_notify(session)


@sessions.route('/<string:code>/move', methods=['POST'])
@login_required
def submit_move(code):
    data = request.get_json(silent=True) or {}
    session = _load_session(code, for_update=True)
    moves.move(session, current_user.address, data.get('expected_sequence_number'), data.get('move'))
    return _commit_and_notify(session)


@sessions.route('/<string:code>/signed-move', methods=['POST'])
@login_required
def submit_signed_move(code):
    """
    Redeems a move the mover signed off-path; either player may submit it.
    """
    payload = SignedMoveModel.model_validate(request.get_json(silent=True) or {})
    session = _load_session(code, for_update=True)
    moves.move_from_state(
        session,
        current_user.address,
        payload.sequence_number,
        payload.prior_transcript,
        payload.signature,
        payload.move,
        _verifier(),
    )
    return _commit_and_notify(session)


@sessions.route('/<string:code>/state', methods=['POST'])
@login_required
def submit_state(code):
    data = request.get_json(silent=True) or {}
    new_state = GameStateModel.model_validate(data.get('state') or {})
    signature = data.get('signature')
    if signature is not None and not isinstance(signature, str):
        raise InvalidInput("signature must be a hex string")
    session = _load_session(code, for_update=True)
    moves.set_state(session, current_user.address, new_state, signature=signature, verifier=_verifier())
    return _commit_and_notify(session)


@sessions.route('/<string:code>/resign', methods=['POST'])
@login_required
def resign(code):
    session = _load_session(code, for_update=True)
    lifecycle.resign(session, current_user.address)
    return _commit_and_notify(session)


@sessions.route('/<string:code>/timeout', methods=['POST'])
@login_required
def claim_timeout(code):
    """
    Lets the waiting player take the pot once the turn holder has been idle past the timeout.
    """
    session = _load_session(code, for_update=True)
    lifecycle.resolve_timeout(session, current_user.address)
    return _commit_and_notify(session)
