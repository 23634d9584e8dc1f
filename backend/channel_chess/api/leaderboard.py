from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from channel_chess import db
from channel_chess.crypto import normalize_address
from channel_chess.services.leaderboard import get_leaderboard, get_stats, update_stats
from channel_chess.services.sessions.errors import InvalidInput, NotParticipant


leaderboard = Blueprint('leaderboard', __name__)


def _operators():
    configured = current_app.config.get('OPERATOR_ADDRESSES') or []
    return {a for a in (normalize_address(x) for x in configured) if a}


@leaderboard.route('', methods=['GET'])
def list_leaderboard():
    return jsonify([
        {'identity': identity, 'wins': stats.wins, 'losses': stats.losses}
        for identity, stats in get_leaderboard()
    ])


@leaderboard.route('/<string:identity>', methods=['GET'])
def player_stats(identity):
    stats = get_stats(identity)
    return jsonify({'identity': normalize_address(identity) or identity, 'wins': stats.wins, 'losses': stats.losses})


@leaderboard.route('/stats', methods=['POST'])
@login_required
def post_stats():
    """
    Records a result reported by an operator outside a settled session.
    """
    if current_user.address not in _operators():
        raise NotParticipant("Only operators may post results")
    data = request.get_json(silent=True) or {}
    won = data.get('won')
    if not isinstance(won, bool):
        raise InvalidInput("won must be a boolean")
    stats = update_stats(data.get('identity'), won)
    db.session.commit()
    current_app.logger.info(f"[leaderboard] operator={current_user.address} identity={data.get('identity')} won={won}")
    return jsonify({'identity': normalize_address(data.get('identity')), 'wins': stats.wins, 'losses': stats.losses})
