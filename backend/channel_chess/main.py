from flask import Blueprint, request, jsonify, session, current_app
from flask_login import login_user, logout_user, login_required, current_user
import secrets
import time
from channel_chess import db
from channel_chess.crypto import normalize_address, text_digest
from channel_chess.models import Participant

main = Blueprint('main', __name__)

CHALLENGE_KEY = 'auth_challenge'


def challenge_message(address: str, nonce: str) -> str:
    return f"Sign in to channel-chess\naddress: {address}\nnonce: {nonce}"


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the channel-chess settlement server!'})

@main.route('/api/auth/challenge', methods=['POST'])
def auth_challenge():
    """
    Issues a one-time message the wallet must sign to log in.
    """
    data = request.get_json(silent=True) or {}
    address = normalize_address(data.get('address'))
    if not address:
        return jsonify({'error': 'A valid address is required'}), 400
    message = challenge_message(address, secrets.token_hex(16))
    session[CHALLENGE_KEY] = {'address': address, 'message': message}
    return jsonify({'address': address, 'message': message})

@main.route('/api/auth/verify', methods=['POST'])
def auth_verify():
    data = request.get_json(silent=True) or {}
    address = normalize_address(data.get('address'))
    challenge = session.pop(CHALLENGE_KEY, None)
    if not challenge or not address or challenge.get('address') != address:
        return jsonify({'error': 'No pending challenge for this address'}), 400

    verifier = current_app.extensions['signature_verifier']
    digest = text_digest(challenge['message'])
    if not verifier.verify(digest, data.get('signature') or '', address):
        return jsonify({'error': 'Invalid signature', 'code': 'InvalidSignature'}), 401

    participant = Participant.query.filter_by(address=address).first()
    if not participant:
        participant = Participant(address=address, created_at=time.time())
        db.session.add(participant)
        db.session.commit()
    login_user(participant, remember=True)
    current_app.logger.info(f"[login] address={address}")
    return jsonify(participant.to_dict())

@main.route('/api/auth/me', methods=['GET'])
@login_required
def auth_me():
    return jsonify(current_user.to_dict())

@main.route('/api/auth/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'Logged out successfully.'})
