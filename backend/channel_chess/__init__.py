from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from pydantic import ValidationError
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Signature capability used by the signed move paths and wallet login
    from channel_chess.crypto import EthSignatureVerifier
    verifier = flask_app.config.get('SIGNATURE_VERIFIER') or EthSignatureVerifier()
    flask_app.extensions['signature_verifier'] = verifier

    # Import and register blueprints here
    from channel_chess.main import main
    flask_app.register_blueprint(main)

    from channel_chess.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api/sessions')

    from channel_chess.api.leaderboard import leaderboard
    flask_app.register_blueprint(leaderboard, url_prefix='/api/leaderboard')

    from channel_chess.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from channel_chess.services.sessions.errors import SessionError

    @flask_app.errorhandler(SessionError)
    def handle_session_error(exc):
        # Rejected transitions leave no trace: drop anything staged in this request
        db.session.rollback()
        flask_app.logger.info(f"[reject] code={exc.code} message={exc.message}")
        return jsonify(exc.to_dict()), exc.status

    @flask_app.errorhandler(ValidationError)
    def handle_validation_error(exc):
        db.session.rollback()
        return jsonify({
            'error': 'Invalid request payload',
            'code': 'InvalidInput',
            'details': exc.errors(include_url=False, include_context=False),
        }), 422

    # Flask-Login user loader
    from channel_chess.models import Participant

    @login_manager.user_loader
    def load_user(participant_id):
        return db.session.get(Participant, int(participant_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Login required', 'code': 'NotParticipant'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database schema."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('sign-move')
    @click.option('--private-key', required=True, help='Hex private key of the mover.')
    @click.option('--session-code', required=True)
    @click.option('--sequence-number', type=int, required=True)
    @click.option('--prior-transcript', default='', help='Transcript before the move.')
    @click.option('--move', 'move_notation', required=True)
    def sign_move_command(private_key, session_code, sequence_number, prior_transcript, move_notation):
        """Prints the digest and signature for an off-path move."""
        from channel_chess.crypto import sign_digest
        from channel_chess.services.sessions.digest import move_digest
        digest = move_digest(session_code.upper(), sequence_number, prior_transcript, move_notation)
        print(f"digest: 0x{digest.hex()}")
        print(f"signature: {sign_digest(private_key, digest)}")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(sign_move_command)

    return flask_app
