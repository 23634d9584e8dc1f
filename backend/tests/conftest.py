import os
import sys
import pytest

# Ensure the backend root (containing the `channel_chess` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from eth_account import Account

from channel_chess import create_app, db, socketio
from channel_chess.crypto import sign_digest, text_digest

# Fixed keys keep addresses stable across runs
ALICE = Account.from_key('0x' + '11' * 32)
BOB = Account.from_key('0x' + '22' * 32)
CAROL = Account.from_key('0x' + '33' * 32)

STAKE = 1_000_000_000
TIMEOUT = 600


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    DEFAULT_TIMEOUT_INTERVAL_SEC = TIMEOUT
    MIN_TIMEOUT_INTERVAL_SEC = 1
    MAX_TIMEOUT_INTERVAL_SEC = 24 * 3600
    SESSION_CODE_LENGTH = 6
    OPERATOR_ADDRESSES = [CAROL.address]
    CORS_ORIGINS = []
    TIMER_HEARTBEAT_SEC = 0
    SIGNATURE_VERIFIER = None


class FakeVerifier:
    """Deterministic stand-in for wallet signatures: '<signer>:<digest hex>'."""

    def verify(self, digest, signature, claimed_signer):
        return signature == fake_signature(claimed_signer, digest)


def fake_signature(signer, digest):
    return f"{signer}:{digest.hex()}"


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import channel_chess.models  # noqa: F401
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def app_ctx(flask_app):
    with flask_app.app_context():
        yield flask_app


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def login(test_client, account):
    res = test_client.post('/api/auth/challenge', json={'address': account.address})
    assert res.status_code == 200
    message = res.get_json()['message']
    signature = sign_digest(account.key, text_digest(message))
    res = test_client.post('/api/auth/verify', json={'address': account.address, 'signature': signature})
    assert res.status_code == 200, res.get_json()
    return test_client


@pytest.fixture()
def alice_client(flask_app):
    return login(flask_app.test_client(), ALICE)


@pytest.fixture()
def bob_client(flask_app):
    return login(flask_app.test_client(), BOB)


@pytest.fixture()
def carol_client(flask_app):
    return login(flask_app.test_client(), CAROL)


@pytest.fixture()
def fake_verifier():
    return FakeVerifier()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
