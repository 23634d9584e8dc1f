import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///channel_chess.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Session timeouts (seconds)
    DEFAULT_TIMEOUT_INTERVAL_SEC = int(os.environ.get('DEFAULT_TIMEOUT_INTERVAL_SEC', '600'))
    MIN_TIMEOUT_INTERVAL_SEC = int(os.environ.get('MIN_TIMEOUT_INTERVAL_SEC', '1'))
    MAX_TIMEOUT_INTERVAL_SEC = int(os.environ.get('MAX_TIMEOUT_INTERVAL_SEC', str(7 * 24 * 3600)))
    SESSION_CODE_LENGTH = int(os.environ.get('SESSION_CODE_LENGTH', '6'))
    # Addresses allowed to post leaderboard results directly (comma separated)
    OPERATOR_ADDRESSES = [a.strip() for a in os.environ.get('OPERATOR_ADDRESSES', '').split(',') if a.strip()]
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
    ).split(',') if o.strip()]
    # Optional: heartbeat interval for timeout watcher logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
    # None selects the eth-account verifier
    SIGNATURE_VERIFIER = None
