from channel_chess import db
from flask_login import UserMixin
from enum import Enum
import string
import random
import time

# Sequence number of a session whose game state has not been written yet
GENESIS_SEQUENCE = -1
# Largest sequence number the BigInteger columns hold
MAX_SEQUENCE_NUMBER = 2 ** 63 - 1
MAX_UINT256 = 2 ** 256 - 1


class WeiAmount(db.TypeDecorator):
    """Signed integer amount of any uint256 size, stored as its decimal string.

    Wei values overflow 64-bit integer columns, and SQLite would hand a
    Numeric back as a float.
    """
    impl = db.String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(int(value))

    def process_result_value(self, value, dialect):
        return None if value is None else int(value)


class Phase(str, Enum):
    CREATED = 'created'
    AWAITING_OPPONENT = 'awaiting_opponent'
    ACTIVE = 'active'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


# Allowed forward transitions; phases never regress
PHASE_TRANSITIONS = {
    Phase.CREATED: {Phase.AWAITING_OPPONENT},
    Phase.AWAITING_OPPONENT: {Phase.ACTIVE, Phase.CANCELLED},
    Phase.ACTIVE: {Phase.COMPLETED},
    Phase.COMPLETED: set(),
    Phase.CANCELLED: set(),
}


class Participant(UserMixin, db.Model):
    __tablename__ = 'participant'
    id = db.Column(db.Integer, primary_key=True)
    address = db.Column(db.String(42), unique=True, nullable=False, index=True)
    created_at = db.Column(db.Float, nullable=False, default=time.time)

    def to_dict(self):
        return {
            'id': self.id,
            'address': self.address,
        }


def generate_session_code(length=6):
    """Generate a unique, short session code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not GameSession.query.filter_by(code=code).first():
            return code


class GameSession(db.Model):
    __tablename__ = 'game_session'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(16), unique=True, nullable=False, index=True)
    stake_amount = db.Column(WeiAmount, nullable=False)
    timeout_interval = db.Column(db.Integer, nullable=False)
    player1 = db.Column(db.String(42), nullable=False, index=True)
    player2 = db.Column(db.String(42), nullable=True, index=True)
    phase = db.Column(db.String(32), nullable=False, default=Phase.CREATED.value)
    resolution = db.Column(db.String(32), nullable=True)  # cancelled, resigned, timeout, agreed
    escrow_balance = db.Column(WeiAmount, nullable=False, default=0)
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    last_activity_at = db.Column(db.Float, nullable=False, default=time.time)
    # Embedded game state
    sequence_number = db.Column(db.BigInteger, nullable=False, default=GENESIS_SEQUENCE)
    transcript = db.Column(db.Text, nullable=False, default='')
    turn_holder = db.Column(db.String(42), nullable=True)
    is_terminal = db.Column(db.Boolean, nullable=False, default=False)
    winner = db.Column(db.String(42), nullable=True)

    transfers = db.relationship('Transfer', back_populates='session', order_by='Transfer.id', lazy='dynamic')
    moves = db.relationship('MoveRecord', back_populates='session', order_by='MoveRecord.id', lazy='dynamic')

    def __init__(self, **kwargs):
        super(GameSession, self).__init__(**kwargs)
        if not self.code:
            self.code = generate_session_code()

    @property
    def wager_amount(self):
        return self.stake_amount

    @property
    def participants(self):
        return tuple(p for p in (self.player1, self.player2) if p)

    def is_participant(self, identity):
        return identity is not None and identity in self.participants

    def counterpart(self, identity):
        if identity == self.player1:
            return self.player2
        if identity == self.player2:
            return self.player1
        return None

    def seat_for_sequence(self, sequence_number):
        """Player who makes the move numbered ``sequence_number``; the creator takes the even slots."""
        return self.player1 if sequence_number % 2 == 0 else self.player2

    @property
    def next_sequence_number(self):
        return self.sequence_number + 1

    def state_dict(self):
        return {
            'sequence_number': self.sequence_number,
            'transcript': self.transcript,
            'turn_holder': self.turn_holder,
            'is_terminal': self.is_terminal,
            'winner': self.winner,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'wager_amount': self.stake_amount,
            'timeout_interval': self.timeout_interval,
            'player1': self.player1,
            'player2': self.player2,
            'phase': self.phase,
            'resolution': self.resolution,
            'escrow_balance': self.escrow_balance,
            'last_activity_at': self.last_activity_at,
            'timeout_deadline': self.last_activity_at + self.timeout_interval,
            'state': self.state_dict(),
        }


class Transfer(db.Model):
    """Escrow journal: positive amounts flow into the session, negative ones out."""
    __tablename__ = 'transfer'
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('game_session.id'), nullable=False, index=True)
    identity = db.Column(db.String(42), nullable=False)
    amount = db.Column(WeiAmount, nullable=False)
    kind = db.Column(db.String(16), nullable=False)  # deposit, refund, payout
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    session = db.relationship('GameSession', back_populates='transfers')

    def to_dict(self):
        return {
            'identity': self.identity,
            'amount': self.amount,
            'kind': self.kind,
            'created_at': self.created_at,
        }


class MoveRecord(db.Model):
    __tablename__ = 'move_record'
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('game_session.id'), nullable=False, index=True)
    sequence_number = db.Column(db.BigInteger, nullable=False)
    notation = db.Column(db.Text, nullable=True)  # None for full state writes
    path = db.Column(db.String(16), nullable=False)  # direct, signed, set_state
    submitted_by = db.Column(db.String(42), nullable=False)
    signer = db.Column(db.String(42), nullable=True)
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    session = db.relationship('GameSession', back_populates='moves')

    __table_args__ = (
        db.UniqueConstraint('session_id', 'sequence_number', name='uq_move_record_session_sequence'),
    )

    def to_dict(self):
        return {
            'sequence_number': self.sequence_number,
            'notation': self.notation,
            'path': self.path,
            'submitted_by': self.submitted_by,
            'signer': self.signer,
            'created_at': self.created_at,
        }


class LeaderboardEntry(db.Model):
    __tablename__ = 'leaderboard_entry'
    # Primary key order doubles as insertion order for enumeration
    id = db.Column(db.Integer, primary_key=True)
    identity = db.Column(db.String(42), unique=True, nullable=False, index=True)
    wins = db.Column(db.Integer, nullable=False, default=0)
    losses = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            'identity': self.identity,
            'wins': self.wins,
            'losses': self.losses,
        }
