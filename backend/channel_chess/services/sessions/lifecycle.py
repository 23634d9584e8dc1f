import time
from typing import Optional

from flask import current_app

from channel_chess import db
from channel_chess.crypto import normalize_address
from channel_chess.models import (
    GENESIS_SEQUENCE,
    MAX_UINT256,
    PHASE_TRANSITIONS,
    GameSession,
    Phase,
    generate_session_code,
)
from channel_chess.services.leaderboard import update_stats
from . import escrow
from .errors import (
    AlreadyStarted,
    GameAlreadyStarted,
    InvalidInput,
    InvalidStake,
    NotParticipant,
    SessionClosed,
    StakeMismatch,
    TimeoutNotReached,
    WrongTurn,
)


def _clock(now: Optional[float]) -> float:
    return time.time() if now is None else now


def _is_amount(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def advance_phase(session: GameSession, new_phase: Phase) -> None:
    current = Phase(session.phase)
    if new_phase not in PHASE_TRANSITIONS[current]:
        raise RuntimeError(f"illegal phase transition {current.value} -> {new_phase.value} for {session.code}")
    session.phase = new_phase.value


def require_active(session: GameSession) -> None:
    if session.phase != Phase.ACTIVE.value or session.is_terminal:
        raise SessionClosed(f"Session {session.code} is {session.phase}")


def require_participant(session: GameSession, caller: str) -> None:
    if not session.is_participant(caller):
        raise NotParticipant()


def create_session(caller: str, stake, timeout_interval, deposit, now: Optional[float] = None) -> GameSession:
    """Open a session and take the creator's stake into escrow."""
    now = _clock(now)
    creator = normalize_address(caller)
    if creator is None:
        raise InvalidInput("Caller is not a valid identity")
    if not _is_amount(stake) or stake <= 0:
        raise InvalidStake("Stake must be a positive integer")
    # Escrow holds both stakes as a uint256
    if 2 * stake > MAX_UINT256:
        raise InvalidStake("Stake is too large for the escrow to hold twice")
    if not _is_amount(deposit) or deposit != stake:
        raise InvalidStake()
    cfg = current_app.config
    min_timeout = int(cfg.get('MIN_TIMEOUT_INTERVAL_SEC', 1))
    max_timeout = int(cfg.get('MAX_TIMEOUT_INTERVAL_SEC', 7 * 24 * 3600))
    if not _is_amount(timeout_interval) or not (max(1, min_timeout) <= timeout_interval <= max_timeout):
        raise InvalidInput(f"timeout_interval must be an integer between {max(1, min_timeout)} and {max_timeout} seconds")

    session = GameSession(
        code=generate_session_code(int(cfg.get('SESSION_CODE_LENGTH', 6))),
        stake_amount=stake,
        timeout_interval=timeout_interval,
        player1=creator,
        phase=Phase.CREATED.value,
        escrow_balance=0,
        created_at=now,
        last_activity_at=now,
        sequence_number=GENESIS_SEQUENCE,
        transcript='',
        is_terminal=False,
    )
    db.session.add(session)
    escrow.deposit(session, creator, deposit, now)
    advance_phase(session, Phase.AWAITING_OPPONENT)
    current_app.logger.info(f"[create] session={session.code} player1={creator} stake={stake} timeout={timeout_interval}s")
    return session


def join_session(session: GameSession, caller: str, deposit, now: Optional[float] = None) -> GameSession:
    now = _clock(now)
    if session.phase != Phase.AWAITING_OPPONENT.value:
        raise AlreadyStarted(f"Session {session.code} is {session.phase}")
    joiner = normalize_address(caller)
    if joiner is None:
        raise InvalidInput("Caller is not a valid identity")
    if joiner == session.player1:
        raise InvalidInput("The creator cannot join their own session")
    if not _is_amount(deposit) or deposit != session.stake_amount:
        raise StakeMismatch(f"Deposit must be exactly {session.stake_amount}")

    escrow.deposit(session, joiner, deposit, now)
    session.player2 = joiner
    advance_phase(session, Phase.ACTIVE)
    # The creator moves first
    session.turn_holder = session.player1
    session.last_activity_at = now
    current_app.logger.info(f"[join] session={session.code} player2={joiner} escrow={session.escrow_balance}")
    return session


def cancel_session(session: GameSession, caller: str, now: Optional[float] = None) -> GameSession:
    """Refund the creator while nobody has joined; once both stakes are in, only conclusion releases funds."""
    now = _clock(now)
    if session.phase in (Phase.ACTIVE.value, Phase.COMPLETED.value):
        raise GameAlreadyStarted()
    if session.phase != Phase.AWAITING_OPPONENT.value:
        raise SessionClosed(f"Session {session.code} is {session.phase}")
    if caller != session.player1:
        raise NotParticipant("Only the creator may cancel")

    escrow.release(session, session.player1, session.escrow_balance, 'refund', now)
    advance_phase(session, Phase.CANCELLED)
    session.resolution = 'cancelled'
    current_app.logger.info(f"[cancel] session={session.code} refunded={session.stake_amount} to={session.player1}")
    return session


def conclude(session: GameSession, winner: Optional[str], resolution: str, now: float) -> GameSession:
    """Settle a finished game.

    With a winner the whole pot goes to the winner and both players' records
    are updated; without one (an agreed draw) each player gets their stake back.
    """
    session.is_terminal = True
    session.winner = winner
    session.resolution = resolution
    session.last_activity_at = now
    if winner:
        loser = session.counterpart(winner)
        escrow.release(session, winner, session.escrow_balance, 'payout', now)
        update_stats(winner, True)
        update_stats(loser, False)
    else:
        for player in session.participants:
            escrow.release(session, player, session.stake_amount, 'refund', now)
    advance_phase(session, Phase.COMPLETED)
    current_app.logger.info(f"[conclude] session={session.code} resolution={resolution} winner={winner}")
    return session


def resign(session: GameSession, caller: str, now: Optional[float] = None) -> GameSession:
    now = _clock(now)
    require_active(session)
    require_participant(session, caller)
    return conclude(session, session.counterpart(caller), 'resigned', now)


def resolve_timeout(session: GameSession, caller: str, now: Optional[float] = None) -> GameSession:
    """Award the pot to ``caller`` when the turn holder has been idle past the timeout interval."""
    now = _clock(now)
    require_active(session)
    require_participant(session, caller)
    if caller == session.turn_holder:
        raise WrongTurn("The player on turn cannot claim a timeout")
    idle = now - session.last_activity_at
    if idle <= session.timeout_interval:
        raise TimeoutNotReached(
            f"Idle for {int(idle)}s of {session.timeout_interval}s"
        )
    current_app.logger.info(f"[timeout] session={session.code} idle={int(idle)}s offender={session.turn_holder} claimant={caller}")
    return conclude(session, caller, 'timeout', now)
