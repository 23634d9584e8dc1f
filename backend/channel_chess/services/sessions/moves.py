"""The three ways a session's game state advances.

``move`` is the direct path, ``move_from_state`` redeems a move the mover
signed off-path, and ``set_state`` overwrites the whole record. All three
re-check phase, membership, turn and sequence against the stored session,
so neither path can be used to get around the other's checks.
"""

import time
from typing import Optional

from flask import current_app

from channel_chess import db
from channel_chess.crypto import SignatureVerifier
from channel_chess.models import MAX_SEQUENCE_NUMBER, GameSession, MoveRecord
from .digest import move_digest, state_digest
from .errors import InvalidInput, InvalidSignature, StaleSequence, WrongTurn
from .lifecycle import conclude, require_active, require_participant
from .schemas import GameStateModel


def _clock(now: Optional[float]) -> float:
    return time.time() if now is None else now


def _is_sequence(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MAX_SEQUENCE_NUMBER


def _require_notation(move_notation) -> None:
    if not isinstance(move_notation, str) or not move_notation.strip():
        raise InvalidInput("Move notation must be a non-empty string")


def append_move(transcript: str, move_notation: str) -> str:
    return f"{transcript} {move_notation}" if transcript else move_notation


def _apply_move(session: GameSession, move_notation: str, path: str, caller: str, signer: Optional[str], now: float) -> None:
    mover = session.turn_holder
    session.sequence_number += 1
    session.transcript = append_move(session.transcript, move_notation)
    session.turn_holder = session.counterpart(mover)
    session.last_activity_at = now
    db.session.add(MoveRecord(
        session=session,
        sequence_number=session.sequence_number,
        notation=move_notation,
        path=path,
        submitted_by=caller,
        signer=signer,
        created_at=now,
    ))


def move(session: GameSession, caller: str, expected_sequence_number, move_notation, now: Optional[float] = None) -> GameSession:
    now = _clock(now)
    require_active(session)
    require_participant(session, caller)
    if caller != session.turn_holder:
        raise WrongTurn()
    _require_notation(move_notation)
    if not _is_sequence(expected_sequence_number) or expected_sequence_number != session.next_sequence_number:
        raise StaleSequence(
            f"Expected sequence number {session.next_sequence_number}, got {expected_sequence_number}"
        )

    _apply_move(session, move_notation, 'direct', caller, None, now)
    current_app.logger.info(f"[move] session={session.code} seq={session.sequence_number} by={caller}")
    return session


def move_from_state(
    session: GameSession,
    caller: str,
    sequence_number,
    prior_transcript,
    signature,
    new_move,
    verifier: SignatureVerifier,
    now: Optional[float] = None,
) -> GameSession:
    """Redeem a move its mover signed off-path.

    Either participant may submit. The signature must come from the player
    whose slot ``sequence_number`` is, and the payload must extend exactly the
    stored state, so an accepted payload can never be replayed.
    """
    now = _clock(now)
    require_active(session)
    require_participant(session, caller)
    if not _is_sequence(sequence_number):
        raise InvalidInput("sequence_number must be a non-negative integer that fits a BigInteger")
    if not isinstance(prior_transcript, str):
        raise InvalidInput("prior_transcript must be a string")
    if not isinstance(signature, str):
        raise InvalidInput("signature must be a hex string")
    _require_notation(new_move)

    signer = session.seat_for_sequence(sequence_number)
    digest = move_digest(session.code, sequence_number, prior_transcript, new_move)
    if not signer or not verifier.verify(digest, signature, signer):
        raise InvalidSignature(f"Move {sequence_number} must be signed by {signer}")
    if sequence_number != session.next_sequence_number or prior_transcript != session.transcript:
        raise StaleSequence(
            f"Signed move {sequence_number} does not extend state {session.sequence_number}"
        )
    if signer != session.turn_holder:
        raise WrongTurn(f"Move {sequence_number} belongs to {signer} but {session.turn_holder} is on turn")

    _apply_move(session, new_move, 'signed', caller, signer, now)
    current_app.logger.info(
        f"[signed-move] session={session.code} seq={session.sequence_number} signer={signer} submitted_by={caller}"
    )
    return session


def set_state(
    session: GameSession,
    caller: str,
    new_state: GameStateModel,
    signature: Optional[str] = None,
    verifier: Optional[SignatureVerifier] = None,
    now: Optional[float] = None,
) -> GameSession:
    """Overwrite the game state with a newer full record.

    A terminal record settles the session, so it must also carry the
    counterpart's signature over the state digest.
    """
    now = _clock(now)
    require_active(session)
    require_participant(session, caller)
    if not isinstance(new_state, GameStateModel):
        raise InvalidInput("State must be a GameStateModel")
    if new_state.sequence_number <= session.sequence_number:
        raise StaleSequence(
            f"State {new_state.sequence_number} is not newer than {session.sequence_number}"
        )
    if not session.is_participant(new_state.turn_holder):
        raise InvalidInput("turn_holder must be a participant")
    if new_state.winner is not None:
        if not new_state.is_terminal:
            raise InvalidInput("Only a terminal state can name a winner")
        if not session.is_participant(new_state.winner):
            raise InvalidInput("winner must be a participant")

    cosigner = None
    if new_state.is_terminal:
        cosigner = session.counterpart(caller)
        digest = state_digest(session.code, new_state)
        if verifier is None or not signature or not verifier.verify(digest, signature, cosigner):
            raise InvalidSignature(f"A terminal state must be signed by {cosigner}")

    session.sequence_number = new_state.sequence_number
    session.transcript = new_state.transcript
    session.turn_holder = new_state.turn_holder
    session.last_activity_at = now
    db.session.add(MoveRecord(
        session=session,
        sequence_number=new_state.sequence_number,
        notation=None,
        path='set_state',
        submitted_by=caller,
        signer=cosigner,
        created_at=now,
    ))
    current_app.logger.info(
        f"[set-state] session={session.code} seq={session.sequence_number} by={caller} terminal={new_state.is_terminal}"
    )
    if new_state.is_terminal:
        conclude(session, new_state.winner, 'agreed', now)
    return session
