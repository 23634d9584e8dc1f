from channel_chess import db
from channel_chess.models import GameSession, Transfer


def deposit(session: GameSession, identity: str, amount: int, now: float) -> Transfer:
    """Take ``amount`` into the session's custody on behalf of ``identity``."""
    transfer = Transfer(session=session, identity=identity, amount=amount, kind='deposit', created_at=now)
    session.escrow_balance = (session.escrow_balance or 0) + amount
    db.session.add(transfer)
    return transfer


def release(session: GameSession, identity: str, amount: int, kind: str, now: float) -> Transfer:
    """Pay ``amount`` out of escrow to ``identity`` (kind is 'refund' or 'payout')."""
    if amount <= 0 or amount > session.escrow_balance:
        raise RuntimeError(
            f"escrow of session {session.code} holds {session.escrow_balance}, cannot release {amount}"
        )
    transfer = Transfer(session=session, identity=identity, amount=-amount, kind=kind, created_at=now)
    session.escrow_balance -= amount
    db.session.add(transfer)
    return transfer


def journal_balance(session: GameSession) -> int:
    """Escrow balance recomputed from the journal; always equals ``session.escrow_balance``."""
    return sum(t.amount for t in session.transfers)
