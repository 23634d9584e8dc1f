from typing import Iterator, NamedTuple, Tuple

from channel_chess import db
from channel_chess.crypto import normalize_address
from channel_chess.models import LeaderboardEntry
from channel_chess.services.sessions.errors import InvalidInput


class Stats(NamedTuple):
    wins: int
    losses: int


def update_stats(identity: str, won: bool) -> Stats:
    """Record one win or loss for ``identity``, creating its entry on first use."""
    address = normalize_address(identity)
    if address is None:
        raise InvalidInput(f"Not a valid identity: {identity!r}")
    entry = LeaderboardEntry.query.filter_by(identity=address).first()
    if entry is None:
        entry = LeaderboardEntry(identity=address, wins=0, losses=0)
    if won:
        entry.wins += 1
    else:
        entry.losses += 1
    db.session.add(entry)
    return Stats(entry.wins, entry.losses)


def get_stats(identity: str) -> Stats:
    address = normalize_address(identity)
    if address is None:
        return Stats(0, 0)
    entry = LeaderboardEntry.query.filter_by(identity=address).first()
    if entry is None:
        return Stats(0, 0)
    return Stats(entry.wins, entry.losses)


class LeaderboardView:
    """All entries in insertion order.

    Iterating runs a fresh query each time, so the view can be walked any
    number of times and always reflects the current table.
    """

    batch_size = 100

    def __iter__(self) -> Iterator[Tuple[str, Stats]]:
        query = LeaderboardEntry.query.order_by(LeaderboardEntry.id).yield_per(self.batch_size)
        for entry in query:
            yield entry.identity, Stats(entry.wins, entry.losses)

    def __len__(self) -> int:
        return LeaderboardEntry.query.count()


def get_leaderboard() -> LeaderboardView:
    return LeaderboardView()
