"""Leaderboard: cumulative win/loss counters per identity.

Independent of any single session; sessions report their result here when
they conclude, and operators may post results directly.
"""

from .standings import LeaderboardView, Stats, get_leaderboard, get_stats, update_stats

__all__ = ["LeaderboardView", "Stats", "get_leaderboard", "get_stats", "update_stats"]
