import time
from typing import Optional, Set, Tuple

from channel_chess import db, socketio
from channel_chess.models import GameSession, Phase


# Sessions with a live sleeper
_watched_sessions: Set[int] = set()


def notify_if_claimable(app, session_id: int, expected_activity: float) -> bool:
    """Tell the session room that a timeout can be claimed.

    Nothing is emitted when the session moved on (new activity, or it is no
    longer active) since the watch was set. Resolution itself stays a
    unilateral call by the waiting player.
    """
    with app.app_context():
        session = db.session.get(GameSession, session_id)
        if not session:
            return False
        if session.phase != Phase.ACTIVE.value or session.last_activity_at != expected_activity:
            app.logger.info(f"[timer-abort] session={session.code} phase={session.phase} activity changed or closed")
            return False
        if time.time() - session.last_activity_at <= session.timeout_interval:
            return False
        claimant = session.counterpart(session.turn_holder)
        app.logger.info(f"[timer-fire] session={session.code} offender={session.turn_holder} claimant={claimant}")
        socketio.emit(
            'timeout_claimable',
            {'session_code': session.code, 'claimant': claimant, 'offender': session.turn_holder},
            to=f"session:{session.code}",
            namespace='/ws',
        )
        return True


def _next_deadline(app, session_id: int) -> Optional[Tuple[float, float]]:
    """(seconds until a claim is allowed, last activity) or None once the session is not active."""
    with app.app_context():
        session = db.session.get(GameSession, session_id)
        if not session or session.phase != Phase.ACTIVE.value:
            return None
        # Resolution is allowed strictly after the interval has elapsed
        delay = max(0.0, session.last_activity_at + session.timeout_interval + 1 - time.time())
        return delay, session.last_activity_at


def _sleep(app, session_id: int, wait: float) -> None:
    try:
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0))
    except (TypeError, ValueError):
        hb = 0
    if hb > 0:
        slept = 0.0
        while slept < wait:
            step = min(hb, wait - slept)
            time.sleep(step)
            slept += step
            app.logger.info(f"[timer-heartbeat] session_id={session_id} remaining={max(0.0, wait - slept):.0f}s")
    else:
        time.sleep(wait)


def schedule_timeout_watch(app, session_id: int) -> None:
    """Watch an active session for an unresponsive turn holder.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Keeps a single sleeper per session; on waking it re-reads the last
      activity and sleeps again when the game moved on meanwhile
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    if session_id in _watched_sessions:
        app.logger.info(f"[timer-skip] session_id={session_id} already watched")
        return
    if _next_deadline(app, session_id) is None:
        return
    _watched_sessions.add(session_id)

    def _worker(sid: int):
        try:
            while True:
                deadline = _next_deadline(app, sid)
                if deadline is None:
                    return
                wait, activity = deadline
                app.logger.info(f"[timer-set] session_id={sid} delay={wait:.0f}s")
                _sleep(app, sid, wait)
                if notify_if_claimable(app, sid, activity):
                    return
        finally:
            _watched_sessions.discard(sid)

    if app.config.get('TESTING'):
        _worker(session_id)
    else:
        socketio.start_background_task(_worker, session_id)
