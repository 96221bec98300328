"""
In-memory registry of trade sessions, one per user.

Sessions are created on first contact and cleared (never removed) when a
trade finishes, fails or is cancelled. Nothing here is persisted: a restart
loses every session, including the ones being monitored.
"""

from __future__ import annotations

from typing import Dict, Optional

from models.trade_session import TradeSession


class SessionRepository:
    """Registry mapping user ids to their :class:`TradeSession`."""

    def __init__(self) -> None:
        self._sessions: Dict[str, TradeSession] = {}

    def get(self, user_id: str) -> Optional[TradeSession]:
        """Return the session of a user, if any."""
        return self._sessions.get(user_id)

    def get_or_create(self, user_id: str) -> TradeSession:
        session = self._sessions.get(user_id)
        if session is None:
            session = TradeSession(user_id=user_id)
            self._sessions[user_id] = session
        return session

    def reset(self, user_id: str, monitor_id: Optional[str] = None) -> bool:
        """Clear a user's session back to idle, cancelling any pending check.

        With ``monitor_id`` the reset only happens if that monitoring run
        still owns the session. Returns True when the session was cleared.
        """
        session = self._sessions.get(user_id)
        if session is None:
            return False
        if monitor_id is not None and session.monitor_id != monitor_id:
            return False
        session.clear()
        return True
