"""
Conversation context store - rolling per-session window of dialogue turns

The store is an explicitly constructed component: build one at process start,
hand it to the agents that need it and call ``shutdown()`` on exit. Session ids
are not authenticated; callers that need isolation must pass distinct ids.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Literal, Optional

from pydantic import BaseModel

from agents.schedule.clock import utc_now

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default-session"


class ConversationTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: str
    intent: Optional[str] = None


def group_exchanges(turns: List[ConversationTurn]) -> List[List[ConversationTurn]]:
    """Split turns into exchanges; each user turn opens one and the assistant turns after it belong to it"""
    exchanges: List[List[ConversationTurn]] = []
    for turn in turns:
        if turn.role == "user" or not exchanges:
            exchanges.append([turn])
        else:
            exchanges[-1].append(turn)
    return exchanges


class ConversationStore:
    """Keeps the last ``max_exchanges`` exchanges per session and evicts idle sessions"""

    def __init__(self, max_exchanges: int = 5, session_timeout_minutes: float = 30,
                 default_session_id: str = DEFAULT_SESSION_ID,
                 clock: Optional[Callable[[], datetime]] = None):
        self.max_exchanges = max_exchanges
        self.session_timeout = timedelta(minutes=session_timeout_minutes)
        self.default_session_id = default_session_id
        self._clock = clock or utc_now
        self._sessions: Dict[str, List[ConversationTurn]] = {}
        self._last_seen: Dict[str, datetime] = {}
        self._eviction_listeners: List[Callable[[str], None]] = []

    @classmethod
    def from_config(cls, config: Dict, clock: Optional[Callable[[], datetime]] = None) -> "ConversationStore":
        return cls(
            max_exchanges=config.get("max_exchanges", 5),
            session_timeout_minutes=config.get("session_timeout_minutes", 30),
            default_session_id=config.get("default_session_id", DEFAULT_SESSION_ID),
            clock=clock,
        )

    def _session(self, session_id: Optional[str]) -> str:
        return session_id or self.default_session_id

    def add_eviction_listener(self, callback: Callable[[str], None]) -> None:
        """``callback(session_id)`` runs whenever a session is evicted or cleared"""
        self._eviction_listeners.append(callback)

    def _notify(self, session_id: str) -> None:
        for callback in self._eviction_listeners:
            callback(session_id)

    def add_turn(self, role: str, content: str, intent: Optional[str] = None,
                 session_id: Optional[str] = None) -> ConversationTurn:
        session = self._session(session_id)
        now = self._clock()

        # an idle session must not be revived by a late write
        if session in self._last_seen and self._is_expired(session, now):
            self._evict(session)

        turn = ConversationTurn(role=role, content=content, timestamp=now.isoformat(), intent=intent)
        turns = self._sessions.setdefault(session, [])
        turns.append(turn)

        exchanges = group_exchanges(turns)
        if len(exchanges) > self.max_exchanges:
            turns[:] = [t for exchange in exchanges[-self.max_exchanges:] for t in exchange]
        self._last_seen[session] = now

        self.sweep()
        return turn

    def get_recent_turns(self, count: int = 5, session_id: Optional[str] = None) -> List[ConversationTurn]:
        """Most recent ``count`` exchanges in chronological order"""
        session = self._session(session_id)
        if session not in self._sessions or self._is_expired(session, self._clock()):
            return []
        if count <= 0:
            return []
        exchanges = group_exchanges(self._sessions[session])
        return [turn for exchange in exchanges[-count:] for turn in exchange]

    def format_for_context(self, session_id: Optional[str] = None) -> str:
        turns = self.get_recent_turns(self.max_exchanges, session_id)
        if not turns:
            return ""

        lines = ["**Recent Conversation History:**"]
        for turn in turns:
            prefix = "User" if turn.role == "user" else "Assistant"
            lines.append(f"{prefix}: {turn.content}")
        return "\n".join(lines)

    def clear_session(self, session_id: Optional[str] = None) -> None:
        session = self._session(session_id)
        if session in self._sessions:
            self._evict(session)
            logger.info(f"Cleared session: {session}")

    def is_active(self, session_id: Optional[str] = None) -> bool:
        session = self._session(session_id)
        return session in self._sessions and not self._is_expired(session, self._clock())

    def _is_expired(self, session: str, now: datetime) -> bool:
        last = self._last_seen.get(session)
        return last is None or now - last > self.session_timeout

    def _evict(self, session: str) -> None:
        self._sessions.pop(session, None)
        self._last_seen.pop(session, None)
        self._notify(session)

    def sweep(self) -> List[str]:
        """Evict every session idle for longer than the timeout"""
        now = self._clock()
        expired = [s for s in list(self._sessions) if self._is_expired(s, now)]
        for session in expired:
            self._evict(session)
            logger.info(f"Cleaned up expired session: {session}")
        return expired

    def get_stats(self) -> Dict[str, int]:
        return {
            "active_sessions": len(self._sessions),
            "total_turns": sum(len(t) for t in self._sessions.values()),
        }

    def shutdown(self) -> None:
        for session in list(self._sessions):
            self._evict(session)
        logger.info("Conversation store shut down")
