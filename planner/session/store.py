"""In-memory TTL store of live planner sessions.

Sessions are plain objects; abandoning one (or letting it idle past the TTL)
discards it. Nothing is persisted. Expired records are swept whenever a new
session is stored, so abandoned ones don't pile up.
"""

from typing import Optional, Dict, Any
import time
import threading

from planner.errors import SessionNotFoundError
from planner.obs.logger import log_event
from planner.session.state import TripSession


class SessionStore:
    """Session dictionary with idle-TTL semantics."""

    def __init__(self, ttl_seconds: int = 1800):
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        self._data: Dict[str, Dict[str, Any]] = {}

    def _expired(self, rec: Dict[str, Any], now: float) -> bool:
        return (now - rec.get("updated_at", 0)) > self.ttl_seconds

    def _sweep(self, now: float) -> int:
        # caller holds the lock
        stale = [sid for sid, rec in self._data.items() if self._expired(rec, now)]
        for sid in stale:
            self._data.pop(sid, None)
        return len(stale)

    def create(self) -> TripSession:
        session = TripSession()
        self.put(session)
        return session

    def put(self, session: TripSession) -> None:
        now = time.time()
        with self._lock:
            purged = self._sweep(now)
            self._data[session.session_id] = {"session": session, "updated_at": now}
        if purged:
            log_event("sessions_expired", count=purged)

    def get(self, session_id: str) -> Optional[TripSession]:
        """Return the session if present and not idle past the TTL."""
        with self._lock:
            rec = self._data.get(session_id)
            if not rec:
                return None
            if self._expired(rec, time.time()):
                self._data.pop(session_id, None)
                return None
            return rec["session"]

    def require(self, session_id: str) -> TripSession:
        session = self.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def touch(self, session_id: str) -> None:
        """Update last-seen timestamp to avoid expiration."""
        with self._lock:
            if session_id in self._data:
                self._data[session_id]["updated_at"] = time.time()

    def discard(self, session_id: str) -> bool:
        with self._lock:
            return self._data.pop(session_id, None) is not None

    def purge_expired(self) -> int:
        with self._lock:
            return self._sweep(time.time())

    def __len__(self) -> int:
        """Live sessions only; expired records not yet swept are not counted."""
        now = time.time()
        with self._lock:
            return sum(1 for rec in self._data.values() if not self._expired(rec, now))
