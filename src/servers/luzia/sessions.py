"""In-memory registry of live HTTP sessions.

The registry maps the ``mcp-session-id`` issued by a transport to the
transport that serves it. Sessions are removed when the client closes them,
and ``expired`` reports sessions that stayed idle longer than the configured
timeout so a periodic sweep can close them. A session with a request in flight
(including an open event stream) is never considered idle.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterator, TypeVar

TransportT = TypeVar("TransportT")


@dataclass
class Session(Generic[TransportT]):
    session_id: str
    transport: TransportT
    created_at: float
    last_seen: float
    in_flight: int = field(default=0)

    def idle_for(self, now: float) -> float:
        return now - self.last_seen


class SessionRegistry(Generic[TransportT]):
    """Owned mapping from session id to transport with idle eviction."""

    def __init__(
        self,
        *,
        idle_timeout: float,
        max_sessions: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.idle_timeout = idle_timeout
        self.max_sessions = max_sessions
        self._clock = clock
        self._sessions: dict[str, Session[TransportT]] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[Session[TransportT]]:
        return iter(list(self._sessions.values()))

    @property
    def is_full(self) -> bool:
        return len(self._sessions) >= self.max_sessions

    def get(self, session_id: str | None) -> Session[TransportT] | None:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def insert(self, session_id: str, transport: TransportT) -> Session[TransportT]:
        if session_id in self._sessions:
            raise KeyError(f"Session {session_id} is already registered")
        now = self._clock()
        session = Session(session_id=session_id, transport=transport, created_at=now, last_seen=now)
        self._sessions[session_id] = session
        return session

    def remove(self, session_id: str) -> Session[TransportT] | None:
        return self._sessions.pop(session_id, None)

    def touch(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.last_seen = self._clock()

    def begin_request(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.in_flight += 1
            session.last_seen = self._clock()

    def end_request(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.in_flight = max(0, session.in_flight - 1)
            session.last_seen = self._clock()

    def expired(self, now: float | None = None) -> list[Session[TransportT]]:
        """Sessions idle past the timeout with no request in flight."""
        now = self._clock() if now is None else now
        return [
            session
            for session in self._sessions.values()
            if session.in_flight == 0 and session.idle_for(now) > self.idle_timeout
        ]

    def drain(self) -> list[Session[TransportT]]:
        """Remove and return every session."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        return sessions

    def ids(self) -> list[str]:
        return list(self._sessions)
