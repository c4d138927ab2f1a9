"""Session record, store protocols and the in-memory backend."""

from __future__ import annotations

import secrets
import time
from collections.abc import Iterator
from typing import Any, Protocol, runtime_checkable

_MISSING = object()


class Session:
    """Key-value session record. Mutations mark it modified."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self.data: dict[str, Any] = dict(data or {})
        self.modified = False

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value
        self.modified = True

    def pop(self, key: str, default: Any = _MISSING) -> Any:
        if key not in self.data:
            if default is _MISSING:
                raise KeyError(key)
            return default
        self.modified = True
        return self.data.pop(key)

    def clear(self) -> None:
        if self.data:
            self.data.clear()
            self.modified = True

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __contains__(self, key: object) -> bool:
        return key in self.data

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return f"Session({self.data!r})"


@runtime_checkable
class SessionStore(Protocol):
    """Pluggable session persistence. Backends serialize access per session id."""

    async def get(self, session_id: str) -> Session | None: ...
    async def create(self) -> tuple[str, Session]: ...
    async def save(self, session_id: str, session: Session) -> None: ...
    async def touch(self, session_id: str, ttl_seconds: int) -> None: ...
    async def destroy(self, session_id: str) -> None: ...


@runtime_checkable
class DataStore(Protocol):
    """Backing data store whose connectivity gates server startup."""

    async def connect(self) -> None: ...
    async def close(self) -> None: ...


class InMemorySessionStore:
    """Default in-memory session store. Single-process only.

    Expired records are dropped when read and swept from ``create`` at most
    once every ``sweep_interval`` seconds, so unclaimed sessions do not pile up.
    """

    def __init__(self, ttl_seconds: int = 86400, *, sweep_interval: float = 60.0) -> None:
        self._ttl_seconds = ttl_seconds
        self._sweep_interval = sweep_interval
        self._records: dict[str, tuple[Session, float]] = {}
        self._next_sweep = time.monotonic() + sweep_interval

    def __len__(self) -> int:
        return len(self._records)

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        self._records.clear()

    async def get(self, session_id: str) -> Session | None:
        record = self._records.get(session_id)
        if record is None:
            return None
        session, expires_at = record
        if time.monotonic() >= expires_at:
            del self._records[session_id]
            return None
        return session

    async def create(self) -> tuple[str, Session]:
        now = time.monotonic()
        if now >= self._next_sweep:
            self._sweep(now)
        session_id = secrets.token_urlsafe(32)
        while session_id in self._records:
            session_id = secrets.token_urlsafe(32)
        session = Session()
        self._records[session_id] = (session, now + self._ttl_seconds)
        return session_id, session

    def _sweep(self, now: float) -> None:
        expired = [sid for sid, (_, expires_at) in self._records.items() if now >= expires_at]
        for session_id in expired:
            del self._records[session_id]
        self._next_sweep = now + self._sweep_interval

    async def save(self, session_id: str, session: Session) -> None:
        self._records[session_id] = (session, time.monotonic() + self._ttl_seconds)
        session.modified = False

    async def touch(self, session_id: str, ttl_seconds: int) -> None:
        record = self._records.get(session_id)
        if record is not None:
            self._records[session_id] = (record[0], time.monotonic() + ttl_seconds)

    async def destroy(self, session_id: str) -> None:
        self._records.pop(session_id, None)
