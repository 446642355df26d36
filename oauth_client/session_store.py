"""
Server-side session storage keyed by the opaque session cookie.
Values are JSON-serializable dicts. Entries expire per-entry and are reclaimed lazily on access.

lock(session_id) serializes read-modify-write sequences for one key. Locks are striped and
reentrant so nested use (validator -> pending store -> get/set) is safe.
"""
import copy
import json
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Protocol

from sqlalchemy.orm import Session, sessionmaker

from oauth_client.models import SessionRecord

_LOCK_STRIPES = 64


class SessionStore(Protocol):
    def get(self, session_id: str) -> dict[str, Any] | None: ...

    def set(self, session_id: str, value: dict[str, Any], ttl: float | None = None) -> None: ...

    def delete(self, session_id: str) -> None: ...

    def lock(self, session_id: str): ...


class _KeyedLocks:
    def __init__(self, stripes: int = _LOCK_STRIPES):
        self._locks = [threading.RLock() for _ in range(stripes)]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._locks[hash(key) % len(self._locks)]
        with lock:
            yield


class InMemorySessionStore:
    """Process-local store. Lab/dev use; sessions are lost on restart."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: dict[str, tuple[dict[str, Any], float | None]] = {}
        self._mutex = threading.Lock()
        self._locks = _KeyedLocks()

    def lock(self, session_id: str):
        return self._locks.hold(session_id)

    def get(self, session_id: str) -> dict[str, Any] | None:
        with self._mutex:
            entry = self._data.get(session_id)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= self._clock():
                del self._data[session_id]
                return None
            return copy.deepcopy(value)

    def set(self, session_id: str, value: dict[str, Any], ttl: float | None = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        with self._mutex:
            self._data[session_id] = (copy.deepcopy(value), expires_at)

    def delete(self, session_id: str) -> None:
        with self._mutex:
            self._data.pop(session_id, None)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._mutex:
            expired = [sid for sid, (_, exp) in self._data.items() if exp is not None and exp <= now]
            for sid in expired:
                del self._data[sid]
        return len(expired)


class SqlSessionStore:
    """
    Sessions persisted in the `sessions` table as JSON.
    Per-key locking is process-local; run a single worker or use a store with server-side locking.
    """

    def __init__(self, session_factory: sessionmaker, clock: Callable[[], float] = time.time):
        self._session_factory = session_factory
        self._clock = clock
        self._locks = _KeyedLocks()

    def lock(self, session_id: str):
        return self._locks.hold(session_id)

    def get(self, session_id: str) -> dict[str, Any] | None:
        db: Session = self._session_factory()
        try:
            row = db.get(SessionRecord, session_id)
            if row is None:
                return None
            if row.expires_at is not None and row.expires_at <= self._clock():
                db.delete(row)
                db.commit()
                return None
            return json.loads(row.data)
        finally:
            db.close()

    def set(self, session_id: str, value: dict[str, Any], ttl: float | None = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        db: Session = self._session_factory()
        try:
            db.merge(SessionRecord(session_id=session_id, data=json.dumps(value), expires_at=expires_at))
            db.commit()
        finally:
            db.close()

    def delete(self, session_id: str) -> None:
        db: Session = self._session_factory()
        try:
            db.query(SessionRecord).filter(SessionRecord.session_id == session_id).delete()
            db.commit()
        finally:
            db.close()

    def purge_expired(self) -> int:
        db: Session = self._session_factory()
        try:
            count = (
                db.query(SessionRecord)
                .filter(SessionRecord.expires_at.is_not(None), SessionRecord.expires_at <= self._clock())
                .delete(synchronize_session=False)
            )
            db.commit()
            return count
        finally:
            db.close()
