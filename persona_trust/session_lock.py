"""
SessionLockManager - per-session locks for session_id handling.

Every turn for one session id is serialized, so evidence ingestion,
the phrase ledger and the commitment flag never race.
In-process implementation (re-entrant); there is no cross-process state.

A lock is only forgotten while no thread holds or waits on it,
otherwise a later turn would get a fresh lock and run in parallel.
"""

from __future__ import annotations

import hashlib
import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class SessionLockManager:
    """Acquire per-session re-entrant locks inside one process."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}
        self._users: Dict[str, int] = {}

    @staticmethod
    def _lock_key(session_id: str) -> str:
        return hashlib.sha256(str(session_id).encode("utf-8")).hexdigest()

    def _checkout(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            remaining = self._users.get(key, 1) - 1
            if remaining > 0:
                self._users[key] = remaining
            else:
                self._users.pop(key, None)

    @contextmanager
    def lock(self, session_id: str) -> Iterator[None]:
        """Context manager for session lock."""
        key = self._lock_key(session_id)
        lock = self._checkout(key)
        try:
            lock.acquire()
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)

    def is_busy(self, session_id: str) -> bool:
        """Someone holds or waits on the session lock."""
        with self._guard:
            return self._users.get(self._lock_key(session_id), 0) > 0

    def discard(self, session_id: str) -> bool:
        """
        Forget the lock of an evicted session.

        Returns:
            False if the lock is in use (kept as is)
        """
        key = self._lock_key(session_id)
        with self._guard:
            if self._users.get(key, 0) > 0:
                return False
            self._locks.pop(key, None)
            return True

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
