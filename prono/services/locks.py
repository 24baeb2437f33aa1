"""
Per-match mutual exclusion for scoring.

Scoring one match is a full recompute of its predictions and of the group
scores they feed, so two recomputes of the same match must not interleave.
Different matches never share a lock.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator

from ..config import SCORING_LOCK_TIMEOUT
from ..exceptions import ConcurrentScoringConflict

logger = logging.getLogger(__name__)


class MatchLockRegistry:
    """
    Hands out one lock per match id.

    A lock exists only while some caller holds it or waits for it; the
    entry is dropped when the last of them leaves.
    """

    def __init__(self, timeout: float = SCORING_LOCK_TIMEOUT):
        self.timeout = timeout
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._users: Dict[Hashable, int] = {}
        self._guard = threading.Lock()

    def _checkout(self, match_id: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(match_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[match_id] = lock
            self._users[match_id] = self._users.get(match_id, 0) + 1
            return lock

    def _checkin(self, match_id: Hashable) -> None:
        with self._guard:
            remaining = self._users[match_id] - 1
            if remaining:
                self._users[match_id] = remaining
            else:
                del self._users[match_id]
                del self._locks[match_id]

    @contextmanager
    def hold(self, match_id: Hashable, timeout: float | None = None) -> Iterator[None]:
        """
        Hold the lock for ``match_id`` for the duration of the block.

        Raises:
            ConcurrentScoringConflict: the lock was not acquired within ``timeout``
        """
        wait = self.timeout if timeout is None else timeout
        lock = self._checkout(match_id)
        try:
            if not lock.acquire(timeout=wait):
                logger.warning(f"Scoring lock for match {match_id} not acquired after {wait}s")
                raise ConcurrentScoringConflict(match_id, wait)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(match_id)

    def is_locked(self, match_id: Hashable) -> bool:
        with self._guard:
            lock = self._locks.get(match_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Process-wide registry shared by every scoring trigger
scoring_locks = MatchLockRegistry()
