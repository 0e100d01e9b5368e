"""
Per-user mutual exclusion for template writes.

Enrollment, re-enrollment and disable for the same user must not interleave,
while different users proceed in parallel. Locks are created on demand and
dropped once no thread holds or waits for them.

Usage:
    locks = UserLockRegistry()
    with locks.hold(user_id):
        ...
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List


class UserLockRegistry:
    """Reference-counted registry of one lock per user ID."""

    def __init__(self):
        self._guard = threading.Lock()
        # user_id -> [lock, number of holders + waiters]
        self._locks: Dict[str, List] = {}

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        """Hold the lock for user_id for the duration of the block."""
        with self._guard:
            entry = self._locks.get(user_id)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[user_id] = entry
            entry[1] += 1

        lock = entry[0]
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[user_id]

    def __len__(self) -> int:
        """Number of users with a live lock."""
        with self._guard:
            return len(self._locks)
