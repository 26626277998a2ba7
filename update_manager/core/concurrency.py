"""
Concurrency primitives shared by the services

- Deadline: per-operation time budget
- ReadWriteLock: many readers or one writer
- KeyedLocks: one mutex per key, used as the per-license critical section
"""

from contextlib import contextmanager
from typing import Callable, Dict, Hashable, Optional
import threading
import time

from update_manager.core.errors import OperationCancelled


class Deadline:
    """Absolute point in time after which an operation must not start work"""

    def __init__(self, timeout: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = None if timeout is None else clock() + timeout

    @classmethod
    def none(cls) -> "Deadline":
        """A deadline that never expires"""
        return cls(None)

    def remaining(self) -> Optional[float]:
        """Seconds left, or None when unbounded"""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, operation: str = "operation"):
        """Raise OperationCancelled if the deadline has passed"""
        if self.expired():
            raise OperationCancelled(f"Deadline expired before {operation} could start")


class ReadWriteLock:
    """Writer-preferring reader/writer lock"""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            self._waiting_writers += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class KeyedLocks:
    """Lazily created mutex per key"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: Hashable, deadline: Optional[Deadline] = None):
        """Enter the critical section for key, honouring the deadline"""
        deadline = deadline or Deadline.none()
        deadline.check("entering the critical section")
        lock = self._lock_for(key)
        remaining = deadline.remaining()
        acquired = lock.acquire() if remaining is None else lock.acquire(timeout=remaining)
        if not acquired:
            raise OperationCancelled("Deadline expired while waiting for the critical section")
        try:
            yield
        finally:
            lock.release()
