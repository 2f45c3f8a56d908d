"""Per-bucket read-write lock with bounded wait.

`FairReadWriteLock` grants the lock in request order: a reader that arrives
after a waiting writer queues behind it, so writers are not starved under
read pressure. The lock is not reentrant.
"""
from __future__ import annotations
import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Callable, Deque, Iterator, Optional
import logging

from diskbucket.errors import LockTimeout

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 1.0


class _Ticket:
    __slots__ = ("shared",)

    def __init__(self, shared: bool) -> None:
        self.shared = shared


class FairReadWriteLock:
    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._waiting: Deque[_Ticket] = deque()
        self._readers = 0
        self._writer = False

    def _grantable(self, ticket: _Ticket) -> bool:
        if self._writer:
            return False
        if ticket.shared:
            for ahead in self._waiting:
                if ahead is ticket:
                    return True
                if not ahead.shared:
                    return False
            return True
        return self._readers == 0 and self._waiting[0] is ticket

    def acquire(self, shared: bool = False, timeout: float = DEFAULT_TIMEOUT) -> bool:
        deadline = time.monotonic() + timeout
        ticket = _Ticket(shared)
        with self._cond:
            self._waiting.append(ticket)
            try:
                while not self._grantable(ticket):
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return False
                    self._cond.wait(remaining)
                if shared:
                    self._readers += 1
                else:
                    self._writer = True
                return True
            finally:
                self._waiting.remove(ticket)
                self._cond.notify_all()

    def release(self, shared: bool = False) -> None:
        with self._cond:
            if shared:
                if self._readers <= 0:
                    raise RuntimeError("release of an unheld read lock")
                self._readers -= 1
            else:
                if not self._writer:
                    raise RuntimeError("release of an unheld write lock")
                self._writer = False
            self._cond.notify_all()


class ConcurrencyGuard:
    """Scoped access to a bucket: lock, run, clean up, unlock."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout
        self._lock = FairReadWriteLock()

    @contextmanager
    def hold(
        self,
        shared: bool = False,
        cleanup: Optional[Callable[[], None]] = None,
    ) -> Iterator[None]:
        """Hold the lock for the body of a ``with`` block.

        Raises `LockTimeout` when the lock is not granted within `timeout`
        seconds. `cleanup` runs on every exit path before the lock is
        released.
        """
        if not self._lock.acquire(shared=shared, timeout=self.timeout):
            mode = "shared" if shared else "exclusive"
            raise LockTimeout(
                f"could not acquire {mode} lock",
                {"timeout": self.timeout},
            )
        try:
            yield
        finally:
            if cleanup is not None:
                try:
                    cleanup()
                except Exception:
                    logger.exception("Cleanup after locked operation failed")
            self._lock.release(shared=shared)
