"""
In-process named locks with expiry.

A ``LockManager`` is created once per process (by the owning app config)
and handed to the code that needs mutual exclusion. Locks do not survive a
restart and are not shared between server processes.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockToken:
    name: str
    acquired_at: float
    expires_at: float
    token: str = field(default_factory=lambda: uuid.uuid4().hex)


class LockManager:
    """Named mutual-exclusion entries with a time-to-live."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._mutex = threading.Lock()
        self._held: Dict[str, LockToken] = {}

    def try_acquire(self, name: str, ttl: float) -> Optional[LockToken]:
        """Return a token, or ``None`` when an unexpired lock with this name is held."""
        now = self._clock()
        with self._mutex:
            current = self._held.get(name)
            if current is not None:
                if current.expires_at > now:
                    return None
                logger.warning("Lock %s expired after %.0fs; taking over", name, now - current.acquired_at)
            token = LockToken(name=name, acquired_at=now, expires_at=now + ttl)
            self._held[name] = token
            return token

    def release(self, token: LockToken) -> bool:
        """Release ``token``. A stale token (expired, then re-acquired by someone else) is ignored."""
        with self._mutex:
            current = self._held.get(token.name)
            if current is None or current.token != token.token:
                return False
            del self._held[token.name]
            return True

    def is_locked(self, name: str) -> bool:
        return self.held_since(name) is not None

    def held_since(self, name: str) -> Optional[float]:
        with self._mutex:
            current = self._held.get(name)
            if current is None or current.expires_at <= self._clock():
                return None
            return current.acquired_at
