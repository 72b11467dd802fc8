"""Failure gate for the code generation endpoint.

After ``failure_threshold`` consecutive failed completions the gate opens and
``allow_request`` refuses calls until ``cooldown`` seconds have passed. The
first call after the cooldown is a trial: success closes the gate again, a
failure reopens it for another cooldown.
"""

import logging
import threading
import time
from datetime import datetime
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CLOSED = 'closed'
OPEN = 'open'
TRIAL = 'trial'


class CircuitBreaker:
    """Counts consecutive completion failures and blocks calls while open."""

    def __init__(self, name: str, failure_threshold: int = 3, cooldown: float = 60.0):
        self.name = name
        self.failure_threshold = max(1, failure_threshold)
        self.cooldown = cooldown
        self._lock = threading.Lock()
        self._state = CLOSED
        self._failures = 0
        self._opened_at = 0.0
        self._last_failure: Optional[datetime] = None
        self._last_success: Optional[datetime] = None

    @property
    def state(self) -> str:
        return self._state

    def allow_request(self) -> bool:
        with self._lock:
            if self._state == OPEN and time.monotonic() - self._opened_at >= self.cooldown:
                logger.info(f"{self.name}: cooldown over, letting a trial completion through")
                self._state = TRIAL
            return self._state != OPEN

    def record_success(self) -> None:
        with self._lock:
            if self._state != CLOSED:
                logger.info(f"{self.name}: trial completion succeeded, gate closed")
            self._state = CLOSED
            self._failures = 0
            self._last_success = datetime.now()

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            self._last_failure = datetime.now()
            if self._state == TRIAL or self._failures >= self.failure_threshold:
                if self._state != OPEN:
                    logger.warning(f"{self.name}: {self._failures} failed completion(s) in a row, "
                                   f"blocking for {self.cooldown:.0f}s")
                self._state = OPEN
                self._opened_at = time.monotonic()

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'name': self.name,
                'state': self._state,
                'failure_count': self._failures,
                'last_failure': self._last_failure.isoformat() if self._last_failure else None,
                'last_success': self._last_success.isoformat() if self._last_success else None,
            }
