"""Single-slot, time-boxed memo for verification results."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

from .models import VerificationResult
from .verifier import Clock, utc_now

DEFAULT_TTL = timedelta(minutes=30)


class VerificationCache:
    """Remember the last *successful* verification for ``ttl``.

    Failed verifications are never stored: the exception escapes
    :meth:`get_or_compute` and the slot keeps whatever it held before.
    """

    def __init__(self, ttl: timedelta = DEFAULT_TTL, clock: Clock = utc_now):
        self.ttl = ttl
        self.clock = clock
        self._result: Optional[VerificationResult] = None
        self._stored_at: Optional[datetime] = None

    def get(self) -> Optional[VerificationResult]:
        if self._result is None or self._stored_at is None:
            return None
        if self.clock() - self._stored_at >= self.ttl:
            return None
        return self._result

    def put(self, result: VerificationResult) -> None:
        self._result = result
        self._stored_at = self.clock()

    def invalidate(self) -> None:
        self._result = None
        self._stored_at = None

    def get_or_compute(self, compute: Callable[[], VerificationResult]) -> VerificationResult:
        cached = self.get()
        if cached is not None:
            return cached
        try:
            result = compute()
        except Exception:
            self.invalidate()
            raise
        self.put(result)
        return result


__all__ = ["VerificationCache", "DEFAULT_TTL"]
