"""End-to-end license verification.

:class:`LicenseVerifier` ties the pieces together: decode the envelope,
check machine binding, migrate legacy records, reconcile the tier against
the persisted activation state (under the state file lock) and report the
outcome as a :class:`~tiergate.models.VerificationResult`.

Failures propagate as :class:`~tiergate.errors.LicenseError` subclasses.
Nothing here retries: verifying the same bytes again cannot change the
outcome.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import AbstractSet, Callable, Union

from .envelope import DEFAULT_SECRET, KDF_ITERATIONS, Secret, decode_envelope
from .errors import BindingMismatchError, ExpiredError
from .fingerprint import machine_fingerprint
from .legacy import normalize_record
from .models import LicenseRecord, MachineFingerprint, VerificationResult
from .state import ActivationStateStore
from .tiers import DEFAULT_UPGRADE_TIERS, days_remaining, reconcile, tier_expiry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
FingerprintProvider = Callable[[], MachineFingerprint]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def check_binding(record: LicenseRecord, fingerprint: MachineFingerprint) -> None:
    """Raise :class:`BindingMismatchError` if *record* is locked to another host."""
    if record.is_bound and record.fingerprint != fingerprint.full:
        raise BindingMismatchError("License is bound to a different machine")


class LicenseVerifier:
    """Decode and reconcile licenses against one activation state file."""

    def __init__(
        self,
        state_store: Union[ActivationStateStore, str, Path],
        secret: Secret = DEFAULT_SECRET,
        upgrade_tiers: AbstractSet[int] = DEFAULT_UPGRADE_TIERS,
        clock: Clock = utc_now,
        fingerprint_provider: FingerprintProvider = machine_fingerprint,
        kdf_iterations: int = KDF_ITERATIONS,
    ):
        if not isinstance(state_store, ActivationStateStore):
            state_store = ActivationStateStore(state_store)
        self.state_store = state_store
        self.secret = secret
        self.upgrade_tiers = frozenset(upgrade_tiers)
        self.clock = clock
        self.fingerprint_provider = fingerprint_provider
        self.kdf_iterations = kdf_iterations

    def _now(self) -> datetime:
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now

    def verify(self, envelope_text: str) -> VerificationResult:
        """Decode *envelope_text* and run it through :meth:`verify_record`."""
        record = decode_envelope(envelope_text, self.secret, self.kdf_iterations)
        return self.verify_record(record)

    def verify_record(self, record: LicenseRecord) -> VerificationResult:
        now = self._now()

        # Binding is checked before the state file is touched.
        check_binding(record, self.fingerprint_provider())
        record = normalize_record(record)

        with self.state_store.locked():
            state = self.state_store.load()
            state, decision = reconcile(record, state, now, self.upgrade_tiers)
            self.state_store.save(state)

        expires_at = tier_expiry(state)
        remaining = days_remaining(expires_at, now)
        if remaining <= 0:
            raise ExpiredError(f"License expired on {expires_at.isoformat()}")

        logger.info(
            "License %s for %s verified: tier %sd (%s), %s days remaining",
            record.license_id,
            record.plugin_id,
            state.active_tier,
            decision.value,
            remaining,
        )
        return VerificationResult(
            record=record,
            decision=decision,
            current_tier=state.active_tier,
            tier_activation_date=state.tier_activation_date,
            expires_at=expires_at,
            days_remaining=remaining,
            activated_plugins=state.activated_plugins,
            status=f"License accepted. Current tier: {state.active_tier} days.",
            checked_at=now,
        )


__all__ = ["LicenseVerifier", "check_binding", "utc_now", "Clock", "FingerprintProvider"]
