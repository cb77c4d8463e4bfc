"""Programmatic boundary for collaborators (scripts, widget backends, glue).

These thin functions are the stable entry points; everything else in the
package may be reorganised.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from .envelope import DEFAULT_SECRET, Secret, encode_envelope
from .fingerprint import machine_fingerprint
from .models import LicenseRecord, MachineFingerprint, VerificationResult
from .verifier import LicenseVerifier

logger = logging.getLogger(__name__)


def encode_license(record: LicenseRecord, secret: Secret = DEFAULT_SECRET) -> str:
    """Return armored license text for *record*."""
    return encode_envelope(record, secret)


def decode_and_verify(
    envelope_text: str,
    secret: Secret,
    state_path: Union[str, Path],
    now: Optional[datetime] = None,
) -> VerificationResult:
    """Decode *envelope_text* and reconcile it against *state_path*.

    Raises a :class:`~tiergate.errors.LicenseError` subclass on failure.
    *now* pins the clock, mostly for tests and replaying history.
    """
    verifier = LicenseVerifier(state_path, secret=secret)
    if now is not None:
        verifier.clock = lambda: now
    return verifier.verify(envelope_text)


def current_fingerprint() -> MachineFingerprint:
    return machine_fingerprint()


def install_envelope(envelope_text: str, destination_path: Union[str, Path]) -> Path:
    """Write *envelope_text* to *destination_path*.  No validation happens here."""
    destination = Path(destination_path)
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(envelope_text, encoding="utf-8")
    logger.info("License written to %s", destination)
    return destination


__all__ = ["encode_license", "decode_and_verify", "current_fingerprint", "install_envelope"]
