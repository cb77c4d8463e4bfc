"""Exception hierarchy for license handling.

Every failure a caller can act on derives from :class:`LicenseError` and
carries a stable ``kind`` string.  The ``kind`` is what ends up in the
``status`` field reported to UI collaborators, so renewal prompts can be
told apart from reinstallation prompts.
"""

from __future__ import annotations


class LicenseError(Exception):
    """Base class for all license failures."""

    kind = "invalid"


class EnvelopeFormatError(LicenseError):
    """The envelope text is structurally broken (markers, base64, JSON keys)."""


class IntegrityError(LicenseError):
    """The stored digest does not match the ciphertext and salt."""

    kind = "tampered"


class DecryptionError(LicenseError):
    """Decryption or plaintext parsing failed (usually a wrong secret)."""


class IncompleteLicenseError(LicenseError):
    """The record lacks a product identifier or duration after normalization."""


class BindingMismatchError(LicenseError):
    """The license is bound to a different machine."""

    kind = "machine_mismatch"


class ExpiredError(LicenseError):
    """The license was accepted but the active tier has no days left."""

    kind = "expired"


class LicenseNotFoundError(LicenseError):
    """No license file exists at the configured location."""

    kind = "not_found"


__all__ = [
    "LicenseError",
    "EnvelopeFormatError",
    "IntegrityError",
    "DecryptionError",
    "IncompleteLicenseError",
    "BindingMismatchError",
    "ExpiredError",
    "LicenseNotFoundError",
]
