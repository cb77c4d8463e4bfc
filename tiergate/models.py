"""Central data models for tiergate using Pydantic.

Defining all data structures in one place prevents circular dependencies
and keeps the JSON wire names (camelCase, shared with license files, state
files and UI widgets) in a single spot.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

_DATETIME = TypeAdapter(datetime)

# Marker carried in the ``type`` field of current-format records.
PLUGIN_LICENSE_TYPE = "PLUGIN_LICENSE"

# A license whose fingerprint is this literal is not machine-locked.
UNBOUND_FINGERPRINT = "UNBOUND"

SCHEMA_VERSION = "3.1.0"

HEX_PATTERN = r"^[0-9a-fA-F]*$"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Machine identity ------------------------------------------------------

class MachineFingerprint(BaseModel):
    short: str
    full: str

    model_config = ConfigDict(frozen=True)


# --- License payload -------------------------------------------------------

class LicenseRecord(_WireModel):
    """Decrypted license payload.

    Legacy records may lack ``pluginId`` and ``durationDays``; those are
    filled in (or rejected) during reconciliation, not here.  Unknown keys
    such as ``orderId`` or ``customerEmail`` are kept verbatim.
    """

    license_type: Optional[str] = Field(default=None, alias="type")
    plugin_id: Optional[str] = None
    license_id: Optional[str] = None
    fingerprint: Optional[str] = None
    generated_at: Optional[datetime] = None
    duration_days: Optional[PositiveInt] = None
    features: List[str] = Field(default_factory=list)
    issuer: Optional[str] = None
    schema_version: Optional[str] = Field(default=None, alias="version")

    model_config = ConfigDict(frozen=True, extra="allow")

    @field_validator("generated_at")
    @classmethod
    def _generated_at_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @field_validator("features")
    @classmethod
    def _dedupe_features(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))

    @property
    def is_bound(self) -> bool:
        """True when the license is locked to a specific machine hash."""
        return bool(self.fingerprint) and self.fingerprint != UNBOUND_FINGERPRINT

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Envelope(BaseModel):
    """Encrypted container as it sits inside the armored text block."""

    version: str = Field(alias="v")
    salt: str = Field(alias="s", pattern=HEX_PATTERN)
    iv: str = Field(alias="i", pattern=HEX_PATTERN)
    ciphertext: str = Field(alias="d", pattern=HEX_PATTERN)
    padding: str = Field(default="", alias="p")
    created_at: int = Field(alias="c")
    digest: str = Field(alias="h", pattern=HEX_PATTERN)

    model_config = ConfigDict(frozen=True, populate_by_name=True)


# --- Persisted activation history -----------------------------------------

class ActivationState(_WireModel):
    active_tier: int = Field(default=0, ge=0)
    tier_activation_date: Optional[datetime] = None
    activated_plugins: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @field_validator("active_tier", mode="before")
    @classmethod
    def _null_tier_is_unset(cls, value):
        return 0 if value is None else value

    @field_validator("tier_activation_date", mode="before")
    @classmethod
    def _unreadable_date_is_unset(cls, value):
        # A broken date only loses the tier, never the plugin history.
        if value is None:
            return None
        try:
            return _DATETIME.validate_python(value)
        except ValidationError:
            logger.warning("Ignoring unreadable tierActivationDate %r", value)
            return None

    @field_validator("tier_activation_date")
    @classmethod
    def _activation_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


# --- Verification output ---------------------------------------------------

class TierDecision(str, Enum):
    ADOPTED = "adopted"
    UPGRADED = "upgraded"
    UNCHANGED = "unchanged"


class VerificationResult(_WireModel):
    success: bool = True
    record: LicenseRecord
    decision: TierDecision
    current_tier: int
    tier_activation_date: datetime
    expires_at: datetime
    days_remaining: int
    activated_plugins: List[str] = Field(default_factory=list)
    status: str
    checked_at: datetime

    model_config = ConfigDict(frozen=True)


class StatusCode(str, Enum):
    VALID = "valid"
    UNBOUND = "unbound"
    EXPIRED = "expired"
    INVALID = "invalid"
    TAMPERED = "tampered"
    NOT_FOUND = "not_found"
    MACHINE_MISMATCH = "machine_mismatch"


class LicenseStatus(_WireModel):
    """Flat status record consumed by widgets and integration glue.

    Field names (after camelCase aliasing) are a contract with external
    collaborators; add fields, never rename them.
    """

    success: bool
    licensed: bool
    status: StatusCode
    days_remaining: Optional[int] = None
    license_type: str = "NONE"
    expires_at: Optional[datetime] = None
    message: str = ""
    current_tier: Optional[int] = None
    plugin_id: Optional[str] = None
    license_id: Optional[str] = None
    error: Optional[str] = None


__all__ = [
    "PLUGIN_LICENSE_TYPE",
    "UNBOUND_FINGERPRINT",
    "SCHEMA_VERSION",
    "MachineFingerprint",
    "LicenseRecord",
    "Envelope",
    "ActivationState",
    "TierDecision",
    "VerificationResult",
    "StatusCode",
    "LicenseStatus",
]
