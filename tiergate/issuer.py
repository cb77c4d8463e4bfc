"""Building and issuing license records.

The helpers here produce :class:`~tiergate.models.LicenseRecord` objects for
the standard plans and hand them to the envelope codec.  Writing the
resulting text somewhere is left to the caller (see
:func:`tiergate.api.install_envelope`).
"""

from __future__ import annotations

import re
import secrets
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .envelope import DEFAULT_SECRET, KDF_ITERATIONS, Secret, encode_envelope
from .models import PLUGIN_LICENSE_TYPE, SCHEMA_VERSION, UNBOUND_FINGERPRINT, LicenseRecord

DEFAULT_ISSUER = "Chahuadev Thailand"
LICENSE_ID_PREFIX = "CHDEV"

DEFAULT_FEATURES: List[str] = ["standard_features", "email_support"]

# duration in days -> product identifier
STANDARD_PLANS: Dict[int, str] = {
    30: "com.chahuadev.standard-plugin",
    60: "com.chahuadev.premium-plugin",
    90: "com.chahuadev.professional-plugin",
    120: "com.chahuadev.enterprise-plugin",
}

DEV_PLUGIN_ID = "com.chahuadev.dev-plugin"
DEV_DURATION_DAYS = 7
DEV_FEATURES: List[str] = ["development_mode", "basic_plugins", "testing_tools"]

CUSTOMER_PLUGIN_ID = "com.chahuadev.customer-plugin"
CUSTOMER_DURATION_DAYS = 30
CUSTOMER_FEATURES: List[str] = ["production_use", "standard_plugins", "email_support"]

_FULL_FINGERPRINT = re.compile(r"[0-9a-f]{64}")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w]")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(value: int) -> str:
    digits = []
    while True:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
        if not value:
            return "".join(reversed(digits))


def new_license_id(now_ms: Optional[int] = None) -> str:
    """Return an id like ``CHDEV-M1ABCDEF-0123456789ABCDEF``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{LICENSE_ID_PREFIX}-{_base36(now_ms)}-{secrets.token_hex(8)}".upper()


def build_plugin_license(
    days: int,
    plugin_id: str,
    fingerprint: Optional[str] = None,
    features: Optional[List[str]] = None,
    now: Optional[datetime] = None,
    **extra: str,
) -> LicenseRecord:
    """Create a current-format record valid for *days* days.

    *fingerprint* binds the license to a machine (a full fingerprint hash);
    leave it ``None`` or pass ``"UNBOUND"`` for a portable license.  Extra
    keyword arguments are stored verbatim on the record.
    """
    if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
        raise ValueError("License duration must be a positive number of days")
    if not plugin_id:
        raise ValueError("Plugin ID is required to generate a license")
    if fingerprint and fingerprint != UNBOUND_FINGERPRINT and not _FULL_FINGERPRINT.fullmatch(fingerprint):
        raise ValueError("Fingerprint must be a full machine fingerprint hash")

    return LicenseRecord(
        license_type=PLUGIN_LICENSE_TYPE,
        plugin_id=plugin_id,
        license_id=new_license_id(),
        fingerprint=fingerprint or None,
        generated_at=now or datetime.now(timezone.utc),
        duration_days=days,
        features=list(DEFAULT_FEATURES if features is None else features),
        issuer=DEFAULT_ISSUER,
        schema_version=SCHEMA_VERSION,
        **extra,
    )


# --- Presets -----------------------------------------------------------------

def build_standard_license(days: int, fingerprint: Optional[str] = None) -> LicenseRecord:
    """Record for one of the :data:`STANDARD_PLANS` durations."""
    try:
        plugin_id = STANDARD_PLANS[days]
    except KeyError:
        plans = ", ".join(str(d) for d in sorted(STANDARD_PLANS))
        raise ValueError(f"No standard plan for {days} days (available: {plans})") from None
    return build_plugin_license(days, plugin_id, fingerprint=fingerprint)


def build_dev_license() -> LicenseRecord:
    return build_plugin_license(DEV_DURATION_DAYS, DEV_PLUGIN_ID, features=DEV_FEATURES)


def build_customer_license(fingerprint: Optional[str] = None) -> LicenseRecord:
    return build_plugin_license(
        CUSTOMER_DURATION_DAYS,
        CUSTOMER_PLUGIN_ID,
        fingerprint=fingerprint,
        features=CUSTOMER_FEATURES,
    )


def build_order_license(
    order_id: str,
    customer_email: str,
    customer_name: str,
    product_name: str,
    duration_days: int,
    plugin_id: str = CUSTOMER_PLUGIN_ID,
) -> LicenseRecord:
    """Unbound record for a shop order, carrying the order metadata."""
    return build_plugin_license(
        duration_days,
        plugin_id,
        fingerprint=UNBOUND_FINGERPRINT,
        orderId=order_id,
        customerEmail=customer_email,
        customerName=customer_name,
        productName=product_name,
    )


def order_license_filename(customer_name: str) -> str:
    return f"{_UNSAFE_FILENAME_CHARS.sub('_', customer_name)}_license.key"


def issue_license(
    record: LicenseRecord,
    secret: Secret = DEFAULT_SECRET,
    iterations: int = KDF_ITERATIONS,
) -> str:
    """Encrypt *record* into armored license text."""
    return encode_envelope(record, secret, iterations)


__all__ = [
    "STANDARD_PLANS",
    "DEFAULT_FEATURES",
    "new_license_id",
    "build_plugin_license",
    "build_standard_license",
    "build_dev_license",
    "build_customer_license",
    "build_order_license",
    "order_license_filename",
    "issue_license",
]
