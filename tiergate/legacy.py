"""Migration of pre-plugin license records.

Records issued before the plugin system carry a ``type`` such as
``DEV_LICENSE`` and no ``pluginId``.  They are mapped onto synthetic,
namespaced product identifiers so they can take part in tier
reconciliation like any other license.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Optional

from .models import PLUGIN_LICENSE_TYPE, SCHEMA_VERSION, LicenseRecord

logger = logging.getLogger(__name__)


class LegacyLicenseType(str, Enum):
    DEV = "DEV_LICENSE"
    CUSTOMER = "CUSTOMER_LICENSE"
    DAILY = "CHAHUADEV_DAILY_LICENSE"


LEGACY_PLUGIN_IDS: Dict[LegacyLicenseType, str] = {
    LegacyLicenseType.DEV: "com.chahuadev.legacy-dev-plugin",
    LegacyLicenseType.CUSTOMER: "com.chahuadev.legacy-customer-plugin",
    LegacyLicenseType.DAILY: "com.chahuadev.legacy-daily-plugin",
}

UNKNOWN_LEGACY_PLUGIN_ID = "com.chahuadev.legacy-unknown-plugin"


def legacy_plugin_id(license_type: Optional[str]) -> str:
    """Return the product identifier for a legacy ``type`` tag."""
    try:
        return LEGACY_PLUGIN_IDS[LegacyLicenseType(license_type)]
    except ValueError:
        return UNKNOWN_LEGACY_PLUGIN_ID


def normalize_record(record: LicenseRecord) -> LicenseRecord:
    """Bring *record* to the current schema.  Never raises."""
    if record.license_type == PLUGIN_LICENSE_TYPE:
        return record

    plugin_id = legacy_plugin_id(record.license_type)
    logger.info("Converted legacy %s license to plugin %s", record.license_type, plugin_id)
    return record.model_copy(
        update={
            "license_type": PLUGIN_LICENSE_TYPE,
            "plugin_id": plugin_id,
            "schema_version": SCHEMA_VERSION,
        }
    )


__all__ = [
    "LegacyLicenseType",
    "LEGACY_PLUGIN_IDS",
    "UNKNOWN_LEGACY_PLUGIN_ID",
    "legacy_plugin_id",
    "normalize_record",
]
