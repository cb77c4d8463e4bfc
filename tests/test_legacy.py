"""Tests for *tiergate.legacy*."""

import pytest

from tiergate.legacy import UNKNOWN_LEGACY_PLUGIN_ID, normalize_record
from tiergate.models import PLUGIN_LICENSE_TYPE, SCHEMA_VERSION, LicenseRecord


@pytest.mark.parametrize(
    "legacy_type, plugin_id",
    [
        ("DEV_LICENSE", "com.chahuadev.legacy-dev-plugin"),
        ("CUSTOMER_LICENSE", "com.chahuadev.legacy-customer-plugin"),
        ("CHAHUADEV_DAILY_LICENSE", "com.chahuadev.legacy-daily-plugin"),
        ("SOMETHING_ELSE", UNKNOWN_LEGACY_PLUGIN_ID),
        (None, UNKNOWN_LEGACY_PLUGIN_ID),
    ],
)
def test_legacy_types_map_to_plugin_ids(legacy_type, plugin_id):
    record = LicenseRecord.model_validate({"type": legacy_type, "durationDays": 30, "version": "2.0"})

    normalized = normalize_record(record)

    assert normalized.plugin_id == plugin_id
    assert normalized.license_type == PLUGIN_LICENSE_TYPE
    assert normalized.schema_version == SCHEMA_VERSION
    assert normalized.duration_days == 30


def test_current_records_pass_through_unchanged():
    record = LicenseRecord.model_validate(
        {"type": PLUGIN_LICENSE_TYPE, "pluginId": "p1", "durationDays": 30, "version": "3.1.0"}
    )
    assert normalize_record(record) is record


def test_missing_type_is_treated_as_legacy():
    record = LicenseRecord.model_validate({"pluginId": "ignored", "durationDays": 7})
    assert normalize_record(record).plugin_id == UNKNOWN_LEGACY_PLUGIN_ID
