"""Tests for *tiergate.issuer*."""

import re

import pytest

from tiergate.envelope import decode_envelope
from tiergate.issuer import (
    STANDARD_PLANS,
    build_customer_license,
    build_dev_license,
    build_order_license,
    build_plugin_license,
    build_standard_license,
    issue_license,
    new_license_id,
    order_license_filename,
)
from tiergate.models import UNBOUND_FINGERPRINT


def test_license_id_format():
    license_id = new_license_id(now_ms=0)
    assert re.fullmatch(r"CHDEV-0-[0-9A-F]{16}", license_id)
    assert new_license_id() != new_license_id()


def test_plugin_license_defaults():
    record = build_plugin_license(30, "com.example.plugin")
    assert record.license_type == "PLUGIN_LICENSE"
    assert record.duration_days == 30
    assert record.fingerprint is None
    assert not record.is_bound
    assert record.features == ["standard_features", "email_support"]
    assert record.schema_version == "3.1.0"
    assert record.generated_at.tzinfo is not None


@pytest.mark.parametrize("days", [0, -1, 1.5, True])
def test_invalid_duration_is_rejected(days):
    with pytest.raises(ValueError):
        build_plugin_license(days, "p1")


def test_plugin_id_is_required():
    with pytest.raises(ValueError):
        build_plugin_license(30, "")


def test_fingerprint_must_be_full_hash():
    with pytest.raises(ValueError):
        build_plugin_license(30, "p1", fingerprint="abc123")
    assert build_plugin_license(30, "p1", fingerprint="c" * 64).is_bound


@pytest.mark.parametrize("days", sorted(STANDARD_PLANS))
def test_standard_plans(days):
    record = build_standard_license(days)
    assert record.plugin_id == STANDARD_PLANS[days]
    assert record.duration_days == days


def test_unknown_standard_plan():
    with pytest.raises(ValueError, match="No standard plan"):
        build_standard_license(45)


def test_dev_and_customer_presets():
    dev = build_dev_license()
    assert dev.duration_days == 7
    assert "development_mode" in dev.features

    customer = build_customer_license()
    assert customer.duration_days == 30
    assert customer.plugin_id == "com.chahuadev.customer-plugin"


def test_order_license_is_unbound_and_carries_metadata():
    record = build_order_license("ORD-7", "buyer@example.com", "Jane Doe", "DB Manager", 120)
    assert record.fingerprint == UNBOUND_FINGERPRINT
    assert not record.is_bound
    wire = record.to_wire()
    assert wire["orderId"] == "ORD-7"
    assert wire["customerEmail"] == "buyer@example.com"
    assert wire["durationDays"] == 120


def test_order_license_filename():
    assert order_license_filename("Jane Doe/Ltd.") == "Jane_Doe_Ltd__license.key"


def test_issue_license_round_trips():
    record = build_dev_license()
    assert decode_envelope(issue_license(record)) == record
