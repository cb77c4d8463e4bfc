"""Tests for *tiergate.tiers*."""

from datetime import timedelta

import pytest

from tiergate.errors import IncompleteLicenseError
from tiergate.models import ActivationState, LicenseRecord, TierDecision
from tiergate.tiers import TierPhase, days_remaining, reconcile, tier_expiry, tier_phase


def _record(days, plugin="p1"):
    return LicenseRecord(license_type="PLUGIN_LICENSE", plugin_id=plugin, duration_days=days)


def _active(tier, started, plugins=("p0",)):
    return ActivationState(
        active_tier=tier, tier_activation_date=started, activated_plugins=list(plugins)
    )


def test_unset_state_adopts_any_duration(now):
    state, decision = reconcile(_record(30), ActivationState(), now)
    assert decision is TierDecision.ADOPTED
    assert state.active_tier == 30
    assert state.tier_activation_date == now
    assert state.activated_plugins == ["p1"]


def test_short_license_does_not_downgrade_active_tier(now):
    started = now - timedelta(days=10)
    state, decision = reconcile(_record(30), _active(60, started), now)

    assert decision is TierDecision.UNCHANGED
    assert state.active_tier == 60
    assert state.tier_activation_date == started
    assert state.activated_plugins == ["p0", "p1"]


def test_upgrade_eligible_duration_replaces_shorter_tier(now):
    state, decision = reconcile(_record(90), _active(30, now - timedelta(days=5)), now)
    assert decision is TierDecision.UPGRADED
    assert state.active_tier == 90
    assert state.tier_activation_date == now


def test_non_eligible_longer_duration_does_not_upgrade(now):
    started = now - timedelta(days=1)
    state, decision = reconcile(_record(60), _active(30, started), now)
    assert decision is TierDecision.UNCHANGED
    assert state.active_tier == 30
    assert state.tier_activation_date == started


def test_same_long_tier_renewal_is_accepted_without_reset(now):
    started = now - timedelta(days=40)
    state, decision = reconcile(_record(120), _active(120, started), now)
    assert decision is TierDecision.UNCHANGED
    assert state.tier_activation_date == started


def test_expired_tier_adopts_new_duration_and_keeps_history(now):
    state, decision = reconcile(_record(30, "p2"), _active(90, now - timedelta(days=100)), now)
    assert decision is TierDecision.ADOPTED
    assert state.active_tier == 30
    assert state.tier_activation_date == now
    assert state.activated_plugins == ["p0", "p2"]


def test_plugin_registration_is_idempotent(now):
    state, _ = reconcile(_record(30), ActivationState(), now)
    state, _ = reconcile(_record(30), state, now + timedelta(hours=1))
    assert state.activated_plugins == ["p1"]


def test_custom_upgrade_tiers(now):
    state, decision = reconcile(
        _record(60), _active(30, now - timedelta(days=1)), now, upgrade_tiers={60}
    )
    assert decision is TierDecision.UPGRADED
    assert state.active_tier == 60


@pytest.mark.parametrize(
    "record",
    [
        LicenseRecord(plugin_id="p1"),
        LicenseRecord(duration_days=30),
    ],
)
def test_incomplete_record_is_rejected(now, record):
    with pytest.raises(IncompleteLicenseError):
        reconcile(record, ActivationState(), now)


def test_reconcile_does_not_mutate_input(now):
    before = _active(30, now - timedelta(days=1))
    reconcile(_record(90, "p9"), before, now)
    assert before.active_tier == 30
    assert before.activated_plugins == ["p0"]


def test_phases(now):
    assert tier_phase(ActivationState(), now) is TierPhase.UNSET
    assert tier_phase(_active(30, now - timedelta(days=29)), now) is TierPhase.ACTIVE
    assert tier_phase(_active(30, now - timedelta(days=30)), now) is TierPhase.EXPIRED
    assert tier_phase(ActivationState(active_tier=30), now) is TierPhase.EXPIRED


def test_days_remaining_rounds_up_and_floors_at_zero(now):
    assert days_remaining(now + timedelta(days=90), now) == 90
    assert days_remaining(now + timedelta(days=4, hours=1), now) == 5
    assert days_remaining(now - timedelta(days=3), now) == 0


def test_tier_expiry(now):
    assert tier_expiry(ActivationState()) is None
    assert tier_expiry(_active(60, now)) == now + timedelta(days=60)
