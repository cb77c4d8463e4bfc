"""Tier reconciliation: merge a new license into activation history.

The persisted state moves between three phases:

* **unset**   – ``activeTier == 0``, nothing activated yet;
* **active**  – ``activeTier`` days counted from ``tierActivationDate``
  have not run out;
* **expired** – the active window is over.  Behaves like *unset* for tier
  purposes but keeps the ``activatedPlugins`` history.

A new license establishes its tier from unset/expired.  While a tier is
active only an upgrade-eligible duration that is longer than the current
tier replaces it; every other license is accepted without touching the
tier, so a short license can never shorten a longer commitment.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from enum import Enum
from typing import AbstractSet, NamedTuple, Optional

from .errors import IncompleteLicenseError
from .models import ActivationState, LicenseRecord, TierDecision

logger = logging.getLogger(__name__)

# The two longest standard plans may replace an active, shorter tier.
DEFAULT_UPGRADE_TIERS = frozenset({90, 120})

ONE_DAY = timedelta(days=1)


class TierPhase(str, Enum):
    UNSET = "unset"
    ACTIVE = "active"
    EXPIRED = "expired"


class Reconciliation(NamedTuple):
    state: ActivationState
    decision: TierDecision


def tier_expiry(state: ActivationState) -> Optional[datetime]:
    if not state.active_tier or state.tier_activation_date is None:
        return None
    return state.tier_activation_date + timedelta(days=state.active_tier)


def tier_phase(state: ActivationState, now: datetime) -> TierPhase:
    if not state.active_tier:
        return TierPhase.UNSET
    expiry = tier_expiry(state)
    if expiry is None or now >= expiry:
        return TierPhase.EXPIRED
    return TierPhase.ACTIVE


def days_remaining(expires_at: datetime, now: datetime) -> int:
    """Whole days left until *expires_at*, rounded up and floored at zero."""
    return max(0, math.ceil((expires_at - now) / ONE_DAY))


def reconcile(
    record: LicenseRecord,
    state: ActivationState,
    now: datetime,
    upgrade_tiers: AbstractSet[int] = DEFAULT_UPGRADE_TIERS,
) -> Reconciliation:
    """Return the new activation state after presenting *record*.

    *record* must already be normalized.  Pure function: persisting the
    result is the caller's job.
    """
    if not record.plugin_id or not record.duration_days:
        raise IncompleteLicenseError("Invalid or incomplete license key")

    duration = record.duration_days
    phase = tier_phase(state, now)

    if phase is not TierPhase.ACTIVE:
        decision = TierDecision.ADOPTED
    elif duration in upgrade_tiers and duration > state.active_tier:
        decision = TierDecision.UPGRADED
        logger.info("Tier upgrade from %s to %s days", state.active_tier, duration)
    else:
        decision = TierDecision.UNCHANGED
        logger.info(
            "License accepted (%sd) but tier unchanged (%sd active)",
            duration,
            state.active_tier,
        )

    update = {}
    if decision is not TierDecision.UNCHANGED:
        update["active_tier"] = duration
        update["tier_activation_date"] = now

    plugins = list(state.activated_plugins)
    if record.plugin_id not in plugins:
        plugins.append(record.plugin_id)
        logger.info("Plugin %s added to activated plugins", record.plugin_id)
    update["activated_plugins"] = plugins

    return Reconciliation(state=state.model_copy(update=update), decision=decision)


__all__ = [
    "DEFAULT_UPGRADE_TIERS",
    "TierPhase",
    "Reconciliation",
    "tier_expiry",
    "tier_phase",
    "days_remaining",
    "reconcile",
]
