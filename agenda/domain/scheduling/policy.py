"""
Cancellation policy engine

classify() and compute_fee() are pure: they take the policy values as input
and never touch the database. Loading and saving a unit's policy lives in the
two helpers at the bottom of the module.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...config import (
    DEFAULT_GRACE_PERIOD_MINUTES,
    DEFAULT_LATE_FEE_PERCENT,
    DEFAULT_NO_SHOW_FEE_PERCENT,
)
from .exceptions import NotFoundError, ValidationError
from .repository import SchedulingRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicyValues:
    grace_period_minutes: int = DEFAULT_GRACE_PERIOD_MINUTES
    late_cancellation_fee_percent: int = DEFAULT_LATE_FEE_PERCENT
    no_show_fee_percent: int = DEFAULT_NO_SHOW_FEE_PERCENT


@dataclass(frozen=True)
class LatenessClassification:
    minutes_before: int
    is_late: bool


def classify(scheduled_at: datetime, cancelled_at: datetime, policy: PolicyValues) -> LatenessClassification:
    """
    Classify a cancellation against the unit's grace period.

    minutes_before is signed: negative when the cancellation happened after the
    scheduled start. Cancelling exactly grace_period_minutes ahead is on time.
    No-show is never inferred here; callers flag it explicitly.
    """
    seconds = (scheduled_at - cancelled_at).total_seconds()
    # Half-up rounding on the minute, for negative gaps too
    minutes_before = math.floor(seconds / 60 + 0.5)
    return LatenessClassification(
        minutes_before=minutes_before,
        is_late=minutes_before < policy.grace_period_minutes,
    )


def compute_fee(service_price: float, is_late: bool, is_no_show: bool, policy: PolicyValues) -> float:
    """Amount owed for a cancellation; zero unless it was late or a no-show"""
    if is_no_show:
        percent = policy.no_show_fee_percent
    elif is_late:
        percent = policy.late_cancellation_fee_percent
    else:
        return 0.0
    return round((service_price or 0) * percent / 100, 2)


def get_policy(db: Session, unit_id: int) -> PolicyValues:
    """Return the unit's saved policy, or the configured defaults when it has none"""
    row = SchedulingRepository.get_cancellation_policy(db, unit_id)
    if row is None:
        return PolicyValues()
    return PolicyValues(
        grace_period_minutes=row.grace_period_minutes,
        late_cancellation_fee_percent=row.late_cancellation_fee_percent,
        no_show_fee_percent=row.no_show_fee_percent,
    )


def _check_percent(value: int, field: str) -> None:
    if value < 0 or value > 100:
        raise ValidationError(f"{field} must be between 0 and 100", field=field)


def update_policy(
    db: Session,
    unit_id: int,
    grace_period_minutes: Optional[int] = None,
    late_cancellation_fee_percent: Optional[int] = None,
    no_show_fee_percent: Optional[int] = None,
) -> PolicyValues:
    """Save a unit's cancellation policy; out-of-range values are rejected, not clamped"""
    if SchedulingRepository.get_unit(db, unit_id) is None:
        raise NotFoundError("Unit", unit_id)

    current = get_policy(db, unit_id)
    values = PolicyValues(
        grace_period_minutes=(
            current.grace_period_minutes if grace_period_minutes is None else grace_period_minutes
        ),
        late_cancellation_fee_percent=(
            current.late_cancellation_fee_percent
            if late_cancellation_fee_percent is None
            else late_cancellation_fee_percent
        ),
        no_show_fee_percent=(
            current.no_show_fee_percent if no_show_fee_percent is None else no_show_fee_percent
        ),
    )

    if values.grace_period_minutes < 0:
        raise ValidationError("grace_period_minutes cannot be negative", field="grace_period_minutes")
    _check_percent(values.late_cancellation_fee_percent, "late_cancellation_fee_percent")
    _check_percent(values.no_show_fee_percent, "no_show_fee_percent")

    SchedulingRepository.save_cancellation_policy(
        db,
        unit_id,
        grace_period_minutes=values.grace_period_minutes,
        late_cancellation_fee_percent=values.late_cancellation_fee_percent,
        no_show_fee_percent=values.no_show_fee_percent,
    )
    logger.info(f"✅ Cancellation policy saved for unit {unit_id}: {values}")
    return values
