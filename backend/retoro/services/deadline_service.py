# Overview: Return-deadline arithmetic and urgency presentation; pure functions, no database work.

"""
Return Deadline Engine

A retailer's policy is a return window in days. The deadline is the
purchase instant plus that many calendar days. A window of 0 means the
retailer takes returns indefinitely; that is stored as a deadline ten years
out so sorting and "days remaining" never need a special case.

URGENCY BUCKETS (inclusive, the more urgent bucket wins at 2 and 7):
- overdue:  days_remaining < 0
- urgent:   0..2
- due_soon: 3..7
- safe:     > 7

Datetimes are naive UTC throughout (see time_utils.utcnow).
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from ..time_utils import utcnow


UNLIMITED_WINDOW_YEARS = 10

URGENCY_OVERDUE = "overdue"
URGENCY_URGENT = "urgent"
URGENCY_DUE_SOON = "due_soon"
URGENCY_SAFE = "safe"

URGENT_MAX_DAYS = 2
DUE_SOON_MAX_DAYS = 7

_SECONDS_PER_DAY = 24 * 60 * 60


def _add_years(value: datetime, years: int) -> datetime:
    """Add calendar years; Feb 29 rolls forward to Mar 1 in non-leap years."""
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        return value.replace(year=value.year + years, month=3, day=1)


def calculate_deadline(purchase_date: datetime, return_window_days: int) -> datetime:
    """
    Compute the return deadline for a purchase.

    Args:
        purchase_date: Purchase instant (naive UTC)
        return_window_days: Retailer window in days; 0 means unlimited

    Raises:
        ValueError: If return_window_days is negative
    """
    if return_window_days < 0:
        raise ValueError("return_window_days must be >= 0")

    if return_window_days == 0:
        return _add_years(purchase_date, UNLIMITED_WINDOW_YEARS)

    return purchase_date + timedelta(days=return_window_days)


def get_days_remaining(deadline: datetime, now: datetime | None = None) -> int:
    """
    Whole days until the deadline, rounded up. Negative once it has passed.

    `now` defaults to the wall clock at call time.
    """
    if now is None:
        now = utcnow()
    delta = (deadline - now).total_seconds() / _SECONDS_PER_DAY
    return int(math.ceil(delta))


def get_urgency_level(days_remaining: int) -> str:
    if days_remaining < 0:
        return URGENCY_OVERDUE
    if days_remaining <= URGENT_MAX_DAYS:
        return URGENCY_URGENT
    if days_remaining <= DUE_SOON_MAX_DAYS:
        return URGENCY_DUE_SOON
    return URGENCY_SAFE


def format_days_remaining(days_remaining: int) -> str:
    if days_remaining < 0:
        overdue_days = abs(days_remaining)
        unit = "day" if overdue_days == 1 else "days"
        return f"Overdue by {overdue_days} {unit}"
    if days_remaining == 0:
        return "Due today"
    if days_remaining == 1:
        return "1 day left"
    return f"{days_remaining} days left"


def describe_deadline(deadline: datetime, now: datetime | None = None) -> dict:
    """Derived presentation fields attached to serialized return items."""
    days = get_days_remaining(deadline, now=now)
    return {
        "days_remaining": days,
        "urgency": get_urgency_level(days),
        "days_remaining_label": format_days_remaining(days),
    }
