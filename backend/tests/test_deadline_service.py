"""
Deadline engine tests.

Verifies:
- Deadline = purchase date + window days; window 0 = ten years out
- Days remaining rounds partial days up
- Urgency buckets and labels at their boundaries
"""

from datetime import datetime, timedelta

import pytest

from retoro.services import deadline_service
from retoro.services.deadline_service import (
    calculate_deadline,
    describe_deadline,
    format_days_remaining,
    get_days_remaining,
    get_urgency_level,
)


# =============================================================================
# DEADLINE CALCULATION
# =============================================================================


class TestCalculateDeadline:

    def test_adds_window_days(self):
        assert calculate_deadline(datetime(2024, 1, 1), 30) == datetime(2024, 1, 31)

    def test_preserves_time_of_day(self):
        purchase = datetime(2024, 3, 10, 15, 45, 12)
        assert calculate_deadline(purchase, 14) == datetime(2024, 3, 24, 15, 45, 12)

    def test_crosses_year_boundary(self):
        assert calculate_deadline(datetime(2023, 12, 20), 30) == datetime(2024, 1, 19)

    def test_zero_window_is_ten_years(self):
        assert calculate_deadline(datetime(2024, 1, 1), 0) == datetime(2034, 1, 1)

    def test_zero_window_from_leap_day(self):
        # 2034 has no Feb 29
        assert calculate_deadline(datetime(2024, 2, 29, 8, 0), 0) == datetime(2034, 3, 1, 8, 0)

    def test_negative_window_rejected(self):
        with pytest.raises(ValueError):
            calculate_deadline(datetime(2024, 1, 1), -1)

    def test_longest_windows(self):
        assert calculate_deadline(datetime(2024, 1, 1), 365) == datetime(2024, 12, 31)


# =============================================================================
# DAYS REMAINING
# =============================================================================


class TestDaysRemaining:
    now = datetime(2024, 6, 1, 12, 0)

    def test_exact_days(self):
        assert get_days_remaining(self.now + timedelta(days=5), now=self.now) == 5

    def test_partial_day_rounds_up(self):
        assert get_days_remaining(self.now + timedelta(days=2, hours=1), now=self.now) == 3
        assert get_days_remaining(self.now + timedelta(minutes=1), now=self.now) == 1

    def test_deadline_now_is_zero(self):
        assert get_days_remaining(self.now, now=self.now) == 0

    def test_past_deadline_is_negative(self):
        assert get_days_remaining(self.now - timedelta(days=3), now=self.now) == -3
        # ceil(-0.5) == 0: still "due today" until a full day has passed
        assert get_days_remaining(self.now - timedelta(hours=12), now=self.now) == 0

    def test_defaults_to_wall_clock(self, monkeypatch):
        monkeypatch.setattr(deadline_service, "utcnow", lambda: self.now)
        assert get_days_remaining(self.now + timedelta(days=10)) == 10


# =============================================================================
# URGENCY AND LABELS
# =============================================================================


class TestUrgency:

    @pytest.mark.parametrize(
        "days,expected",
        [
            (-5, "overdue"),
            (-1, "overdue"),
            (0, "urgent"),
            (2, "urgent"),
            (3, "due_soon"),
            (7, "due_soon"),
            (8, "safe"),
            (3650, "safe"),
        ],
    )
    def test_buckets(self, days, expected):
        assert get_urgency_level(days) == expected

    @pytest.mark.parametrize(
        "days,expected",
        [
            (-1, "Overdue by 1 day"),
            (-4, "Overdue by 4 days"),
            (0, "Due today"),
            (1, "1 day left"),
            (12, "12 days left"),
        ],
    )
    def test_labels(self, days, expected):
        assert format_days_remaining(days) == expected

    def test_describe_deadline(self):
        now = datetime(2024, 1, 1)
        assert describe_deadline(datetime(2024, 1, 3), now=now) == {
            "days_remaining": 2,
            "urgency": "urgent",
            "days_remaining_label": "2 days left",
        }
