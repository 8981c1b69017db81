"""Unit tests for the calendar policy rules."""

from datetime import date, datetime, time, timedelta

import pytest
import pytz

from skyprep.core.timezone_utils import combine_local
from skyprep.domain.calendar_policy import CalendarPolicy, PolicyRule

IST = pytz.timezone("Asia/Kolkata")
MONDAY = date(2024, 6, 10)
SATURDAY = date(2024, 6, 8)
SUNDAY = date(2024, 6, 9)


def local(day: date, hour: int, minute: int = 0) -> datetime:
    return combine_local(day, time(hour, minute), IST)


@pytest.fixture
def policy() -> CalendarPolicy:
    return CalendarPolicy(tz=IST)


@pytest.mark.unit
class TestDayRules:
    def test_sunday_is_closed(self, policy):
        decision = policy.check_day(SUNDAY)
        assert not decision.bookable
        assert decision.rule == PolicyRule.SUNDAY_CLOSED
        assert policy.open_interval(SUNDAY) is None

    def test_holiday_is_closed(self, policy):
        decision = policy.check_day(MONDAY, is_holiday=True)
        assert decision.rule == PolicyRule.HOLIDAY
        assert policy.open_interval(MONDAY, is_holiday=True) is None

    def test_weekday_window(self, policy):
        window = policy.open_interval(MONDAY)
        assert window.start == local(MONDAY, 9)
        assert window.end == local(MONDAY, 21)

    def test_saturday_closes_early(self, policy):
        window = policy.open_interval(SATURDAY)
        assert window.end == local(SATURDAY, 16)
        assert policy.latest_start(SATURDAY) == local(SATURDAY, 15, 15)

    def test_weekday_latest_start(self, policy):
        assert policy.latest_start(MONDAY) == local(MONDAY, 19, 45)
        assert policy.latest_start(SUNDAY) is None


@pytest.mark.unit
class TestIntervalRules:
    def test_accepts_interval_inside_business_hours(self, policy):
        assert policy.check_interval(local(MONDAY, 9), local(MONDAY, 10, 15)).bookable

    def test_accepts_session_ending_exactly_at_closing(self, policy):
        assert policy.check_interval(local(MONDAY, 19, 45), local(MONDAY, 21)).bookable

    @pytest.mark.parametrize(
        "start, end, rule",
        [
            ((10, 0), (9, 0), PolicyRule.INTERVAL_ORDER),
            ((8, 30), (9, 45), PolicyRule.BEFORE_OPENING),
            ((20, 0), (20, 45), PolicyRule.START_TOO_LATE),
            ((19, 30), (21, 15), PolicyRule.AFTER_CLOSING),
        ],
    )
    def test_rejects_out_of_hours(self, policy, start, end, rule):
        decision = policy.check_interval(local(MONDAY, *start), local(MONDAY, *end))
        assert not decision.bookable
        assert decision.rule == rule

    @pytest.mark.parametrize("start", [(15, 0), (15, 15)])
    def test_saturday_session_ending_at_four(self, policy, start):
        assert policy.check_interval(local(SATURDAY, *start), local(SATURDAY, 16)).bookable

    def test_saturday_past_four_is_rejected(self, policy):
        decision = policy.check_interval(local(SATURDAY, 15), local(SATURDAY, 16, 15))
        assert decision.rule == PolicyRule.AFTER_CLOSING
        assert "Saturdays" in decision.message

    def test_saturday_start_after_cutoff_is_rejected(self, policy):
        decision = policy.check_interval(local(SATURDAY, 15, 30), local(SATURDAY, 15, 55))
        assert decision.rule == PolicyRule.START_TOO_LATE
        assert "3:15 PM" in decision.message

    def test_sunday_interval_is_rejected(self, policy):
        decision = policy.check_interval(local(SUNDAY, 10), local(SUNDAY, 11, 15))
        assert decision.rule == PolicyRule.SUNDAY_CLOSED

    def test_holiday_interval_is_rejected(self, policy):
        decision = policy.check_interval(local(MONDAY, 10), local(MONDAY, 11, 15), is_holiday=True)
        assert decision.rule == PolicyRule.HOLIDAY

    def test_interval_across_midnight_is_rejected(self, policy):
        decision = policy.check_interval(local(MONDAY, 20), local(MONDAY, 20) + timedelta(hours=5))
        assert decision.rule == PolicyRule.SAME_DAY

    def test_rules_apply_in_operating_timezone(self, policy):
        # 03:30 UTC is 09:00 in Kolkata
        start = pytz.UTC.localize(datetime(2024, 6, 10, 3, 30))
        assert policy.check_interval(start, start + timedelta(minutes=75)).bookable


@pytest.mark.unit
class TestBookingWindow:
    NOW = local(date(2024, 6, 3), 8)

    def test_same_day_request_is_too_soon(self, policy):
        decision = policy.check_booking_window(local(date(2024, 6, 3), 15), self.NOW)
        assert decision.rule == PolicyRule.TOO_SOON

    def test_twelve_days_out_is_too_far(self, policy):
        decision = policy.check_booking_window(local(date(2024, 6, 15), 10), self.NOW)
        assert decision.rule == PolicyRule.TOO_FAR

    @pytest.mark.parametrize("days", [1, 7, 10])
    def test_inside_window(self, policy, days):
        start = local(date(2024, 6, 3) + timedelta(days=days), 10)
        assert policy.check_booking_window(start, self.NOW).bookable

    def test_eleven_days_is_outside_window(self, policy):
        start = local(date(2024, 6, 14), 10)
        assert policy.check_booking_window(start, self.NOW).rule == PolicyRule.TOO_FAR

    def test_past_date(self, policy):
        start = local(date(2024, 6, 1), 10)
        assert policy.check_booking_window(start, self.NOW).rule == PolicyRule.IN_PAST

    def test_check_not_past(self, policy):
        assert policy.check_not_past(local(date(2024, 6, 3), 9), self.NOW).bookable
        assert policy.check_not_past(self.NOW, self.NOW).rule == PolicyRule.IN_PAST

    def test_days_ahead_uses_local_dates(self, policy):
        # 23:30 local on Monday is still Monday even though it is 18:00 UTC
        late_monday = local(date(2024, 6, 3), 23, 30)
        assert policy.days_ahead(late_monday, self.NOW) == 0
