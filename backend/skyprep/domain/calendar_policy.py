"""
Calendar policy: which days and times may hold a session.

Pure rules, no database access. The caller looks holidays up and passes
the result in; "now" always comes from an injected clock value.

Rules, all in the operating time zone:
    - Sunday is closed.
    - Saturday opens 09:00 and closes 16:00.
    - Monday to Friday open 09:00 and close 21:00.
    - Latest start is 19:45 on weekdays and 15:15 on Saturday; the end
      may not pass closing.
    - Start and end fall on the same date, end strictly after start.
    - Student requests must be 1..10 whole days ahead (booking window).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import TYPE_CHECKING, Optional

import pytz

from ..core.constants import (
    OPENING_TIME,
    SATURDAY_CLOSING_TIME,
    SATURDAY_LATEST_START,
    WEEKDAY_CLOSING_TIME,
    WEEKDAY_LATEST_START,
)
from ..core.timezone_utils import combine_local, ensure_utc

if TYPE_CHECKING:
    from ..core.config import Settings

SATURDAY = 5
SUNDAY = 6


class PolicyRule(str, Enum):
    INTERVAL_ORDER = "interval_order"
    SAME_DAY = "same_day"
    SUNDAY_CLOSED = "sunday_closed"
    HOLIDAY = "holiday"
    BEFORE_OPENING = "before_opening"
    START_TOO_LATE = "start_too_late"
    AFTER_CLOSING = "after_closing"
    IN_PAST = "in_past"
    TOO_SOON = "booking_window_too_soon"
    TOO_FAR = "booking_window_too_far"


@dataclass(frozen=True)
class PolicyDecision:
    bookable: bool
    rule: Optional[PolicyRule] = None
    message: Optional[str] = None

    @classmethod
    def allow(cls) -> "PolicyDecision":
        return cls(True)

    @classmethod
    def deny(cls, rule: PolicyRule, message: str) -> "PolicyDecision":
        return cls(False, rule, message)


@dataclass(frozen=True)
class OpenInterval:
    """The bookable ``[start, end)`` of one date."""

    start: datetime
    end: datetime


def _clock_label(at: time) -> str:
    hour = at.hour % 12 or 12
    suffix = "AM" if at.hour < 12 else "PM"
    return f"{hour}:{at.minute:02d} {suffix}"


@dataclass(frozen=True)
class CalendarPolicy:
    tz: pytz.BaseTzInfo
    window_min_days: int = 1
    window_max_days: int = 10
    opening: time = OPENING_TIME
    weekday_closing: time = WEEKDAY_CLOSING_TIME
    saturday_closing: time = SATURDAY_CLOSING_TIME
    weekday_latest_start: time = WEEKDAY_LATEST_START
    saturday_latest_start: time = SATURDAY_LATEST_START

    @classmethod
    def from_settings(cls, cfg: Optional["Settings"] = None) -> "CalendarPolicy":
        from ..core.config import settings as default_settings

        cfg = cfg or default_settings
        return cls(
            tz=pytz.timezone(cfg.operating_timezone),
            window_min_days=cfg.booking_window_min_days,
            window_max_days=cfg.booking_window_max_days,
        )

    # ------------------------------------------------------------------
    # Day-level rules
    # ------------------------------------------------------------------

    def closing_time(self, day: date) -> Optional[time]:
        """Closing wall-clock time for ``day``; None when the weekday is closed."""
        weekday = day.weekday()
        if weekday == SUNDAY:
            return None
        if weekday == SATURDAY:
            return self.saturday_closing
        return self.weekday_closing

    def check_day(self, day: date, is_holiday: bool = False) -> PolicyDecision:
        if day.weekday() == SUNDAY:
            return PolicyDecision.deny(
                PolicyRule.SUNDAY_CLOSED, "Sessions cannot be scheduled on Sundays"
            )
        if is_holiday:
            return PolicyDecision.deny(
                PolicyRule.HOLIDAY, f"{day.isoformat()} is a public holiday"
            )
        return PolicyDecision.allow()

    def open_interval(self, day: date, is_holiday: bool = False) -> Optional[OpenInterval]:
        """Raw open window for ``day``, or None when the day is closed."""
        if not self.check_day(day, is_holiday).bookable:
            return None
        closing = self.closing_time(day)
        if closing is None:
            return None
        return OpenInterval(
            start=combine_local(day, self.opening, self.tz),
            end=combine_local(day, closing, self.tz),
        )

    def latest_start(self, day: date) -> Optional[datetime]:
        weekday = day.weekday()
        if weekday == SUNDAY:
            return None
        cutoff = self.saturday_latest_start if weekday == SATURDAY else self.weekday_latest_start
        return combine_local(day, cutoff, self.tz)

    # ------------------------------------------------------------------
    # Interval rules
    # ------------------------------------------------------------------

    def check_interval(
        self, start: datetime, end: datetime, is_holiday: bool = False
    ) -> PolicyDecision:
        """Decide whether ``[start, end)`` fits inside the day's bookable window."""
        start_utc, end_utc = ensure_utc(start), ensure_utc(end)
        if end_utc <= start_utc:
            return PolicyDecision.deny(
                PolicyRule.INTERVAL_ORDER, "Session end time must be after start time"
            )

        local_start = start_utc.astimezone(self.tz)
        local_end = end_utc.astimezone(self.tz)
        day = local_start.date()
        if local_end.date() != day:
            return PolicyDecision.deny(
                PolicyRule.SAME_DAY, "Session must start and end on the same day"
            )

        day_decision = self.check_day(day, is_holiday)
        if not day_decision.bookable:
            return day_decision

        window = self.open_interval(day)
        latest_start = self.latest_start(day)
        if window is None or latest_start is None:
            return PolicyDecision.deny(PolicyRule.SUNDAY_CLOSED, "Day is closed for sessions")

        hours = (
            f"between {_clock_label(self.opening)} and "
            f"{_clock_label(latest_start.astimezone(self.tz).time())}"
        )
        day_label = "On Saturdays, session" if day.weekday() == SATURDAY else "Session"
        if start_utc < window.start:
            return PolicyDecision.deny(
                PolicyRule.BEFORE_OPENING, f"{day_label} start time must be {hours}"
            )
        if start_utc > latest_start:
            return PolicyDecision.deny(
                PolicyRule.START_TOO_LATE, f"{day_label} start time must be {hours}"
            )
        if end_utc > window.end:
            closing_label = _clock_label(window.end.astimezone(self.tz).time())
            return PolicyDecision.deny(
                PolicyRule.AFTER_CLOSING, f"{day_label} cannot extend beyond {closing_label}"
            )
        return PolicyDecision.allow()

    def check_not_past(self, start: datetime, now: datetime) -> PolicyDecision:
        if ensure_utc(start) <= ensure_utc(now):
            return PolicyDecision.deny(PolicyRule.IN_PAST, "Cannot schedule sessions in the past")
        return PolicyDecision.allow()

    def days_ahead(self, start: datetime, now: datetime) -> int:
        """Whole calendar days between today and the session date."""
        session_day = ensure_utc(start).astimezone(self.tz).date()
        today = ensure_utc(now).astimezone(self.tz).date()
        return (session_day - today).days

    def check_booking_window(self, start: datetime, now: datetime) -> PolicyDecision:
        """Lead-time rule for student-initiated requests."""
        delta = self.days_ahead(start, now)
        if delta < 0:
            return PolicyDecision.deny(PolicyRule.IN_PAST, "Cannot schedule sessions in the past")
        if delta < self.window_min_days:
            return PolicyDecision.deny(
                PolicyRule.TOO_SOON,
                "Sessions must be scheduled at least one day in advance",
            )
        if delta > self.window_max_days:
            return PolicyDecision.deny(
                PolicyRule.TOO_FAR,
                f"Sessions can only be scheduled up to {self.window_max_days} days in advance",
            )
        return PolicyDecision.allow()
