"""
Half-open interval helpers and slot generation.

Every interval is ``[start, end)``: touching endpoints never overlap, so
back-to-back sessions are allowed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Iterator, Optional, Sequence, Tuple

import pytz

Interval = Tuple[datetime, datetime]


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    return start < other_end and end > other_start


@dataclass(frozen=True, order=True)
class Slot:
    start: datetime
    end: datetime

    def localized(self, tz: pytz.BaseTzInfo) -> "Slot":
        return Slot(self.start.astimezone(tz), self.end.astimezone(tz))


def subtract_intervals(window: Interval, busy: Iterable[Interval]) -> Iterator[Interval]:
    """
    Yield the parts of ``window`` not covered by any ``busy`` interval.

    Busy intervals may overlap each other or stick out of the window.
    """
    window_start, window_end = window
    cursor = window_start
    for busy_start, busy_end in sorted(busy):
        if busy_end <= cursor or busy_start >= window_end:
            continue
        if busy_start > cursor:
            yield cursor, busy_start
        cursor = max(cursor, busy_end)
        if cursor >= window_end:
            return
    if cursor < window_end:
        yield cursor, window_end


def slice_interval(interval: Interval, duration: timedelta) -> Iterator[Slot]:
    """Consecutive ``duration`` slots from the start; a shorter remainder is dropped."""
    if duration <= timedelta(0):
        raise ValueError("duration must be positive")
    start, end = interval
    cursor = start
    while cursor + duration <= end:
        yield Slot(cursor, cursor + duration)
        cursor += duration


def generate_slots(window: Interval, busy: Iterable[Interval], duration: timedelta) -> Iterator[Slot]:
    for gap in subtract_intervals(window, busy):
        yield from slice_interval(gap, duration)


class SlotSequence:
    """
    Lazy, restartable slot listing for one window.

    Iterating twice recomputes the same slots from the same inputs.
    Arithmetic happens in UTC; ``tz`` only affects the emitted values.
    Slots starting after ``latest_start`` are not emitted.
    """

    def __init__(
        self,
        window: Interval,
        busy: Sequence[Interval],
        duration: timedelta,
        tz: Optional[pytz.BaseTzInfo] = None,
        latest_start: Optional[datetime] = None,
    ) -> None:
        if duration <= timedelta(0):
            raise ValueError("duration must be positive")
        self.window = (window[0].astimezone(pytz.UTC), window[1].astimezone(pytz.UTC))
        self.busy = tuple((s.astimezone(pytz.UTC), e.astimezone(pytz.UTC)) for s, e in busy)
        self.duration = duration
        self.tz = tz
        self.latest_start = (
            latest_start.astimezone(pytz.UTC) if latest_start is not None else None
        )

    def __iter__(self) -> Iterator[Slot]:
        for slot in generate_slots(self.window, self.busy, self.duration):
            # chronological, so nothing after this can start earlier
            if self.latest_start is not None and slot.start > self.latest_start:
                return
            yield slot.localized(self.tz) if self.tz is not None else slot

    def __repr__(self) -> str:
        return f"<SlotSequence window={self.window} busy={len(self.busy)} duration={self.duration}>"
