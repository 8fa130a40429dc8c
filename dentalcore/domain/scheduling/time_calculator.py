"""Time parsing and interval math for slot computation.

Everything here is pure: no database access, no clock reads. Datetimes are
naive UTC, intervals are half-open ``[start, end)``.
"""

from bisect import bisect_left
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, NamedTuple, Optional

from ...config import CLINIC_CLOSE_TIME, CLINIC_OPEN_TIME, DEFAULT_SLOT_CADENCE_MINUTES
from ...shared.validators import parse_hhmm

MIN_SLOT_STRIDE_MINUTES = 30


class TimeWindow(NamedTuple):
    start: datetime
    end: datetime


def intervals_overlap(
    candidate_start: datetime,
    candidate_end: datetime,
    existing_start: datetime,
    existing_end: datetime,
) -> bool:
    """Three-way overlap test between a candidate window and an existing booking"""
    return (
        # candidate starts inside existing
        (existing_start <= candidate_start < existing_end)
        # candidate ends inside existing
        or (existing_start < candidate_end <= existing_end)
        # candidate fully contains existing
        or (candidate_start <= existing_start and candidate_end >= existing_end)
    )


def slot_stride_minutes(duration_minutes: int, cadence_minutes: Optional[int] = None) -> int:
    """Cursor advance between offered starts: max(30, cadence, duration / 2 rounded half up).

    A finer professional cadence never tightens the stride below 30 minutes;
    a coarser one widens it.
    """
    cadence = cadence_minutes or DEFAULT_SLOT_CADENCE_MINUTES
    return max(MIN_SLOT_STRIDE_MINUTES, cadence, (duration_minutes + 1) // 2)


def iter_candidate_windows(
    open_at: datetime, close_at: datetime, duration_minutes: int, stride_minutes: int
) -> Iterator[TimeWindow]:
    """Yield every [cursor, cursor + duration) that ends no later than close_at"""
    if duration_minutes <= 0 or stride_minutes <= 0:
        raise ValueError("duration and stride must be positive")

    duration = timedelta(minutes=duration_minutes)
    stride = timedelta(minutes=stride_minutes)
    cursor = open_at
    while cursor + duration <= close_at:
        yield TimeWindow(cursor, cursor + duration)
        cursor += stride


class BusyTimeline:
    """Sorted busy intervals answering "does [start, end) hit anything?" in O(log n).

    Intervals are sorted by start and paired with a running maximum of their
    ends: every interval starting before ``end`` sits left of the bisect point,
    and one of them overlaps iff the largest end among them is after ``start``.
    Holds even when stored intervals overlap each other.
    """

    def __init__(self, intervals: Iterable[tuple[datetime, datetime]]):
        ordered = sorted((start, end) for start, end in intervals if end > start)
        self._starts = [start for start, _ in ordered]
        self._max_ends: list[datetime] = []
        running: Optional[datetime] = None
        for _, end in ordered:
            running = end if running is None or end > running else running
            self._max_ends.append(running)

    def __len__(self) -> int:
        return len(self._starts)

    def conflicts(self, start: datetime, end: datetime) -> bool:
        idx = bisect_left(self._starts, end)
        return idx > 0 and self._max_ends[idx - 1] > start


def resolve_working_window(
    day: date,
    working_hours_start: Optional[str] = None,
    working_hours_end: Optional[str] = None,
    weekday_hours: Optional[tuple[str, str, bool]] = None,
) -> Optional[TimeWindow]:
    """
    Opening window for a calendar day.

    Priority: the weekday override (start, end, is_available), then the
    professional's own working hours, then clinic hours from config.
    Returns None when the day is closed.
    """
    if weekday_hours is not None:
        start_raw, end_raw, is_available = weekday_hours
        if not is_available:
            return None
    else:
        start_raw = working_hours_start or CLINIC_OPEN_TIME
        end_raw = working_hours_end or CLINIC_CLOSE_TIME

    open_at = datetime.combine(day, parse_hhmm(start_raw))
    close_at = datetime.combine(day, parse_hhmm(end_raw))
    if close_at <= open_at:
        return None
    return TimeWindow(open_at, close_at)
