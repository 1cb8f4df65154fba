from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatter_bonus.errors import InvalidRuleConfiguration, WindowResolutionFailure
from chatter_bonus.models.shift import Shift


logger = logging.getLogger(__name__)

WINDOW_TYPES = ("calendar_day", "calendar_week", "calendar_month")

UTC = ZoneInfo("UTC")


@dataclass(frozen=True)
class BonusWindow:
    start: datetime
    end: datetime
    reason: str = "calendar"

    def contains(self, instant: datetime) -> bool:
        instant = as_utc_aware(instant)
        return self.start <= instant < self.end

    @property
    def start_naive(self) -> datetime:
        return to_utc_naive(self.start)

    @property
    def end_naive(self) -> datetime:
        return to_utc_naive(self.end)


@dataclass(frozen=True)
class ShiftMatch:
    start: datetime | None = None
    end: datetime | None = None
    # set when no shift matched: first shift of the day starting after as_of
    next_start: datetime | None = None

    @property
    def found(self) -> bool:
        return self.start is not None and self.end is not None


# (as_of, day_start, day_end) -> ShiftMatch
ShiftLookup = Callable[[datetime, datetime, datetime], "ShiftMatch | None"]


def as_utc_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_utc_naive(dt: datetime) -> datetime:
    return as_utc_aware(dt).replace(tzinfo=None)


def get_zone(timezone: str) -> ZoneInfo:
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise WindowResolutionFailure(f"Unknown timezone: {timezone}", timezone=timezone) from e


def _local_midnight(d: date, tz: ZoneInfo) -> datetime:
    return datetime(d.year, d.month, d.day, tzinfo=tz).astimezone(UTC)


def _calendar_bounds(window_type: str, local_date: date) -> tuple[date, date]:
    if window_type == "calendar_day":
        return local_date, local_date + timedelta(days=1)
    if window_type == "calendar_week":
        monday = local_date - timedelta(days=local_date.weekday())
        return monday, monday + timedelta(days=7)
    if window_type == "calendar_month":
        first = local_date.replace(day=1)
        if first.month == 12:
            return first, first.replace(year=first.year + 1, month=1)
        return first, first.replace(month=first.month + 1)
    raise InvalidRuleConfiguration(f"Unsupported window_type: {window_type}", field="window_type")


def compute_window(
    window_type: str,
    as_of: datetime,
    timezone: str,
    shift_based: bool = False,
    shift_lookup: ShiftLookup | None = None,
) -> BonusWindow:
    """
    Resolve the half-open [start, end) window containing ``as_of``.

    Bounds are local midnights in ``timezone`` converted to UTC, so a day that
    crosses a DST change is 23 or 25 hours long. For shift-based day windows
    the worker's shift around ``as_of`` wins (see ``pick_shift``). Without one
    the calendar day is used up to the next shift, so a fallback window never
    overlaps a shift window; a failing lookup falls back to the whole calendar
    day. Both are reported through ``reason``.
    """
    tz = get_zone(timezone)
    local_date = as_utc_aware(as_of).astimezone(tz).date()

    start_date, end_date = _calendar_bounds(window_type, local_date)
    window = BonusWindow(start=_local_midnight(start_date, tz), end=_local_midnight(end_date, tz))

    if window_type != "calendar_day" or not shift_based:
        return window

    if shift_lookup is None:
        return BonusWindow(start=window.start, end=window.end, reason="no_shift_found")

    as_of = as_utc_aware(as_of)
    try:
        match = shift_lookup(as_of, window.start, window.end)
    except (WindowResolutionFailure, SQLAlchemyError) as e:
        logger.warning(
            "shift lookup failed; falling back to calendar day",
            extra={"local_date": local_date.isoformat(), "timezone": timezone, "error": str(e)},
        )
        return BonusWindow(start=window.start, end=window.end, reason="shift_lookup_failed")

    if match is None or not match.found:
        end = window.end
        if match is not None and match.next_start is not None:
            end = min(end, as_utc_aware(match.next_start))
        return BonusWindow(start=window.start, end=end, reason="no_shift_found")

    shift_start, shift_end = as_utc_aware(match.start), as_utc_aware(match.end)
    if shift_end <= shift_start:
        logger.warning(
            "shift has an empty span; falling back to calendar day",
            extra={"local_date": local_date.isoformat(), "shift_start": shift_start.isoformat()},
        )
        return BonusWindow(start=window.start, end=window.end, reason="shift_lookup_failed")

    return BonusWindow(start=shift_start, end=shift_end, reason="shift")


def pick_shift(
    shifts: Iterable[tuple[datetime, datetime]],
    as_of: datetime,
    day_start: datetime,
    day_end: datetime,
) -> ShiftMatch:
    """
    Choose the shift that defines the window for ``as_of``.

    Only shifts overlapping the local day ``[day_start, day_end)`` count. The
    shift containing ``as_of`` wins, so an overnight shift is found from both
    of its days and each part of a split shift is its own window. Otherwise
    the latest shift that started before ``as_of`` is used. With neither, the
    start of the next shift is returned so the calendar fallback can stop
    there.
    """
    as_of = as_utc_aware(as_of)
    spans = sorted((as_utc_aware(s), as_utc_aware(e)) for s, e in shifts)
    spans = [(s, e) for s, e in spans if s < e and s < day_end and e > day_start]

    containing = [(s, e) for s, e in spans if s <= as_of < e]
    if containing:
        start, end = containing[-1]
        return ShiftMatch(start=start, end=end)

    started = [(s, e) for s, e in spans if s <= as_of]
    if started:
        start, end = started[-1]
        return ShiftMatch(start=start, end=end)

    upcoming = [s for s, _ in spans if s > as_of]
    return ShiftMatch(next_start=upcoming[0] if upcoming else None)


def make_shift_lookup(db: Session, *, company_id: str, worker_id: str) -> ShiftLookup:
    """Shift lookup bound to one worker, reading the shifts that overlap the local day."""

    def _lookup(as_of: datetime, day_start: datetime, day_end: datetime) -> ShiftMatch:
        rows = (
            db.query(Shift.start_at, Shift.end_at)
            .filter(Shift.company_id == company_id)
            .filter(Shift.worker_id == worker_id)
            .filter(Shift.start_at < to_utc_naive(day_end))
            .filter(Shift.end_at > to_utc_naive(day_start))
            .order_by(Shift.start_at.asc())
            .all()
        )
        return pick_shift(((r[0], r[1]) for r in rows), as_of, day_start, day_end)

    return _lookup
