"""
Date-filter compiler for the search API's `localStartEndDateTime` variable.

The API only honours a two-sided range, so one-sided user input is widened
deterministically:

  1. thisWeekendDate (no explicit bound)  -> next Saturday .. following Sunday
  2. dateFrom + dateTo                     -> dateFrom 00:00:00 .. dateTo 23:59:59.999
  3. dateFrom only                         -> dateFrom .. FAR_FUTURE_DATE
  4. dateTo only                           -> today .. dateTo
  5. neither                               -> no filter

An explicit bound always wins over the weekend flag.

All instants are UTC. The wire format drops fractional seconds, so the end
instant 23:59:59.999 is rendered as 23:59:59.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

import dateparser

FAR_FUTURE_DATE = "2030-12-31"

_ISO_DATE_RE = re.compile(r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})")

_START_OF_DAY = time(0, 0, 0, 0)
_END_OF_DAY = time(23, 59, 59, 999000)

SATURDAY = 5
SUNDAY = 6


class InvalidDateError(ValueError):
    """A user-supplied date bound could not be parsed. Fatal configuration error."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(
            f"Invalid date format provided. Valid format is: YYYY-MM-DD. "
            f"Format from input: {value}."
        )


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    def to_wire(self) -> str:
        return f"{_wire_instant(self.start)},{_wire_instant(self.end)}"


def _wire_instant(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


def parse_calendar_date(value: Optional[str]) -> date:
    """
    Parse a user date bound to a calendar date.

    ISO-shaped input ("2025-11-14", "2025-11-25T19:30:00") is parsed strictly,
    so "2025-13-50" fails instead of being rolled over. Anything else (e.g. a
    formatted date title used as a continuation mark) goes through dateparser.
    """
    s = (value or "").strip() if isinstance(value, str) else ""
    if not s:
        raise InvalidDateError(value)

    m = _ISO_DATE_RE.match(s)
    if m:
        try:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            raise InvalidDateError(value) from None

    parsed = dateparser.parse(
        s,
        languages=["en"],
        settings={"PREFER_DATES_FROM": "future", "RETURN_AS_TIMEZONE_AWARE": False},
    )
    if parsed is None:
        raise InvalidDateError(value)
    return parsed.date()


def _start_of(d: date) -> datetime:
    return datetime.combine(d, _START_OF_DAY, tzinfo=timezone.utc)


def _end_of(d: date) -> datetime:
    return datetime.combine(d, _END_OF_DAY, tzinfo=timezone.utc)


def weekend_range(now: datetime) -> DateRange:
    """Saturday 00:00:00 .. Sunday 23:59:59.999 (UTC) of the current or upcoming weekend."""
    today = now.astimezone(timezone.utc).date() if now.tzinfo else now.date()
    weekday = today.weekday()

    if weekday == SUNDAY:
        saturday = today + timedelta(days=6)
        sunday = today
    elif weekday == SATURDAY:
        saturday = today
        sunday = today + timedelta(days=1)
    else:
        saturday = today + timedelta(days=SATURDAY - weekday)
        sunday = saturday + timedelta(days=1)

    return DateRange(start=_start_of(saturday), end=_end_of(sunday))


def date_range(date_from: str, date_to: str) -> DateRange:
    start = parse_calendar_date(date_from)
    end = parse_calendar_date(date_to)
    return DateRange(start=_start_of(start), end=_end_of(end))


def compile_date_filter(
    *,
    this_weekend: bool = False,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[DateRange]:
    """
    Compile date options into a single range, or None for "no date filter".

    Raises InvalidDateError for an unparseable bound; callers must let it
    propagate (it aborts the crawl before any request is built).
    """
    now = now or datetime.now(timezone.utc)

    if date_from and date_to:
        return date_range(date_from, date_to)
    if date_from:
        return date_range(date_from, FAR_FUTURE_DATE)
    if date_to:
        today = now.astimezone(timezone.utc).date() if now.tzinfo else now.date()
        return date_range(today.isoformat(), date_to)
    if this_weekend:
        return weekend_range(now)
    return None
