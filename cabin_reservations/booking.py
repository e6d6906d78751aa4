from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Iterator

from .errors import InvalidRangeError, InvariantViolationError

if TYPE_CHECKING:
    from .models import ReservationRecord

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^\s*(?P<date>\d{4}[/-]\d{1,2}[/-]\d{1,2})\s*$")


class ReservationStatus(str, Enum):
    PRIMARY = "primary"
    BACKUP = "backup"
    SOFT = "soft"


@dataclass(frozen=True)
class DateRange:
    """Inclusive span of calendar days."""

    start: date
    end: date

    def __post_init__(self) -> None:
        for field_name in ("start", "end"):
            value = getattr(self, field_name)
            if isinstance(value, datetime) or not isinstance(value, date):
                raise InvalidRangeError(field_name, f"{field_name} must be a calendar date.")
        if self.start > self.end:
            raise InvalidRangeError("range", "Range start must not be later than its end.")

    @classmethod
    def parse(cls, from_text: str | date, to_text: str | date) -> "DateRange":
        return cls(parse_calendar_date(from_text, "from"), parse_calendar_date(to_text, "to"))

    def overlaps(self, other: "DateRange") -> bool:
        return has_date_overlap(self, other)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def days(self) -> Iterator[date]:
        cursor = self.start
        while cursor <= self.end:
            yield cursor
            cursor += timedelta(days=1)

    def __len__(self) -> int:
        return (self.end - self.start).days + 1

    def to_dict(self) -> dict[str, str]:
        return {"from": self.start.isoformat(), "to": self.end.isoformat()}


def parse_calendar_date(value: str | date, field_name: str = "date") -> date:
    """Turn ``YYYY-MM-DD`` (or ``YYYY/MM/DD``) into a date.

    Dates pass through unchanged; anything else raises InvalidRangeError
    naming the offending field.
    """
    if isinstance(value, datetime):
        raise InvalidRangeError(field_name, f"{field_name} must be a calendar date without time.")
    if isinstance(value, date):
        return value

    match = _DATE_RE.match(str(value)) if value is not None else None
    if not match:
        raise InvalidRangeError(field_name, f"{field_name} must use the YYYY-MM-DD format.")

    normalized = match.group("date").replace("/", "-")
    try:
        return datetime.strptime(normalized, "%Y-%m-%d").date()
    except ValueError as error:
        raise InvalidRangeError(field_name, f"{field_name} is not a valid calendar date.") from error


def has_date_overlap(first: DateRange, second: DateRange) -> bool:
    """Return True when two ranges share at least one calendar day.

    Both ends are inclusive, so ranges touching on the same endpoint day overlap.
    """
    return first.start <= second.end and first.end >= second.start


def find_primary_conflict(
    candidate: DateRange,
    reservations: Iterable["ReservationRecord"],
    exclude_id: str | None = None,
) -> "ReservationRecord | None":
    """Return the primary reservation overlapping ``candidate``, if any.

    Soft and backup reservations never block. More than one overlapping
    primary means the stored set is already broken.
    """
    matches = [
        record
        for record in reservations
        if record.status is ReservationStatus.PRIMARY
        and record.reservation_id != exclude_id
        and has_date_overlap(candidate, record.date_range)
    ]
    if len(matches) > 1:
        ids = sorted(record.reservation_id for record in matches)
        logger.error("Overlapping primary reservations detected: %s", ", ".join(ids))
        raise InvariantViolationError(
            "Multiple primary reservations overlap the same range.",
            reservation_ids=ids,
        )
    return matches[0] if matches else None


def find_overlapping_primaries(
    reservations: Iterable["ReservationRecord"],
) -> list[tuple["ReservationRecord", "ReservationRecord"]]:
    primaries = sorted(
        (record for record in reservations if record.status is ReservationStatus.PRIMARY),
        key=lambda record: (record.date_range.start, record.date_range.end),
    )
    pairs: list[tuple[ReservationRecord, ReservationRecord]] = []
    for index, first in enumerate(primaries):
        for second in primaries[index + 1 :]:
            if second.date_range.start > first.date_range.end:
                break
            pairs.append((first, second))
    return pairs
