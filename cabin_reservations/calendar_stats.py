from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

import holidays as pyholidays

from .booking import ReservationStatus
from .errors import ValidationError
from .models import ReservationRecord

DEFAULT_HOLIDAY_COUNTRY = "CZ"
UPCOMING_LIMIT = 5
_HOLIDAY_CACHE: dict[tuple[str, int], dict[date, str]] = {}


@dataclass(frozen=True)
class MonthOccupancy:
    year: int
    month: int
    booked_days: int
    free_days: int
    free_weekends: int
    free_holidays: list[tuple[date, str]]

    def to_dict(self) -> dict[str, object]:
        return {
            "year": self.year,
            "month": self.month,
            "booked_days": self.booked_days,
            "free_days": self.free_days,
            "free_weekends": self.free_weekends,
            "free_holidays": [{"date": day.isoformat(), "name": name} for day, name in self.free_holidays],
        }


def upcoming_reservations(
    reservations: Iterable[ReservationRecord],
    today: date,
    limit: int = UPCOMING_LIMIT,
) -> list[ReservationRecord]:
    if limit <= 0:
        raise ValidationError("limit", "limit must be greater than zero")
    future = [record for record in reservations if record.start >= today]
    future.sort(key=lambda record: (record.start, record.created_at))
    return future[:limit]


def current_occupant(reservations: Iterable[ReservationRecord], today: date) -> ReservationRecord | None:
    for record in reservations:
        if record.status is ReservationStatus.PRIMARY and record.date_range.contains(today):
            return record
    return None


def handover_note_for(reservations: Iterable[ReservationRecord], reservation: ReservationRecord) -> str | None:
    """Return the note left by the primary stay right before ``reservation``."""
    previous = [
        record
        for record in reservations
        if record.status is ReservationStatus.PRIMARY
        and record.reservation_id != reservation.reservation_id
        and record.end < reservation.start
    ]
    if not previous:
        return None
    return max(previous, key=lambda record: record.end).handover_note


def booked_days(reservations: Iterable[ReservationRecord]) -> set[date]:
    """Days covered by primary or soft reservations. Backups never occupy the cabin."""
    days: set[date] = set()
    for record in reservations:
        if record.status is ReservationStatus.BACKUP:
            continue
        days.update(record.date_range.days())
    return days


def month_occupancy(
    reservations: Iterable[ReservationRecord],
    year: int,
    month: int,
    country: str = DEFAULT_HOLIDAY_COUNTRY,
) -> MonthOccupancy:
    if not 1 <= month <= 12:
        raise ValidationError("month", "month must be between 1 and 12")

    occupied = booked_days(reservations)
    total_days = calendar.monthrange(year, month)[1]
    month_days = [date(year, month, day) for day in range(1, total_days + 1)]
    booked_in_month = [day for day in month_days if day in occupied]

    free_weekends = 0
    for day in month_days:
        if day.weekday() == 5 and day not in occupied and (day + timedelta(days=1)) not in occupied:
            free_weekends += 1

    holiday_map = _holidays_for(country, year)
    free_holidays = [(day, holiday_map[day]) for day in month_days if day in holiday_map and day not in occupied]

    return MonthOccupancy(
        year=year,
        month=month,
        booked_days=len(booked_in_month),
        free_days=total_days - len(booked_in_month),
        free_weekends=free_weekends,
        free_holidays=free_holidays,
    )


def _holidays_for(country: str, year: int) -> dict[date, str]:
    key = (country, year)
    if key not in _HOLIDAY_CACHE:
        holiday_map = pyholidays.country_holidays(country, years=[year])
        _HOLIDAY_CACHE[key] = dict(holiday_map.items())
    return _HOLIDAY_CACHE[key]
