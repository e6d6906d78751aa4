from __future__ import annotations

import logging
from datetime import datetime
from threading import RLock
from typing import Any, Callable
from uuid import uuid4

from .authorization import Authorizer
from .booking import DateRange, ReservationStatus, find_primary_conflict, parse_calendar_date
from .errors import NotFound, ReservationConflictError, ValidationError
from .models import UNSET, ReservationPatch, ReservationRecord, Role
from .repository import ReservationRepository

logger = logging.getLogger(__name__)

PrimaryDeletedHook = Callable[[ReservationRecord, list[ReservationRecord]], None]


def ignore_primary_deleted(deleted: ReservationRecord, dependents: list[ReservationRecord]) -> None:
    """Default policy: backups waiting on a deleted primary stay backups."""


class ReservationLifecycle:
    """Create, edit and delete reservations while keeping primaries disjoint.

    Every check-then-write sequence runs under ``lock``; share the lock with any
    other component mutating the same repository.
    """

    def __init__(
        self,
        repository: ReservationRepository,
        authorizer: Authorizer | None = None,
        now_provider: Callable[[], datetime] | None = None,
        on_primary_deleted: PrimaryDeletedHook | None = None,
        lock: Any = None,
    ) -> None:
        self.repository = repository
        self.authorizer = authorizer or Authorizer()
        self.clock: Callable[[], datetime] = now_provider or datetime.now
        self.on_primary_deleted: PrimaryDeletedHook = on_primary_deleted or ignore_primary_deleted
        self.lock = lock or RLock()

    def list(self) -> list[ReservationRecord]:
        records = self.repository.list()
        return sorted(records, key=lambda record: (record.start, record.created_at, record.reservation_id))

    def get(self, reservation_id: str) -> ReservationRecord:
        record = self.repository.get(reservation_id)
        if record is None:
            raise NotFound("reservation", reservation_id)
        return record

    def create(
        self,
        owner_id: str,
        date_range: DateRange,
        purpose: str,
        notes: str | None = None,
        handover_note: str | None = None,
        requested_status: ReservationStatus | str | None = None,
    ) -> ReservationRecord:
        if not isinstance(date_range, DateRange):
            raise ValidationError("range", "A DateRange is required.")
        cleaned_purpose = _clean_purpose(purpose)
        soft = requested_status is not None and _parse_status(requested_status) is ReservationStatus.SOFT

        with self.lock:
            status = ReservationStatus.SOFT
            conflicts_with_id = None
            if not soft:
                conflict = find_primary_conflict(date_range, self.repository.list())
                if conflict is None:
                    status = ReservationStatus.PRIMARY
                else:
                    status = ReservationStatus.BACKUP
                    conflicts_with_id = conflict.reservation_id

            now = self.clock()
            record = ReservationRecord(
                reservation_id=str(uuid4()),
                owner_id=owner_id,
                date_range=date_range,
                purpose=cleaned_purpose,
                status=status,
                created_at=now,
                updated_at=now,
                notes=_clean_optional(notes),
                handover_note=_clean_optional(handover_note),
                conflicts_with_id=conflicts_with_id,
            )
            self.repository.insert(record)

        logger.info(
            "Reservation %s created for %s as %s (%s..%s)",
            record.reservation_id,
            owner_id,
            status.value,
            date_range.start,
            date_range.end,
        )
        return record

    def edit(
        self,
        reservation_id: str,
        requester_id: str,
        requester_role: Role | str,
        patch: ReservationPatch,
    ) -> ReservationRecord:
        role = Role.parse(requester_role)
        with self.lock:
            current = self.get(reservation_id)
            self.authorizer.require_modify(current, requester_id, role)

            date_range = current.date_range
            if patch.changes_range:
                start = current.start if patch.date_from is UNSET else parse_calendar_date(patch.date_from, "from")
                end = current.end if patch.date_to is UNSET else parse_calendar_date(patch.date_to, "to")
                date_range = DateRange(start, end)

            purpose = current.purpose if patch.purpose is UNSET else _clean_purpose(patch.purpose)
            notes = current.notes if patch.notes is UNSET else _clean_optional(patch.notes)
            handover_note = current.handover_note if patch.handover_note is UNSET else _clean_optional(patch.handover_note)
            status = current.status if patch.status is UNSET else _parse_status(patch.status)

            conflicts_with_id = current.conflicts_with_id
            if status is ReservationStatus.SOFT:
                conflicts_with_id = None
            elif date_range != current.date_range or status is not current.status:
                conflict = find_primary_conflict(date_range, self.repository.list(), exclude_id=reservation_id)
                if status is ReservationStatus.PRIMARY:
                    if conflict is not None:
                        raise ReservationConflictError(conflict.reservation_id)
                    conflicts_with_id = None
                elif conflict is not None:
                    conflicts_with_id = conflict.reservation_id
                elif current.status is not ReservationStatus.BACKUP:
                    raise ValidationError("status", "A backup reservation must overlap a primary reservation.")

            updated = current.with_changes(
                date_range=date_range,
                purpose=purpose,
                notes=notes,
                handover_note=handover_note,
                status=status,
                conflicts_with_id=conflicts_with_id,
                updated_at=self.clock(),
            )
            self.repository.update(updated)

        logger.info("Reservation %s edited by %s", reservation_id, requester_id)
        return updated

    def delete(self, reservation_id: str, requester_id: str, requester_role: Role | str) -> ReservationRecord:
        role = Role.parse(requester_role)
        with self.lock:
            current = self.get(reservation_id)
            self.authorizer.require_modify(current, requester_id, role)
            removed = self.repository.delete(reservation_id)
            self._notify_primary_deleted(removed)

        logger.info("Reservation %s deleted by %s", reservation_id, requester_id)
        return removed

    def delete_user_reservations(self, owner_id: str, requester_role: Role | str) -> list[ReservationRecord]:
        """Remove every reservation held by ``owner_id`` (administrators only)."""
        role = Role.parse(requester_role)
        self.authorizer.require_admin(role)
        with self.lock:
            removed = self.repository.delete_by_owner(owner_id)
            for record in removed:
                self._notify_primary_deleted(record)

        logger.info("Deleted %d reservations owned by %s", len(removed), owner_id)
        return removed

    def _notify_primary_deleted(self, removed: ReservationRecord) -> None:
        if removed.status is not ReservationStatus.PRIMARY:
            return
        dependents = [
            record
            for record in self.repository.list()
            if record.status is ReservationStatus.BACKUP and record.conflicts_with_id == removed.reservation_id
        ]
        if dependents:
            logger.info(
                "Primary %s removed; %d backup reservation(s) still reference it",
                removed.reservation_id,
                len(dependents),
            )
        self.on_primary_deleted(removed, dependents)


def _clean_purpose(purpose: Any) -> str:
    if purpose is None or not isinstance(purpose, str) or not purpose.strip():
        raise ValidationError("purpose", "Purpose is required.")
    return purpose.strip()


def _clean_optional(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_status(value: ReservationStatus | str) -> ReservationStatus:
    if isinstance(value, ReservationStatus):
        return value
    try:
        return ReservationStatus(str(value).strip().lower())
    except ValueError as error:
        raise ValidationError("status", f"Unknown reservation status: {value!r}") from error
