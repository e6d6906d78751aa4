from __future__ import annotations

from datetime import date, datetime
from threading import RLock
from typing import Any, Callable

from .assignment import AssignmentService
from .authorization import Authorizer
from .booking import DateRange, ReservationStatus
from .calendar_stats import (
    DEFAULT_HOLIDAY_COUNTRY,
    MonthOccupancy,
    current_occupant,
    handover_note_for,
    month_occupancy,
    upcoming_reservations,
)
from .lifecycle import PrimaryDeletedHook, ReservationLifecycle
from .models import ReservationPatch, ReservationRecord, User
from .repository import ReservationRepository, UserDirectory


class CabinReservationService:
    """Operations offered to the HTTP layer for a single cabin.

    The lifecycle and the assignment service share one mutation lock so every
    write against the reservation set is serialized. Requester roles are looked
    up in the user directory; an unknown requester raises ``UserNotFound``.
    """

    def __init__(
        self,
        repository: ReservationRepository,
        users: UserDirectory,
        now_provider: Callable[[], datetime] | None = None,
        on_primary_deleted: PrimaryDeletedHook | None = None,
        holiday_country: str = DEFAULT_HOLIDAY_COUNTRY,
    ) -> None:
        self.repository = repository
        self.users = users
        self.clock: Callable[[], datetime] = now_provider or datetime.now
        self.holiday_country = holiday_country
        authorizer = Authorizer()
        lock = RLock()
        self.lifecycle = ReservationLifecycle(
            repository,
            authorizer=authorizer,
            now_provider=self.clock,
            on_primary_deleted=on_primary_deleted,
            lock=lock,
        )
        self.assignments = AssignmentService(
            repository,
            users,
            authorizer=authorizer,
            now_provider=self.clock,
            lock=lock,
        )

    def list_reservations(self) -> list[ReservationRecord]:
        return self.lifecycle.list()

    def get_reservation(self, reservation_id: str) -> ReservationRecord:
        return self.lifecycle.get(reservation_id)

    def create_reservation(
        self,
        owner_id: str,
        date_from: str | date,
        date_to: str | date,
        purpose: str,
        notes: str | None = None,
        handover_note: str | None = None,
        soft: bool = False,
    ) -> ReservationRecord:
        return self.lifecycle.create(
            owner_id,
            DateRange.parse(date_from, date_to),
            purpose,
            notes=notes,
            handover_note=handover_note,
            requested_status=ReservationStatus.SOFT if soft else None,
        )

    def edit_reservation(
        self,
        reservation_id: str,
        requester_id: str,
        patch: ReservationPatch | dict[str, Any],
    ) -> ReservationRecord:
        role = self.users.role(requester_id)
        if isinstance(patch, dict):
            patch = ReservationPatch.from_dict(patch)
        return self.lifecycle.edit(reservation_id, requester_id, role, patch)

    def delete_reservation(self, reservation_id: str, requester_id: str) -> bool:
        self.lifecycle.delete(reservation_id, requester_id, self.users.role(requester_id))
        return True

    def assign_reservation(self, reservation_id: str, requester_id: str, new_owner_id: str) -> ReservationRecord:
        return self.assignments.assign(reservation_id, self.users.role(requester_id), new_owner_id)

    def eligible_recipients(self, reservation_id: str) -> list[User]:
        return self.assignments.eligible_recipients(reservation_id)

    def delete_user_reservations(self, owner_id: str, requester_id: str) -> int:
        return len(self.lifecycle.delete_user_reservations(owner_id, self.users.role(requester_id)))

    def dashboard(self, today: date | None = None) -> dict[str, Any]:
        effective_today = today or self.clock().date()
        records = self.lifecycle.list()
        occupant = current_occupant(records, effective_today)
        return {
            "today": effective_today.isoformat(),
            "upcoming": upcoming_reservations(records, effective_today),
            "current": occupant,
        }

    def month_stats(self, year: int, month: int) -> MonthOccupancy:
        return month_occupancy(self.lifecycle.list(), year, month, country=self.holiday_country)

    def incoming_handover_note(self, reservation_id: str) -> str | None:
        reservation = self.lifecycle.get(reservation_id)
        return handover_note_for(self.lifecycle.list(), reservation)
