from __future__ import annotations

import logging
from threading import Lock
from typing import Iterable, Protocol

from .booking import ReservationStatus, find_overlapping_primaries
from .errors import InvariantViolationError, NotFound, UserNotFound
from .models import ReservationRecord, Role, User

logger = logging.getLogger(__name__)


class ReservationRepository(Protocol):
    def list(self) -> list[ReservationRecord]: ...

    def get(self, reservation_id: str) -> ReservationRecord | None: ...

    def insert(self, record: ReservationRecord) -> ReservationRecord: ...

    def update(self, record: ReservationRecord) -> ReservationRecord: ...

    def delete(self, reservation_id: str) -> ReservationRecord: ...

    def delete_by_owner(self, owner_id: str) -> list[ReservationRecord]: ...


class UserDirectory(Protocol):
    def find_user(self, user_id: str) -> User | None: ...

    def role(self, user_id: str) -> Role: ...

    def list_users(self) -> list[User]: ...


def ensure_primary_slot_free(record: ReservationRecord, existing: Iterable[ReservationRecord]) -> None:
    """Storage-level guard: refuse to persist a primary that overlaps another primary."""
    if record.status is not ReservationStatus.PRIMARY:
        return
    candidates = [row for row in existing if row.reservation_id != record.reservation_id]
    candidates.append(record)
    for first, second in find_overlapping_primaries(candidates):
        if first is not record and second is not record:
            continue
        conflict = second if first is record else first
        logger.error(
            "Refusing to store primary %s overlapping primary %s",
            record.reservation_id,
            conflict.reservation_id,
        )
        raise InvariantViolationError(
            "Primary reservations must not overlap.",
            reservation_id=record.reservation_id,
            conflicting_id=conflict.reservation_id,
        )


class InMemoryReservationRepository:
    def __init__(self, records: Iterable[ReservationRecord] = ()) -> None:
        self._items: dict[str, ReservationRecord] = {record.reservation_id: record for record in records}
        self._lock = Lock()

    def list(self) -> list[ReservationRecord]:
        with self._lock:
            return list(self._items.values())

    def get(self, reservation_id: str) -> ReservationRecord | None:
        with self._lock:
            return self._items.get(reservation_id)

    def insert(self, record: ReservationRecord) -> ReservationRecord:
        with self._lock:
            if record.reservation_id in self._items:
                raise InvariantViolationError("Duplicate reservation id.", reservation_id=record.reservation_id)
            ensure_primary_slot_free(record, self._items.values())
            self._items[record.reservation_id] = record
            return record

    def update(self, record: ReservationRecord) -> ReservationRecord:
        with self._lock:
            if record.reservation_id not in self._items:
                raise NotFound("reservation", record.reservation_id)
            ensure_primary_slot_free(record, self._items.values())
            self._items[record.reservation_id] = record
            return record

    def delete(self, reservation_id: str) -> ReservationRecord:
        with self._lock:
            if reservation_id not in self._items:
                raise NotFound("reservation", reservation_id)
            return self._items.pop(reservation_id)

    def delete_by_owner(self, owner_id: str) -> list[ReservationRecord]:
        with self._lock:
            removed = [record for record in self._items.values() if record.owner_id == owner_id]
            for record in removed:
                del self._items[record.reservation_id]
            return removed


class InMemoryUserDirectory:
    def __init__(self, users: Iterable[User] = ()) -> None:
        self._users: dict[str, User] = {user.user_id: user for user in users}

    def add(self, user: User) -> User:
        self._users[user.user_id] = user
        return user

    def find_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def role(self, user_id: str) -> Role:
        user = self._users.get(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user.role

    def list_users(self) -> list[User]:
        return list(self._users.values())
