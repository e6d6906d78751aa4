from __future__ import annotations

import logging
from datetime import datetime
from threading import RLock
from typing import Any, Callable

from .authorization import Authorizer
from .errors import InvalidTarget, NotFound, UserNotFound
from .models import ReservationRecord, Role, User
from .repository import ReservationRepository, UserDirectory

logger = logging.getLogger(__name__)


class AssignmentService:
    """Hand a reservation over to another household member.

    Only administrators may reassign, and the new owner must be an existing
    non-admin user other than the current owner. Status, range and conflict
    reference are left as they are.
    """

    def __init__(
        self,
        repository: ReservationRepository,
        users: UserDirectory,
        authorizer: Authorizer | None = None,
        now_provider: Callable[[], datetime] | None = None,
        lock: Any = None,
    ) -> None:
        self.repository = repository
        self.users = users
        self.authorizer = authorizer or Authorizer()
        self.clock: Callable[[], datetime] = now_provider or datetime.now
        self.lock = lock or RLock()

    def assign(self, reservation_id: str, requester_role: Role | str, new_owner_id: str) -> ReservationRecord:
        self.authorizer.require_assign(Role.parse(requester_role))

        with self.lock:
            current = self.repository.get(reservation_id)
            if current is None:
                raise NotFound("reservation", reservation_id)

            new_owner = self.users.find_user(new_owner_id)
            if new_owner is None:
                raise UserNotFound(new_owner_id)
            if new_owner.user_id == current.owner_id:
                raise InvalidTarget(
                    "The reservation already belongs to this user.",
                    reservation_id=reservation_id,
                    user_id=new_owner_id,
                )
            if new_owner.is_admin:
                raise InvalidTarget(
                    "Reservations cannot be assigned to administrators.",
                    reservation_id=reservation_id,
                    user_id=new_owner_id,
                )

            updated = current.with_changes(owner_id=new_owner.user_id, updated_at=self.clock())
            self.repository.update(updated)

        logger.info("Reservation %s reassigned from %s to %s", reservation_id, current.owner_id, new_owner.user_id)
        return updated

    def eligible_recipients(self, reservation_id: str) -> list[User]:
        current = self.repository.get(reservation_id)
        if current is None:
            raise NotFound("reservation", reservation_id)
        return [user for user in self.users.list_users() if not user.is_admin and user.user_id != current.owner_id]
