from __future__ import annotations

from .errors import PermissionDenied
from .models import ReservationRecord, Role


class Authorizer:
    """Single place for the ownership and role rules."""

    def can_modify(self, reservation: ReservationRecord, requester_id: str, requester_role: Role) -> bool:
        return requester_role is Role.ADMIN or reservation.owner_id == requester_id

    def can_assign(self, requester_role: Role) -> bool:
        return requester_role is Role.ADMIN

    def require_modify(self, reservation: ReservationRecord, requester_id: str, requester_role: Role) -> None:
        if not self.can_modify(reservation, requester_id, requester_role):
            raise PermissionDenied(
                "Only the owner or an administrator may change this reservation.",
                reservation_id=reservation.reservation_id,
                requester_id=requester_id,
            )

    def require_assign(self, requester_role: Role) -> None:
        if not self.can_assign(requester_role):
            raise PermissionDenied("Only an administrator may reassign reservations.", role=requester_role.value)

    def require_admin(self, requester_role: Role) -> None:
        if requester_role is not Role.ADMIN:
            raise PermissionDenied("Administrator role required.", role=requester_role.value)
