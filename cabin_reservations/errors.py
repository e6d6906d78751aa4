from __future__ import annotations

from typing import Any


class ReservationError(Exception):
    """Base class for every failure raised by the reservation core."""

    kind = "reservation_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": self.kind, "message": self.message}
        payload.update({key: value for key, value in self.details.items() if value is not None})
        return payload


class ValidationError(ReservationError, ValueError):
    kind = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message, field=field)
        self.field = field


class InvalidRangeError(ValidationError):
    kind = "invalid_range"


class ReservationConflictError(ValidationError):
    kind = "reservation_conflict"

    def __init__(self, conflicting_id: str, message: str | None = None) -> None:
        super().__init__("range", message or f"Range overlaps primary reservation {conflicting_id}.")
        self.details["conflicting_id"] = conflicting_id
        self.conflicting_id = conflicting_id


class PermissionDenied(ReservationError):
    kind = "permission_denied"


class NotFound(ReservationError):
    kind = "not_found"

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} {entity_id} not found.", entity=entity, id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class UserNotFound(NotFound):
    kind = "user_not_found"

    def __init__(self, user_id: str) -> None:
        super().__init__("user", user_id)


class InvalidTarget(ReservationError):
    kind = "invalid_target"


class InvariantViolationError(ReservationError):
    kind = "invariant_violation"


class ReservationStorageError(ReservationError, RuntimeError):
    kind = "storage_error"
