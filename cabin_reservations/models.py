from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Any

from .booking import DateRange, ReservationStatus, parse_calendar_date
from .errors import ValidationError


class Role(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: "str | Role") -> "Role":
        if isinstance(value, Role):
            return value
        normalized = str(value).strip().lower()
        # "user" is the legacy name of the member role.
        if normalized in ("member", "user"):
            return cls.MEMBER
        if normalized == "admin":
            return cls.ADMIN
        raise ValidationError("role", f"Unknown role: {value!r}")


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


@dataclass(frozen=True)
class User:
    user_id: str
    username: str
    role: Role = Role.MEMBER

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def to_dict(self) -> dict[str, str]:
        return {"user_id": self.user_id, "username": self.username, "role": self.role.value}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "User":
        return User(
            user_id=str(data["user_id"]),
            username=str(data.get("username") or data["user_id"]),
            role=Role.parse(data.get("role", Role.MEMBER)),
        )


@dataclass(frozen=True)
class ReservationRecord:
    reservation_id: str
    owner_id: str
    date_range: DateRange
    purpose: str
    status: ReservationStatus
    created_at: datetime
    updated_at: datetime
    notes: str | None = None
    handover_note: str | None = None
    conflicts_with_id: str | None = None

    @property
    def start(self) -> date:
        return self.date_range.start

    @property
    def end(self) -> date:
        return self.date_range.end

    def with_changes(self, **changes: Any) -> "ReservationRecord":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "reservation_id": self.reservation_id,
            "owner_id": self.owner_id,
            "from": self.date_range.start.isoformat(),
            "to": self.date_range.end.isoformat(),
            "purpose": self.purpose,
            "status": self.status.value,
            "conflicts_with_id": self.conflicts_with_id,
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "updated_at": self.updated_at.isoformat(timespec="seconds"),
        }
        if self.notes is not None:
            payload["notes"] = self.notes
        if self.handover_note is not None:
            payload["handover_note"] = self.handover_note
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ReservationRecord":
        conflicts_with_id = data.get("conflicts_with_id")
        return ReservationRecord(
            reservation_id=str(data["reservation_id"]),
            owner_id=str(data["owner_id"]),
            date_range=DateRange(
                parse_calendar_date(str(data["from"]), "from"),
                parse_calendar_date(str(data["to"]), "to"),
            ),
            purpose=str(data["purpose"]),
            status=ReservationStatus(str(data["status"])),
            created_at=datetime.fromisoformat(str(data["created_at"])),
            updated_at=datetime.fromisoformat(str(data["updated_at"])),
            notes=(str(data["notes"]) if data.get("notes") is not None else None),
            handover_note=(str(data["handover_note"]) if data.get("handover_note") is not None else None),
            conflicts_with_id=(str(conflicts_with_id) if conflicts_with_id is not None else None),
        )


@dataclass(frozen=True)
class ReservationPatch:
    """Partial update of a reservation.

    Fields left as UNSET are not touched. ``notes`` and ``handover_note`` may be
    set to None to clear them; ``purpose`` may not.
    """

    date_from: Any = UNSET
    date_to: Any = UNSET
    purpose: Any = UNSET
    notes: Any = UNSET
    handover_note: Any = UNSET
    status: Any = UNSET

    @property
    def changes_range(self) -> bool:
        return self.date_from is not UNSET or self.date_to is not UNSET

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ReservationPatch":
        fields = {
            "from": "date_from",
            "to": "date_to",
            "purpose": "purpose",
            "notes": "notes",
            "handover_note": "handover_note",
            "status": "status",
        }
        return ReservationPatch(**{target: data[source] for source, target in fields.items() if source in data})
