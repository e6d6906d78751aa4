from __future__ import annotations

from datetime import datetime
from pathlib import Path
from threading import RLock
from typing import Any, Callable
import shutil

import yaml

from .errors import InvariantViolationError, NotFound, ReservationStorageError, UserNotFound
from .models import ReservationRecord, Role, User
from .repository import ensure_primary_slot_free


class _YamlFileMixin:
    base_dir: Path
    log_file: Path
    clock: Callable[[], datetime]

    def _ensure_files(self, *paths: Path) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        for path in paths:
            if not path.exists():
                path.write_text("[]\n", encoding="utf-8")

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            path.write_text("[]\n", encoding="utf-8")
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_yaml(path, error)
            return []

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"))
            return []

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            else:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping",
                    },
                )
        return sanitized

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise ReservationStorageError(f"Failed to write YAML file: {path}", file=str(path.name)) from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> None:
        timestamp = self.clock().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        if path.exists():
            try:
                shutil.copy2(path, backup_path)
            except OSError as copy_error:
                raise ReservationStorageError(
                    f"Corrupted YAML file could not be backed up: {path}", file=str(path.name)
                ) from copy_error

        path.write_text("[]\n", encoding="utf-8")
        if path != self.log_file:
            self._log_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or self.clock()).isoformat(timespec="seconds")
        events = self._read_yaml_list(self.log_file)
        events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
        self._write_yaml_list(self.log_file, events)


class ReservationYamlRepository(_YamlFileMixin):
    """Reservation store kept in ``reservations.yaml`` with an append-only event log."""

    def __init__(self, base_dir: str | Path = "data", now_provider: Callable[[], datetime] | None = None) -> None:
        self.base_dir = Path(base_dir)
        self.clock = now_provider or datetime.now
        self.reservations_file = self.base_dir / "reservations.yaml"
        self.log_file = self.base_dir / "reservation_events.yaml"
        self._lock = RLock()
        self._ensure_files(self.reservations_file, self.log_file)

    def list(self) -> list[ReservationRecord]:
        with self._lock:
            rows = self._read_yaml_list(self.reservations_file)
            return [ReservationRecord.from_dict(row) for row in rows]

    def get(self, reservation_id: str) -> ReservationRecord | None:
        for record in self.list():
            if record.reservation_id == reservation_id:
                return record
        return None

    def get_events(self) -> list[dict[str, Any]]:
        with self._lock:
            return self._read_yaml_list(self.log_file)

    def insert(self, record: ReservationRecord) -> ReservationRecord:
        with self._lock:
            existing = self.list()
            if any(row.reservation_id == record.reservation_id for row in existing):
                raise InvariantViolationError("Duplicate reservation id.", reservation_id=record.reservation_id)
            ensure_primary_slot_free(record, existing)

            rows = [row.to_dict() for row in existing]
            rows.append(record.to_dict())
            self._write_yaml_list(self.reservations_file, rows)
            self._log_event("RESERVATION_CREATED", _event_payload(record), record.created_at)
            return record

    def update(self, record: ReservationRecord) -> ReservationRecord:
        with self._lock:
            existing = self.list()
            found_index = _index_of(existing, record.reservation_id)
            if found_index < 0:
                raise NotFound("reservation", record.reservation_id)
            ensure_primary_slot_free(record, existing)

            existing[found_index] = record
            self._write_yaml_list(self.reservations_file, [row.to_dict() for row in existing])
            self._log_event("RESERVATION_UPDATED", _event_payload(record), record.updated_at)
            return record

    def delete(self, reservation_id: str) -> ReservationRecord:
        with self._lock:
            existing = self.list()
            found_index = _index_of(existing, reservation_id)
            if found_index < 0:
                raise NotFound("reservation", reservation_id)

            removed = existing.pop(found_index)
            self._write_yaml_list(self.reservations_file, [row.to_dict() for row in existing])
            self._log_event("RESERVATION_DELETED", _event_payload(removed))
            return removed

    def delete_by_owner(self, owner_id: str) -> list[ReservationRecord]:
        with self._lock:
            existing = self.list()
            removed = [row for row in existing if row.owner_id == owner_id]
            if not removed:
                return []

            kept = [row.to_dict() for row in existing if row.owner_id != owner_id]
            self._write_yaml_list(self.reservations_file, kept)
            self._log_event(
                "RESERVATIONS_DELETED_BY_OWNER",
                {
                    "owner_id": owner_id,
                    "reservation_ids": [row.reservation_id for row in removed],
                },
            )
            return removed


class YamlUserDirectory(_YamlFileMixin):
    def __init__(self, base_dir: str | Path = "data", now_provider: Callable[[], datetime] | None = None) -> None:
        self.base_dir = Path(base_dir)
        self.clock = now_provider or datetime.now
        self.users_file = self.base_dir / "users.yaml"
        self.log_file = self.base_dir / "reservation_events.yaml"
        self._ensure_files(self.users_file, self.log_file)

    def list_users(self) -> list[User]:
        return [User.from_dict(row) for row in self._read_yaml_list(self.users_file)]

    def find_user(self, user_id: str) -> User | None:
        for user in self.list_users():
            if user.user_id == user_id:
                return user
        return None

    def role(self, user_id: str) -> Role:
        user = self.find_user(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user.role

    def save_user(self, user: User) -> User:
        rows = [row.to_dict() for row in self.list_users() if row.user_id != user.user_id]
        rows.append(user.to_dict())
        self._write_yaml_list(self.users_file, rows)
        return user


def _index_of(records: list[ReservationRecord], reservation_id: str) -> int:
    for index, record in enumerate(records):
        if record.reservation_id == reservation_id:
            return index
    return -1


def _event_payload(record: ReservationRecord) -> dict[str, Any]:
    return {
        "reservation_id": record.reservation_id,
        "owner_id": record.owner_id,
        "from": record.start.isoformat(),
        "to": record.end.isoformat(),
        "status": record.status.value,
        "conflicts_with_id": record.conflicts_with_id,
    }
