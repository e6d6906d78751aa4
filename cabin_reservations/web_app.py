from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from flask import Flask, jsonify, request

from .calendar_stats import DEFAULT_HOLIDAY_COUNTRY
from .errors import (
    InvalidTarget,
    NotFound,
    PermissionDenied,
    ReservationConflictError,
    ReservationError,
    ValidationError,
)
from .models import ReservationRecord, User
from .service import CabinReservationService
from .yaml_store import ReservationYamlRepository, YamlUserDirectory

USER_HEADER = "X-User-Id"


def create_app(
    data_dir: str | Path = "data",
    now_provider: Callable[[], datetime] | None = None,
    holiday_country: str = DEFAULT_HOLIDAY_COUNTRY,
) -> Flask:
    app = Flask(__name__)
    users = YamlUserDirectory(data_dir, now_provider=now_provider)
    service = CabinReservationService(
        ReservationYamlRepository(data_dir, now_provider=now_provider),
        users,
        now_provider=now_provider,
        holiday_country=holiday_country,
    )

    def _current_user() -> User | None:
        user_id = str(request.headers.get(USER_HEADER, "")).strip()
        if not user_id:
            return None
        return users.find_user(user_id)

    def _serialize(record: ReservationRecord | None) -> dict[str, Any] | None:
        if record is None:
            return None
        owner = users.find_user(record.owner_id)
        return {
            **record.to_dict(),
            "username": owner.username if owner else None,
        }

    def _unauthorized() -> Any:
        return jsonify({"ok": False, "message": "Login required."}), 401

    @app.errorhandler(ReservationError)
    def handle_reservation_error(error: ReservationError) -> Any:
        status_code = _status_for(error)
        if status_code >= 500:
            app.logger.error("Reservation failure: %s", error.to_dict())
        return jsonify({"ok": False, "message": error.message, "error": error.to_dict()}), status_code

    @app.get("/api/reservations")
    def list_reservations() -> Any:
        if _current_user() is None:
            return _unauthorized()
        return jsonify({"ok": True, "reservations": [_serialize(record) for record in service.list_reservations()]})

    @app.post("/api/reservations")
    def create_reservation() -> Any:
        user = _current_user()
        if user is None:
            return _unauthorized()

        payload = request.get_json(silent=True) or {}
        created = service.create_reservation(
            user.user_id,
            payload.get("from"),
            payload.get("to"),
            payload.get("purpose"),
            notes=payload.get("notes"),
            handover_note=payload.get("handover_note"),
            soft=payload.get("soft") is True or str(payload.get("status", "")).strip().lower() == "soft",
        )
        return jsonify({"ok": True, "reservation": _serialize(created)}), 201

    @app.put("/api/reservations/<reservation_id>")
    def edit_reservation(reservation_id: str) -> Any:
        user = _current_user()
        if user is None:
            return _unauthorized()

        payload = request.get_json(silent=True) or {}
        updated = service.edit_reservation(reservation_id, user.user_id, payload)
        return jsonify({"ok": True, "reservation": _serialize(updated)})

    @app.post("/api/reservations/delete")
    def delete_reservation() -> Any:
        user = _current_user()
        if user is None:
            return _unauthorized()

        payload = request.get_json(silent=True) or {}
        reservation_id = str(payload.get("reservation_id", "")).strip()
        if not reservation_id:
            return jsonify({"ok": False, "message": "reservation_id is required."}), 400

        service.delete_reservation(reservation_id, user.user_id)
        return jsonify({"ok": True, "reservation_id": reservation_id})

    @app.post("/api/reservations/<reservation_id>/assign")
    def assign_reservation(reservation_id: str) -> Any:
        user = _current_user()
        if user is None:
            return _unauthorized()

        payload = request.get_json(silent=True) or {}
        new_owner_id = str(payload.get("new_owner_id", "")).strip()
        if not new_owner_id:
            return jsonify({"ok": False, "message": "new_owner_id is required."}), 400

        updated = service.assign_reservation(reservation_id, user.user_id, new_owner_id)
        return jsonify({"ok": True, "reservation": _serialize(updated)})

    @app.get("/api/reservations/<reservation_id>/eligible-owners")
    def eligible_owners(reservation_id: str) -> Any:
        user = _current_user()
        if user is None:
            return _unauthorized()
        if not user.is_admin:
            raise PermissionDenied("Administrator role required.", role=user.role.value)

        recipients = service.eligible_recipients(reservation_id)
        return jsonify({"ok": True, "users": [recipient.to_dict() for recipient in recipients]})

    @app.delete("/api/users/<user_id>/reservations")
    def delete_user_reservations(user_id: str) -> Any:
        user = _current_user()
        if user is None:
            return _unauthorized()

        deleted = service.delete_user_reservations(user_id, user.user_id)
        return jsonify({"ok": True, "deleted": deleted})

    @app.get("/api/dashboard")
    def dashboard() -> Any:
        if _current_user() is None:
            return _unauthorized()

        summary = service.dashboard()
        return jsonify(
            {
                "ok": True,
                "today": summary["today"],
                "upcoming": [_serialize(record) for record in summary["upcoming"]],
                "current": _serialize(summary["current"]),
            }
        )

    @app.get("/api/calendar/stats")
    def calendar_stats() -> Any:
        if _current_user() is None:
            return _unauthorized()

        today = service.clock().date()
        try:
            year = int(request.args.get("year", today.year))
            month = int(request.args.get("month", today.month))
        except ValueError:
            return jsonify({"ok": False, "message": "year and month must be integers."}), 400

        return jsonify({"ok": True, "stats": service.month_stats(year, month).to_dict()})

    return app


def _status_for(error: ReservationError) -> int:
    if isinstance(error, ReservationConflictError):
        return 409
    if isinstance(error, (ValidationError, InvalidTarget)):
        return 400
    if isinstance(error, PermissionDenied):
        return 403
    if isinstance(error, NotFound):
        return 404
    return 500


if __name__ == "__main__":
    app = create_app()
    app.run(host="127.0.0.1", port=5000, debug=False)
