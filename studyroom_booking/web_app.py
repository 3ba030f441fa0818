from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from flask import Flask, jsonify, request

from .config import BookingSettings
from .errors import ReservationError, ReservationStorageError
from .models import ReservationRecord
from .service import BookingService
from .yaml_store import ReservationYamlRepository, RoomYamlCatalog

ERROR_STATUS_CODES = {
    "InvalidInterval": 400,
    "ReservationInPast": 400,
    "AlreadyCancelled": 400,
    "AlreadyCompleted": 400,
    "TooLateToCancel": 400,
    "InvalidTransition": 400,
    "InvalidRoom": 400,
    "RoomNotFound": 404,
    "NotFound": 404,
    "SlotUnavailable": 409,
    "ConcurrencyConflict": 409,
}


class BadRequestPayload(ValueError):
    pass


def create_app(
    data_dir: str | Path | None = None,
    now_provider: Callable[[], datetime] | None = None,
    settings: BookingSettings | None = None,
) -> Flask:
    app = Flask(__name__)
    settings = settings or BookingSettings.from_env()
    if data_dir is not None:
        settings = replace(settings, data_dir=Path(data_dir))

    reservations = ReservationYamlRepository(settings.data_dir, settings)
    rooms = RoomYamlCatalog(settings.data_dir)
    service = BookingService(reservations, rooms, settings)
    clock: Callable[[], datetime] = now_provider or settings.now
    app.extensions["booking_service"] = service

    def _now() -> datetime:
        return settings.normalize(clock())

    def _serialize_reservation(record: ReservationRecord) -> dict[str, Any]:
        payload = record.to_dict()
        room = rooms.get_room(record.room_id)
        payload["room"] = room.to_dict() if room is not None else None
        return payload

    def _read_payload() -> dict[str, Any]:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            raise BadRequestPayload("Request body must be a JSON object.")
        return payload

    def _read_instant(payload: dict[str, Any], key: str) -> datetime:
        raw = str(payload.get(key, "")).strip()
        if not raw:
            raise BadRequestPayload(f"{key} is required.")
        try:
            return settings.parse_instant(raw)
        except ValueError as error:
            raise BadRequestPayload(f"{key} must be an ISO-8601 timestamp.") from error

    def _read_text(payload: dict[str, Any], key: str) -> str:
        value = str(payload.get(key, "")).strip()
        if not value:
            raise BadRequestPayload(f"{key} is required.")
        return value

    @app.errorhandler(BadRequestPayload)
    def handle_bad_payload(error: BadRequestPayload) -> Any:
        return jsonify({"ok": False, "error": "BadRequest", "message": str(error)}), 400

    @app.errorhandler(ReservationError)
    def handle_reservation_error(error: ReservationError) -> Any:
        status = ERROR_STATUS_CODES.get(error.kind, 400)
        return jsonify({"ok": False, "error": error.kind, "message": str(error)}), status

    @app.errorhandler(ReservationStorageError)
    def handle_storage_error(error: ReservationStorageError) -> Any:
        return jsonify({"ok": False, "error": error.kind, "message": "Storage is unavailable. Try again later."}), 503

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.get("/rooms")
    def list_rooms() -> Any:
        return jsonify({"ok": True, "rooms": [room.to_dict() for room in rooms.list_rooms()]})

    @app.get("/rooms/<room_id>")
    def get_room(room_id: str) -> Any:
        room = rooms.get_room(room_id)
        if room is None:
            return jsonify({"ok": False, "error": "RoomNotFound", "message": "Room not found."}), 404
        return jsonify({"ok": True, "room": room.to_dict()})

    @app.get("/reservations/<reservation_id>")
    def get_reservation(reservation_id: str) -> Any:
        record = service.get_reservation(reservation_id)
        return jsonify({"ok": True, "reservation": _serialize_reservation(record)})

    @app.get("/reservations/by-room/<room_id>")
    def reservations_by_room(room_id: str) -> Any:
        records = service.reservations_by_room(room_id)
        return jsonify({"ok": True, "reservations": [_serialize_reservation(record) for record in records]})

    @app.get("/reservations/by-user/<username>")
    def reservations_by_user(username: str) -> Any:
        records = service.reservations_by_user(username)
        return jsonify({"ok": True, "reservations": [_serialize_reservation(record) for record in records]})

    @app.post("/reservations")
    def create_reservation() -> Any:
        payload = _read_payload()
        booked = service.create_reservation(
            room_id=_read_text(payload, "room_id"),
            username=_read_text(payload, "username"),
            start=_read_instant(payload, "start"),
            end=_read_instant(payload, "end"),
            now=_now(),
        )
        return jsonify({"ok": True, "reservation": booked.to_dict()}), 201

    @app.put("/reservations/<reservation_id>/cancel")
    def cancel_reservation(reservation_id: str) -> Any:
        cancelled = service.cancel_reservation(reservation_id, now=_now())
        return jsonify({"ok": True, "reservation": _serialize_reservation(cancelled)})

    @app.put("/reservations/<reservation_id>/reschedule")
    def reschedule_reservation(reservation_id: str) -> Any:
        payload = _read_payload()
        moved = service.reschedule_reservation(
            reservation_id,
            start=_read_instant(payload, "start"),
            end=_read_instant(payload, "end"),
            now=_now(),
        )
        return jsonify({"ok": True, "reservation": moved.to_dict()})

    @app.delete("/reservations/<reservation_id>")
    def delete_reservation(reservation_id: str) -> Any:
        deleted = service.delete_reservation(reservation_id, now=_now())
        return jsonify({"ok": True, "reservation": deleted.to_dict()})

    return app
