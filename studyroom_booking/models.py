from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

from .booking import TimeInterval
from .errors import (
    AlreadyCancelledError,
    AlreadyCompletedError,
    InvalidRoomError,
    InvalidTransitionError,
    TooLateToCancelError,
)

ROOM_NAME_MAX_LENGTH = 100
ROOM_DESCRIPTION_MAX_LENGTH = 500
ROOM_CAPACITY_MIN = 1
ROOM_CAPACITY_MAX = 100


class RoomType(str, Enum):
    GROUP = "group"
    INDIVIDUAL = "individual"


class ReservationStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


TERMINAL_STATUSES = frozenset({ReservationStatus.CANCELLED, ReservationStatus.COMPLETED})

# Cancelled and Completed have no outgoing transitions.
ALLOWED_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.CONFIRMED: frozenset({ReservationStatus.CANCELLED, ReservationStatus.COMPLETED}),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.COMPLETED: frozenset(),
}


@dataclass(frozen=True)
class Room:
    room_id: str
    name: str
    capacity: int
    creator: str
    description: str | None = None
    room_type: RoomType = RoomType.GROUP

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise InvalidRoomError("Room name must not be empty.")
        if len(self.name) > ROOM_NAME_MAX_LENGTH:
            raise InvalidRoomError(f"Room name must be at most {ROOM_NAME_MAX_LENGTH} characters.")
        if isinstance(self.capacity, bool) or not isinstance(self.capacity, int):
            raise InvalidRoomError("Room capacity must be an integer.")
        if not ROOM_CAPACITY_MIN <= self.capacity <= ROOM_CAPACITY_MAX:
            raise InvalidRoomError(f"Room capacity must be between {ROOM_CAPACITY_MIN} and {ROOM_CAPACITY_MAX}.")
        if self.description is not None and len(self.description) > ROOM_DESCRIPTION_MAX_LENGTH:
            raise InvalidRoomError(f"Room description must be at most {ROOM_DESCRIPTION_MAX_LENGTH} characters.")
        if not self.creator:
            raise InvalidRoomError("Room creator must not be empty.")

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "room_id": self.room_id,
            "name": self.name,
            "capacity": self.capacity,
            "creator": self.creator,
            "room_type": self.room_type.value,
        }
        if self.description is not None:
            payload["description"] = self.description
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Room":
        try:
            room_type = RoomType(str(data.get("room_type", RoomType.GROUP.value)))
        except ValueError as error:
            raise InvalidRoomError(f"Unknown room type: {data.get('room_type')}") from error
        return Room(
            room_id=str(data["room_id"]),
            name=str(data["name"]),
            capacity=int(data["capacity"]),
            creator=str(data["creator"]),
            description=(str(data["description"]) if data.get("description") is not None else None),
            room_type=room_type,
        )


@dataclass(frozen=True)
class ReservationRecord:
    reservation_id: str
    room_id: str
    username: str
    start: datetime
    end: datetime
    status: ReservationStatus = ReservationStatus.CONFIRMED
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start, self.end)

    @property
    def is_active(self) -> bool:
        return self.status not in TERMINAL_STATUSES

    def transition_to(self, status: ReservationStatus, now: datetime) -> "ReservationRecord":
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Cannot move reservation {self.reservation_id} from {self.status.value} to {status.value}."
            )
        return replace(self, status=status, updated_at=now)

    def cancel(self, now: datetime) -> "ReservationRecord":
        """Apply the cancellation guards and return the cancelled record."""
        self.ensure_changeable(now)
        return self.transition_to(ReservationStatus.CANCELLED, now)

    def complete(self, now: datetime) -> "ReservationRecord":
        return self.transition_to(ReservationStatus.COMPLETED, now)

    def ensure_changeable(self, now: datetime) -> None:
        if self.status is ReservationStatus.CANCELLED:
            raise AlreadyCancelledError()
        if self.status is ReservationStatus.COMPLETED:
            raise AlreadyCompletedError()
        if self.end < now:
            raise TooLateToCancelError()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "reservation_id": self.reservation_id,
            "room_id": self.room_id,
            "username": self.username,
            "start": self.start.isoformat(timespec="seconds"),
            "end": self.end.isoformat(timespec="seconds"),
            "status": self.status.value,
        }
        if self.created_at is not None:
            payload["created_at"] = self.created_at.isoformat(timespec="seconds")
        if self.updated_at is not None:
            payload["updated_at"] = self.updated_at.isoformat(timespec="seconds")
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ReservationRecord":
        return ReservationRecord(
            reservation_id=str(data["reservation_id"]),
            room_id=str(data["room_id"]),
            username=str(data["username"]),
            start=datetime.fromisoformat(str(data["start"])),
            end=datetime.fromisoformat(str(data["end"])),
            status=ReservationStatus(str(data.get("status", ReservationStatus.CONFIRMED.value))),
            created_at=_optional_datetime(data.get("created_at")),
            updated_at=_optional_datetime(data.get("updated_at")),
        )


@dataclass(frozen=True)
class BookedReservation:
    reservation: ReservationRecord
    room: Room | None

    def to_dict(self) -> dict[str, Any]:
        payload = self.reservation.to_dict()
        payload["room"] = self.room.to_dict() if self.room is not None else None
        return payload


def _optional_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(str(value))
