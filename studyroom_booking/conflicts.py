from __future__ import annotations

from typing import Iterable, Protocol

from .booking import TimeInterval, overlaps
from .models import ReservationRecord


class RoomReservationSource(Protocol):
    def list_by_room(self, room_id: str) -> list[ReservationRecord]: ...


def find_conflicts(
    candidate: TimeInterval,
    existing_reservations: Iterable[ReservationRecord],
    exclude_reservation_id: str | None = None,
) -> list[ReservationRecord]:
    """Return the active reservations whose interval overlaps ``candidate``.

    Cancelled and completed reservations never block a slot.
    """
    return [
        record
        for record in existing_reservations
        if record.is_active
        and record.reservation_id != exclude_reservation_id
        and overlaps(candidate, record.interval)
    ]


class ConflictChecker:
    def __init__(self, reservations: RoomReservationSource) -> None:
        self._reservations = reservations

    def conflicts_for(
        self,
        room_id: str,
        candidate: TimeInterval,
        exclude_reservation_id: str | None = None,
    ) -> list[ReservationRecord]:
        same_room = [record for record in self._reservations.list_by_room(room_id) if record.room_id == room_id]
        return find_conflicts(candidate, same_room, exclude_reservation_id)

    def has_conflict(
        self,
        room_id: str,
        candidate: TimeInterval,
        exclude_reservation_id: str | None = None,
    ) -> bool:
        return bool(self.conflicts_for(room_id, candidate, exclude_reservation_id))
