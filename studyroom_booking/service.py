from __future__ import annotations

from contextlib import ExitStack, contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Callable, ContextManager, Iterator, Protocol
from uuid import uuid4

from .booking import TimeInterval, is_valid_order
from .config import BookingSettings
from .conflicts import ConflictChecker
from .errors import (
    InvalidIntervalError,
    ReservationInPastError,
    ReservationNotFoundError,
    RoomNotFoundError,
    SlotUnavailableError,
)
from .models import BookedReservation, ReservationRecord, ReservationStatus, Room


class RoomLookup(Protocol):
    def get_room(self, room_id: str) -> Room | None: ...


class ReservationStore(Protocol):
    def insert(self, record: ReservationRecord) -> ReservationRecord: ...

    def find_by_id(self, reservation_id: str) -> ReservationRecord | None: ...

    def update(self, record: ReservationRecord, event_type: str = ...) -> bool: ...

    def delete(self, reservation_id: str, now: datetime | None = None) -> ReservationRecord | None: ...

    def list_by_room(self, room_id: str) -> list[ReservationRecord]: ...

    def list_by_user(self, username: str) -> list[ReservationRecord]: ...

    def room_lock(self, room_id: str, timeout: float) -> ContextManager[None]: ...


class BookingService:
    """Admission, cancellation and query operations for room reservations.

    Every operation takes ``now`` explicitly; the service never reads a clock.
    Create, cancel and reschedule for one room run one at a time through the
    store's room lock, which every service on the same store shares, so the
    conflict check and the write see the same snapshot.
    A caller that cannot get the lock within ``lock_timeout_seconds`` gets
    ``ConcurrencyConflictError`` and should retry.
    """

    def __init__(
        self,
        reservations: ReservationStore,
        rooms: RoomLookup,
        settings: BookingSettings | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._reservations = reservations
        self._rooms = rooms
        self._settings = settings or BookingSettings()
        self._id_factory = id_factory or (lambda: str(uuid4()))
        self.conflicts = ConflictChecker(reservations)

    @property
    def settings(self) -> BookingSettings:
        return self._settings

    @contextmanager
    def _serialized(self, *room_ids: str) -> Iterator[None]:
        # Sorted acquisition keeps multi-room callers deadlock free.
        with ExitStack() as stack:
            for room_id in sorted(set(room_ids)):
                stack.enter_context(self._reservations.room_lock(room_id, self._settings.lock_timeout_seconds))
            yield

    def _validate_interval(self, start: datetime, end: datetime, now: datetime) -> TimeInterval:
        if not is_valid_order(start, end):
            raise InvalidIntervalError()
        if start < now - self._settings.grace:
            raise ReservationInPastError()
        return TimeInterval(start, end)

    def _require_reservation(self, reservation_id: str) -> ReservationRecord:
        record = self._reservations.find_by_id(reservation_id)
        if record is None:
            raise ReservationNotFoundError(f"Reservation not found: {reservation_id}")
        return record

    def has_conflict(
        self,
        room_id: str,
        start: datetime,
        end: datetime,
        exclude_reservation_id: str | None = None,
    ) -> bool:
        return self.conflicts.has_conflict(room_id, TimeInterval(start, end), exclude_reservation_id)

    def create_reservation(
        self,
        room_id: str,
        username: str,
        start: datetime,
        end: datetime,
        now: datetime,
    ) -> BookedReservation:
        candidate = self._validate_interval(start, end, now)

        room = self._rooms.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(f"Room not found: {room_id}")

        with self._serialized(room_id):
            if self.conflicts.has_conflict(room_id, candidate):
                raise SlotUnavailableError()

            record = ReservationRecord(
                reservation_id=self._id_factory(),
                room_id=room_id,
                username=username,
                start=start,
                end=end,
                status=ReservationStatus.CONFIRMED,
                created_at=now,
                updated_at=now,
            )
            self._reservations.insert(record)

        return BookedReservation(reservation=record, room=room)

    def cancel_reservation(self, reservation_id: str, now: datetime) -> ReservationRecord:
        room_id = self._require_reservation(reservation_id).room_id

        with self._serialized(room_id):
            # Re-read under the lock; a concurrent cancel may have won.
            current = self._require_reservation(reservation_id)
            cancelled = current.cancel(now)
            if not self._reservations.update(cancelled, event_type="RESERVATION_CANCELLED"):
                raise ReservationNotFoundError(f"Reservation not found: {reservation_id}")

        return cancelled

    def reschedule_reservation(
        self,
        reservation_id: str,
        start: datetime,
        end: datetime,
        now: datetime,
    ) -> BookedReservation:
        room_id = self._require_reservation(reservation_id).room_id

        with self._serialized(room_id):
            current = self._require_reservation(reservation_id)
            current.ensure_changeable(now)
            candidate = self._validate_interval(start, end, now)
            if self.conflicts.has_conflict(room_id, candidate, exclude_reservation_id=reservation_id):
                raise SlotUnavailableError()

            moved = replace(current, start=start, end=end, updated_at=now)
            if not self._reservations.update(moved, event_type="RESERVATION_RESCHEDULED"):
                raise ReservationNotFoundError(f"Reservation not found: {reservation_id}")

        return BookedReservation(reservation=moved, room=self._rooms.get_room(room_id))

    def delete_reservation(self, reservation_id: str, now: datetime | None = None) -> ReservationRecord:
        """Hard-delete a reservation regardless of its status.

        Administrative override: no lifecycle guard applies and the cancelled
        history of the row is lost (the store still logs the deleted record).
        """
        deleted = self._reservations.delete(reservation_id, now=now)
        if deleted is None:
            raise ReservationNotFoundError(f"Reservation not found: {reservation_id}")
        return deleted

    def get_reservation(self, reservation_id: str) -> ReservationRecord:
        return self._require_reservation(reservation_id)

    def reservations_by_room(self, room_id: str) -> list[ReservationRecord]:
        return sorted(self._reservations.list_by_room(room_id), key=lambda record: record.start)

    def reservations_by_user(self, username: str) -> list[ReservationRecord]:
        return sorted(self._reservations.list_by_user(username), key=lambda record: record.start)
