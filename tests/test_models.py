import unittest
from datetime import datetime

from studyroom_booking import (
    AlreadyCancelledError,
    AlreadyCompletedError,
    InvalidRoomError,
    InvalidTransitionError,
    ReservationRecord,
    ReservationStatus,
    Room,
    RoomType,
    TooLateToCancelError,
)


def _record(status: ReservationStatus = ReservationStatus.CONFIRMED) -> ReservationRecord:
    return ReservationRecord(
        reservation_id="r-1",
        room_id="room-1",
        username="alice",
        start=datetime(2024, 1, 1, 10, 0),
        end=datetime(2024, 1, 1, 11, 0),
        status=status,
    )


class TestReservationStateMachine(unittest.TestCase):
    def test_confirmed_is_active_and_terminal_states_are_not(self) -> None:
        self.assertTrue(_record().is_active)
        self.assertFalse(_record(ReservationStatus.CANCELLED).is_active)
        self.assertFalse(_record(ReservationStatus.COMPLETED).is_active)

    def test_cancel_moves_confirmed_to_cancelled(self) -> None:
        now = datetime(2024, 1, 1, 9, 0)
        cancelled = _record().cancel(now)

        self.assertEqual(cancelled.status, ReservationStatus.CANCELLED)
        self.assertEqual(cancelled.updated_at, now)
        self.assertEqual(cancelled.start, datetime(2024, 1, 1, 10, 0))

    def test_cancel_allowed_while_in_progress(self) -> None:
        cancelled = _record().cancel(datetime(2024, 1, 1, 10, 30))
        self.assertEqual(cancelled.status, ReservationStatus.CANCELLED)

    def test_cancel_rejects_terminal_states(self) -> None:
        now = datetime(2024, 1, 1, 9, 0)
        with self.assertRaises(AlreadyCancelledError):
            _record(ReservationStatus.CANCELLED).cancel(now)
        with self.assertRaises(AlreadyCompletedError):
            _record(ReservationStatus.COMPLETED).cancel(now)

    def test_cancel_rejects_elapsed_reservation(self) -> None:
        with self.assertRaises(TooLateToCancelError) as context:
            _record().cancel(datetime(2024, 1, 1, 11, 1))
        self.assertEqual(context.exception.kind, "TooLateToCancel")

    def test_terminal_states_have_no_transitions(self) -> None:
        now = datetime(2024, 1, 1, 12, 0)
        with self.assertRaises(InvalidTransitionError):
            _record(ReservationStatus.CANCELLED).transition_to(ReservationStatus.CONFIRMED, now)
        with self.assertRaises(InvalidTransitionError):
            _record(ReservationStatus.COMPLETED).transition_to(ReservationStatus.CANCELLED, now)
        with self.assertRaises(InvalidTransitionError):
            _record().transition_to(ReservationStatus.CONFIRMED, now)

    def test_complete_moves_confirmed_to_completed(self) -> None:
        completed = _record().complete(datetime(2024, 1, 1, 12, 0))
        self.assertEqual(completed.status, ReservationStatus.COMPLETED)

    def test_dict_round_trip_keeps_status(self) -> None:
        record = _record(ReservationStatus.CANCELLED)
        restored = ReservationRecord.from_dict(record.to_dict())
        self.assertEqual(restored, record)


class TestRoom(unittest.TestCase):
    def test_room_requires_positive_capacity(self) -> None:
        with self.assertRaises(InvalidRoomError):
            Room(room_id="room-1", name="Quiet room", capacity=0, creator="admin")
        with self.assertRaises(InvalidRoomError):
            Room(room_id="room-1", name="Quiet room", capacity=101, creator="admin")

    def test_room_requires_name(self) -> None:
        with self.assertRaises(InvalidRoomError):
            Room(room_id="room-1", name="  ", capacity=4, creator="admin")
        with self.assertRaises(InvalidRoomError):
            Room(room_id="room-1", name="x" * 101, capacity=4, creator="admin")

    def test_room_from_dict_defaults_to_group(self) -> None:
        room = Room.from_dict({"room_id": "room-1", "name": "Quiet room", "capacity": 4, "creator": "admin"})
        self.assertEqual(room.room_type, RoomType.GROUP)
        self.assertIsNone(room.description)


if __name__ == "__main__":
    unittest.main()
