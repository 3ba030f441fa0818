from __future__ import annotations

from datetime import datetime
from pathlib import Path
import tempfile
import traceback

from studyroom_booking import (
    BookingService,
    BookingSettings,
    ReservationYamlRepository,
    RoomYamlCatalog,
    SlotUnavailableError,
)


def main() -> int:
    print("[INFO] Study Room Booking Quick Check")

    with tempfile.TemporaryDirectory() as temp_dir:
        data_dir = Path(temp_dir) / "data"
        settings = BookingSettings(data_dir=data_dir)
        rooms = RoomYamlCatalog(data_dir)
        repo = ReservationYamlRepository(data_dir)
        service = BookingService(repo, rooms, settings)

        room = rooms.add_room("Room R", capacity=4, creator="admin")
        now = datetime(2024, 1, 1, 9, 0)
        print(f"[OK] Room created: {room.name} ({room.room_id})")

        first = service.create_reservation(room.room_id, "alice", datetime(2024, 1, 1, 10, 0), datetime(2024, 1, 1, 11, 0), now)
        print(f"[OK] alice 10:00~11:00 -> {first.reservation.status.value}")

        try:
            service.create_reservation(room.room_id, "bob", datetime(2024, 1, 1, 10, 30), datetime(2024, 1, 1, 11, 30), now)
            print("[ERROR] bob 10:30~11:30 was accepted although it overlaps.")
            return 1
        except SlotUnavailableError:
            print("[OK] bob 10:30~11:30 -> SlotUnavailable")

        service.create_reservation(room.room_id, "bob", datetime(2024, 1, 1, 11, 0), datetime(2024, 1, 1, 12, 0), now)
        print("[OK] bob 11:00~12:00 -> confirmed (shared boundary)")

        service.cancel_reservation(first.reservation.reservation_id, now)
        print("[OK] alice reservation cancelled")

        service.create_reservation(room.room_id, "carol", datetime(2024, 1, 1, 10, 0), datetime(2024, 1, 1, 10, 45), now)
        print("[OK] carol 10:00~10:45 -> confirmed (cancelled slot released)")

        completed = repo.complete_elapsed(datetime(2024, 1, 1, 12, 0))
        print(f"[OK] Completed by sweep: {completed}")
        print(f"[OK] Reservations stored: {len(repo.list_all())}")
        print(f"[OK] Events logged: {len(repo.get_events())}")

    print("[DONE] Quick check completed successfully.")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception:
        print("[ERROR] Quick check failed.")
        traceback.print_exc()
        raise SystemExit(1)
