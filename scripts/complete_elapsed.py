from __future__ import annotations

import sys

from studyroom_booking import BookingSettings, ReservationStorageError, ReservationYamlRepository


def main() -> int:
    settings = BookingSettings.from_env()
    repo = ReservationYamlRepository(settings.data_dir, settings)
    now = settings.now()

    try:
        completed = repo.complete_elapsed(now)
    except ReservationStorageError as error:
        print(f"[ERROR] {error}", file=sys.stderr)
        return 1

    print(f"[OK] {completed} reservation(s) marked completed at {now.isoformat(timespec='seconds')}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
