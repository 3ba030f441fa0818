from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator
from contextlib import contextmanager
import hashlib
import shutil
import threading
from uuid import uuid4

import yaml
from filelock import FileLock, Timeout

from .config import BookingSettings
from .errors import ConcurrencyConflictError, InvalidRoomError, ReservationStorageError
from .models import ReservationRecord, ReservationStatus, Room, RoomType

RESERVATIONS_FILE = "reservations.yaml"
ROOMS_FILE = "rooms.yaml"
EVENTS_FILE = "reservation_events.yaml"
STORE_LOCK_FILE = ".store.lock"
ROOM_LOCKS_DIR = "locks"
STORE_LOCK_TIMEOUT_SECONDS = 10.0


@dataclass
class _DirectoryLocks:
    """Locks shared by every store opened on one data directory.

    Thread locks order callers inside this process; the file locks extend
    the same ordering to other processes using the directory.
    """

    store: threading.RLock
    store_file: FileLock
    rooms: dict[str, threading.Lock] = field(default_factory=dict)
    rooms_guard: threading.Lock = field(default_factory=threading.Lock)

    def room(self, room_id: str) -> threading.Lock:
        with self.rooms_guard:
            lock = self.rooms.get(room_id)
            if lock is None:
                lock = threading.Lock()
                self.rooms[room_id] = lock
            return lock


_DIRECTORY_LOCKS: dict[Path, _DirectoryLocks] = {}
_DIRECTORY_LOCKS_GUARD = threading.Lock()


def _directory_locks(base_dir: Path) -> _DirectoryLocks:
    key = base_dir.resolve()
    with _DIRECTORY_LOCKS_GUARD:
        locks = _DIRECTORY_LOCKS.get(key)
        if locks is None:
            locks = _DirectoryLocks(
                store=threading.RLock(),
                store_file=FileLock(str(key / STORE_LOCK_FILE), timeout=STORE_LOCK_TIMEOUT_SECONDS),
            )
            _DIRECTORY_LOCKS[key] = locks
        return locks


class _YamlDataDirectory:
    """Shared file handling for the YAML files kept under one data directory.

    Every store opened on the same directory shares one re-entrant lock
    (plus a file lock for other processes), so read-modify-write cycles
    never interleave.
    """

    def __init__(self, base_dir: str | Path = "data") -> None:
        self.base_dir = Path(base_dir)
        self.log_file = self.base_dir / EVENTS_FILE
        self._ensure_files()
        self._locks = _directory_locks(self.base_dir)

    def _data_files(self) -> tuple[Path, ...]:
        return (self.log_file,)

    def _ensure_files(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            for path in self._data_files():
                if not path.exists():
                    path.write_text("[]\n", encoding="utf-8")
        except OSError as error:
            raise ReservationStorageError(f"Failed to prepare data directory: {self.base_dir}") from error

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._locks.store:
            try:
                self._locks.store_file.acquire()
            except Timeout as error:
                raise ConcurrencyConflictError("Timed out waiting for the reservation store. Please retry.") from error
            try:
                yield
            finally:
                self._locks.store_file.release()

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            self._write_yaml_list(path, [])
            return []
        except yaml.YAMLError as error:
            return self._handle_corrupted_yaml(path, error)
        except (OSError, UnicodeDecodeError) as error:
            raise ReservationStorageError(f"Failed to read YAML file: {path}") from error

        if payload is None:
            return []
        if not isinstance(payload, list):
            return self._handle_corrupted_yaml(path, ValueError("top-level YAML is not a list"))

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            elif path != self.log_file:
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
            raise ReservationStorageError(f"Failed to write YAML file: {path}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _handle_corrupted_yaml(self, path: Path, error: Exception) -> list[dict[str, Any]]:
        # Only the event log may be reset; losing booking rows would unblock taken slots.
        if path != self.log_file:
            raise ReservationStorageError(f"YAML file is corrupted: {path} ({error})") from error

        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError as copy_error:
            raise ReservationStorageError(f"Failed to back up corrupted file: {path}") from copy_error

        recovered = [
            {
                "event_time": datetime.now().isoformat(timespec="seconds"),
                "event_type": "YAML_RECOVERED",
                "payload": {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            }
        ]
        self._write_yaml_list(path, recovered)
        return recovered

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now()).isoformat(timespec="seconds")
        with self._locked():
            events = self._read_yaml_list(self.log_file)
            events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
            self._write_yaml_list(self.log_file, events)

    def get_events(self) -> list[dict[str, Any]]:
        with self._locked():
            return self._read_yaml_list(self.log_file)


class ReservationYamlRepository(_YamlDataDirectory):
    def __init__(self, base_dir: str | Path = "data", settings: BookingSettings | None = None) -> None:
        self.reservations_file = Path(base_dir) / RESERVATIONS_FILE
        self._settings = settings
        super().__init__(base_dir)

    def _data_files(self) -> tuple[Path, ...]:
        return (self.reservations_file, self.log_file)

    def _load_records(self) -> list[ReservationRecord]:
        rows = self._read_yaml_list(self.reservations_file)
        try:
            records = [ReservationRecord.from_dict(row) for row in rows]
        except (KeyError, TypeError, ValueError) as error:
            raise ReservationStorageError(f"Malformed reservation row in {self.reservations_file}") from error
        if self._settings is None:
            return records
        return [self._on_configured_clock(record) for record in records]

    def _on_configured_clock(self, record: ReservationRecord) -> ReservationRecord:
        # Rows written under the other clock setting stay comparable with new ones.
        normalize = self._settings.normalize
        return replace(
            record,
            start=normalize(record.start),
            end=normalize(record.end),
            created_at=normalize(record.created_at) if record.created_at is not None else None,
            updated_at=normalize(record.updated_at) if record.updated_at is not None else None,
        )

    @contextmanager
    def room_lock(self, room_id: str, timeout: float) -> Iterator[None]:
        """Hold the booking lock of one room for every store on this directory.

        Raises ``ConcurrencyConflictError`` when the lock is not free within
        ``timeout`` seconds, whether the holder is a thread or another process.
        """
        thread_lock = self._locks.room(room_id)
        if not thread_lock.acquire(timeout=timeout):
            raise ConcurrencyConflictError(f"Timed out waiting for the booking lock of room {room_id}. Please retry.")
        try:
            file_lock = FileLock(str(self._room_lock_path(room_id)), timeout=timeout)
            try:
                file_lock.acquire()
            except Timeout as error:
                raise ConcurrencyConflictError(
                    f"Timed out waiting for the booking lock of room {room_id}. Please retry."
                ) from error
            try:
                yield
            finally:
                file_lock.release()
        finally:
            thread_lock.release()

    def _room_lock_path(self, room_id: str) -> Path:
        lock_dir = self.base_dir / ROOM_LOCKS_DIR
        try:
            lock_dir.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise ReservationStorageError(f"Failed to prepare lock directory: {lock_dir}") from error
        digest = hashlib.sha256(room_id.encode("utf-8")).hexdigest()[:24]
        return lock_dir / f"room-{digest}.lock"

    def _save_records(self, records: list[ReservationRecord]) -> None:
        self._write_yaml_list(self.reservations_file, [record.to_dict() for record in records])

    def list_all(self) -> list[ReservationRecord]:
        with self._locked():
            return _sorted_by_start(self._load_records())

    def find_by_id(self, reservation_id: str) -> ReservationRecord | None:
        with self._locked():
            for record in self._load_records():
                if record.reservation_id == reservation_id:
                    return record
        return None

    def list_by_room(self, room_id: str) -> list[ReservationRecord]:
        with self._locked():
            return _sorted_by_start([record for record in self._load_records() if record.room_id == room_id])

    def list_by_user(self, username: str) -> list[ReservationRecord]:
        with self._locked():
            return _sorted_by_start([record for record in self._load_records() if record.username == username])

    def insert(self, record: ReservationRecord) -> ReservationRecord:
        with self._locked():
            records = self._load_records()
            if any(row.reservation_id == record.reservation_id for row in records):
                raise ValueError(f"Reservation id already exists: {record.reservation_id}")
            records.append(record)
            self._save_records(records)

            self._log_event(
                "RESERVATION_CREATED",
                {
                    "reservation_id": record.reservation_id,
                    "room_id": record.room_id,
                    "username": record.username,
                    "start": record.start.isoformat(timespec="minutes"),
                    "end": record.end.isoformat(timespec="minutes"),
                },
                record.created_at,
            )
        return record

    def update(self, record: ReservationRecord, event_type: str = "RESERVATION_UPDATED") -> bool:
        with self._locked():
            records = self._load_records()
            for index, row in enumerate(records):
                if row.reservation_id == record.reservation_id:
                    previous = row
                    records[index] = record
                    break
            else:
                return False
            self._save_records(records)

            self._log_event(
                event_type,
                {
                    "reservation_id": record.reservation_id,
                    "room_id": record.room_id,
                    "previous_status": previous.status.value,
                    "status": record.status.value,
                    "start": record.start.isoformat(timespec="minutes"),
                    "end": record.end.isoformat(timespec="minutes"),
                },
                record.updated_at,
            )
        return True

    def delete(self, reservation_id: str, now: datetime | None = None) -> ReservationRecord | None:
        with self._locked():
            records = self._load_records()
            remaining = [record for record in records if record.reservation_id != reservation_id]
            if len(remaining) == len(records):
                return None
            deleted = next(record for record in records if record.reservation_id == reservation_id)
            self._save_records(remaining)

            self._log_event("RESERVATION_DELETED", deleted.to_dict(), now)
        return deleted

    def complete_elapsed(self, now: datetime | None = None) -> int:
        """Mark every confirmed reservation whose end has passed as completed."""
        if self._settings is not None:
            effective_now = self._settings.normalize(now) if now is not None else self._settings.now()
        else:
            effective_now = now or datetime.now()

        with self._locked():
            records = self._load_records()
            completed_now: list[ReservationRecord] = []
            for index, record in enumerate(records):
                if record.status is ReservationStatus.CONFIRMED and record.end <= effective_now:
                    records[index] = record.complete(effective_now)
                    completed_now.append(records[index])

            if not completed_now:
                return 0
            self._save_records(records)

            for record in completed_now:
                self._log_event(
                    "RESERVATION_COMPLETED",
                    {
                        "reservation_id": record.reservation_id,
                        "room_id": record.room_id,
                        "end": record.end.isoformat(timespec="minutes"),
                    },
                    effective_now,
                )

        return len(completed_now)


class RoomYamlCatalog(_YamlDataDirectory):
    def __init__(self, base_dir: str | Path = "data") -> None:
        self.rooms_file = Path(base_dir) / ROOMS_FILE
        super().__init__(base_dir)

    def _data_files(self) -> tuple[Path, ...]:
        return (self.rooms_file, self.log_file)

    def _load_rooms(self) -> list[Room]:
        rows = self._read_yaml_list(self.rooms_file)
        try:
            return [Room.from_dict(row) for row in rows]
        except (KeyError, TypeError, ValueError) as error:
            raise ReservationStorageError(f"Malformed room row in {self.rooms_file}") from error

    def list_rooms(self) -> list[Room]:
        with self._locked():
            return sorted(self._load_rooms(), key=lambda room: (room.name, room.room_id))

    def get_room(self, room_id: str) -> Room | None:
        with self._locked():
            for room in self._load_rooms():
                if room.room_id == room_id:
                    return room
        return None

    def add_room(
        self,
        name: str,
        capacity: int,
        creator: str,
        description: str | None = None,
        room_type: RoomType | str = RoomType.GROUP,
        room_id: str | None = None,
        now: datetime | None = None,
    ) -> Room:
        try:
            resolved_type = RoomType(room_type)
        except ValueError as error:
            raise InvalidRoomError(f"Unknown room type: {room_type}") from error

        room = Room(
            room_id=room_id or str(uuid4()),
            name=name.strip(),
            capacity=capacity,
            creator=creator,
            description=description,
            room_type=resolved_type,
        )
        with self._locked():
            rooms = self._load_rooms()
            if any(existing.room_id == room.room_id for existing in rooms):
                raise ValueError(f"Room id already exists: {room.room_id}")
            rooms.append(room)
            self._write_yaml_list(self.rooms_file, [row.to_dict() for row in rooms])

            self._log_event("ROOM_ADDED", room.to_dict(), now)
        return room


def _sorted_by_start(records: list[ReservationRecord]) -> list[ReservationRecord]:
    return sorted(records, key=lambda record: (record.start, record.reservation_id))
