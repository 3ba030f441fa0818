from .booking import TimeInterval, has_time_overlap, is_valid_order, overlaps
from .config import BookingSettings
from .conflicts import ConflictChecker, find_conflicts
from .errors import (
	AlreadyCancelledError,
	AlreadyCompletedError,
	ConcurrencyConflictError,
	ConfigurationError,
	InvalidIntervalError,
	InvalidRoomError,
	InvalidTransitionError,
	ReservationError,
	ReservationInPastError,
	ReservationNotFoundError,
	ReservationStorageError,
	RoomNotFoundError,
	SlotUnavailableError,
	TooLateToCancelError,
)
from .models import BookedReservation, ReservationRecord, ReservationStatus, Room, RoomType
from .service import BookingService
from .yaml_store import ReservationYamlRepository, RoomYamlCatalog

__all__ = [
	"TimeInterval",
	"has_time_overlap",
	"is_valid_order",
	"overlaps",
	"BookingSettings",
	"ConflictChecker",
	"find_conflicts",
	"AlreadyCancelledError",
	"AlreadyCompletedError",
	"ConcurrencyConflictError",
	"ConfigurationError",
	"InvalidIntervalError",
	"InvalidRoomError",
	"InvalidTransitionError",
	"ReservationError",
	"ReservationInPastError",
	"ReservationNotFoundError",
	"ReservationStorageError",
	"RoomNotFoundError",
	"SlotUnavailableError",
	"TooLateToCancelError",
	"BookedReservation",
	"ReservationRecord",
	"ReservationStatus",
	"Room",
	"RoomType",
	"BookingService",
	"ReservationYamlRepository",
	"RoomYamlCatalog",
]
