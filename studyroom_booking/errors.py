from __future__ import annotations


class ReservationError(ValueError):
    """Business-rule violation. ``kind`` is stable and safe to match on."""

    kind = "ReservationError"
    default_message = "Reservation request was rejected."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class InvalidIntervalError(ReservationError):
    kind = "InvalidInterval"
    default_message = "Reservation start time must be earlier than end time."


class ReservationInPastError(ReservationError):
    kind = "ReservationInPast"
    default_message = "Reservation start time cannot be in the past."


class RoomNotFoundError(ReservationError):
    kind = "RoomNotFound"
    default_message = "The room requested for the reservation does not exist."


class SlotUnavailableError(ReservationError):
    kind = "SlotUnavailable"
    default_message = "Reservation overlaps with an existing active reservation."


class ReservationNotFoundError(ReservationError):
    kind = "NotFound"
    default_message = "Reservation not found."


class AlreadyCancelledError(ReservationError):
    kind = "AlreadyCancelled"
    default_message = "Reservation is already cancelled."


class AlreadyCompletedError(ReservationError):
    kind = "AlreadyCompleted"
    default_message = "Reservation is already completed."


class TooLateToCancelError(ReservationError):
    kind = "TooLateToCancel"
    default_message = "Reservation has already ended and can no longer be changed."


class ConcurrencyConflictError(ReservationError):
    kind = "ConcurrencyConflict"
    default_message = "Another booking for this room is in progress. Please retry."


class InvalidTransitionError(ReservationError):
    kind = "InvalidTransition"
    default_message = "Reservation status transition is not allowed."


class InvalidRoomError(ReservationError):
    kind = "InvalidRoom"
    default_message = "Room data is invalid."


class ReservationStorageError(RuntimeError):
    kind = "StorageUnavailable"


class ConfigurationError(RuntimeError):
    kind = "ConfigurationError"
