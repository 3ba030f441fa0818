from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Mapping
import os

from .errors import ConfigurationError

CLOCK_LOCAL = "local"
CLOCK_UTC = "utc"
CLOCK_CHOICES = (CLOCK_LOCAL, CLOCK_UTC)

DEFAULT_GRACE_MINUTES = 1
DEFAULT_LOCK_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class BookingSettings:
    grace_minutes: int = DEFAULT_GRACE_MINUTES
    clock: str = CLOCK_LOCAL
    data_dir: Path = Path("data")
    lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if self.grace_minutes < 0:
            raise ConfigurationError("grace_minutes must not be negative")
        if self.clock not in CLOCK_CHOICES:
            raise ConfigurationError(f"clock must be one of {', '.join(CLOCK_CHOICES)}")
        if self.lock_timeout_seconds <= 0:
            raise ConfigurationError("lock_timeout_seconds must be greater than zero")

    @property
    def grace(self) -> timedelta:
        return timedelta(minutes=self.grace_minutes)

    def now(self) -> datetime:
        if self.clock == CLOCK_UTC:
            return datetime.now(timezone.utc)
        return datetime.now()

    def normalize(self, value: datetime) -> datetime:
        """Bring a caller-supplied instant onto the configured clock.

        UTC mode works on aware datetimes (naive input is read as UTC);
        local mode works on naive server-local datetimes.
        """
        if self.clock == CLOCK_UTC:
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
            return value.astimezone(timezone.utc)

        if value.tzinfo is None:
            return value
        return value.astimezone().replace(tzinfo=None)

    def parse_instant(self, raw: str) -> datetime:
        """Parse an ISO-8601 timestamp and normalize it; raises ``ValueError``."""
        # fromisoformat before 3.11 rejects the "Z" suffix.
        text = raw.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        return self.normalize(datetime.fromisoformat(text))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "BookingSettings":
        env = os.environ if environ is None else environ
        grace_text = env.get("STUDYROOM_GRACE_MINUTES", str(DEFAULT_GRACE_MINUTES))
        timeout_text = env.get("STUDYROOM_LOCK_TIMEOUT", str(DEFAULT_LOCK_TIMEOUT_SECONDS))
        try:
            grace_minutes = int(grace_text)
        except ValueError as error:
            raise ConfigurationError(f"Invalid STUDYROOM_GRACE_MINUTES: {grace_text}") from error
        try:
            lock_timeout = float(timeout_text)
        except ValueError as error:
            raise ConfigurationError(f"Invalid STUDYROOM_LOCK_TIMEOUT: {timeout_text}") from error

        return cls(
            grace_minutes=grace_minutes,
            clock=env.get("STUDYROOM_CLOCK", CLOCK_LOCAL).strip().lower(),
            data_dir=Path(env.get("STUDYROOM_DATA_DIR", "data")),
            lock_timeout_seconds=lock_timeout,
        )
