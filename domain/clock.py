"""Clock collaborator"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):
    """Supplies "now" for datetime-window validation"""

    @abstractmethod
    def now(self) -> datetime:
        """Current timezone-aware UTC time"""
        pass


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def coerce_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC, convert aware ones"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
