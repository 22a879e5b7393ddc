"""Data models for calendar feed processing."""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping, Optional, Union

from processor.exceptions import InvalidRange

# Upstream records are loosely typed; every key is optional.
RawEvent = Mapping[str, Any]


@dataclass(frozen=True)
class DateWindow:
    """Half-open [start, end) window requested from upstream, in UTC."""
    start: datetime
    end: datetime

    def __post_init__(self):
        if not self.end > self.start:
            raise InvalidRange(self.start, self.end)


@dataclass(frozen=True)
class AllDayTiming:
    """Whole-day event expressed as calendar dates."""
    start_date: date
    end_date: Optional[date] = None


@dataclass(frozen=True)
class TimedTiming:
    """Event with floating (timezone-less) start and end."""
    start: datetime
    end: datetime


Timing = Union[AllDayTiming, TimedTiming]


@dataclass
class CanonicalEvent:
    """Normalized event ready for serialization."""
    uid: str
    timing: Timing
    summary: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
