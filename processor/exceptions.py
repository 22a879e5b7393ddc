"""Errors raised while building the calendar feed."""
from datetime import datetime
from typing import Optional


class CalendarFeedError(Exception):
    """Base class for feed errors surfaced to the caller."""


class InvalidDateFormat(CalendarFeedError):
    """A caller-supplied date could not be parsed."""

    def __init__(self, value: str, reason: str = 'expected YYYY-MM-DD'):
        self.value = value
        self.reason = reason
        super().__init__(f"cannot parse date {value!r}: {reason}")


class InvalidRange(CalendarFeedError):
    """The resolved end is not after the resolved start."""

    def __init__(self, start: datetime, end: datetime):
        self.start = start
        self.end = end
        super().__init__(
            f"end must be after start (start={start.isoformat()}, "
            f"end={end.isoformat()})"
        )


class UpstreamFetchFailed(CalendarFeedError):
    """The upstream calendar API did not return a usable response."""

    def __init__(self, status_code: Optional[int] = None, reason: str = ''):
        self.status_code = status_code
        self.reason = reason
        if status_code is not None:
            message = f"Failed to fetch remote calendar (status {status_code})"
            if reason:
                message += f": {reason}"
        else:
            message = f"Failed to fetch remote calendar ({reason})"
        super().__init__(message)
