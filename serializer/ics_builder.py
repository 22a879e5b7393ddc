"""iCalendar (RFC 5545) document builder."""
import logging
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional

from processor.models import AllDayTiming, CanonicalEvent, TimedTiming

logger = logging.getLogger(__name__)

CRLF = '\r\n'
MAX_LINE_OCTETS = 75


def escape_text(value: str) -> str:
    """
    Escape a TEXT value (RFC 5545 section 3.3.11).

    Args:
        value: Raw text

    Returns:
        Text with backslash, semicolon, comma and line breaks escaped
    """
    return (
        str(value)
        .replace('\\', '\\\\')
        .replace(';', '\\;')
        .replace(',', '\\,')
        .replace('\r\n', '\\n')
        .replace('\n', '\\n')
        .replace('\r', '\\n')
    )


def fold_line(line: str, limit: int = MAX_LINE_OCTETS) -> List[str]:
    """
    Fold a content line into physical lines of at most `limit` octets.

    Continuation lines start with a single space, which counts toward the
    limit. Multi-byte UTF-8 characters are never split.

    Args:
        line: Unfolded content line without line ending
        limit: Maximum octets per physical line

    Returns:
        Physical lines, continuation lines already prefixed with a space
    """
    if len(line.encode('utf-8')) <= limit:
        return [line]

    lines = []
    current = ''
    current_size = 0
    for char in line:
        size = len(char.encode('utf-8'))
        if current_size + size > limit:
            lines.append(current)
            current = ' '
            current_size = 1
        current += char
        current_size += size
    lines.append(current)
    return lines


def format_utc_timestamp(value: datetime) -> str:
    """Format an instant as UTC YYYYMMDDTHHMMSSZ."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return format_floating(value) + 'Z'


def format_date(value: date) -> str:
    """Format a date as YYYYMMDD."""
    return f'{value.year:04d}{value.month:02d}{value.day:02d}'


def format_floating(value: datetime) -> str:
    """Format a wall-clock datetime as floating YYYYMMDDTHHMMSS."""
    return f'{format_date(value)}T{value.hour:02d}{value.minute:02d}{value.second:02d}'


class ICSBuilder:
    """Renders canonical events into an iCalendar document."""

    DEFAULT_PRODUCT_ID = '-//StJosephsInfantProxy//EN'

    def __init__(self, product_id: str = DEFAULT_PRODUCT_ID):
        """
        Initialize the builder.

        Args:
            product_id: PRODID value of generated calendars
        """
        self.product_id = product_id

    def build(
        self,
        events: Iterable[CanonicalEvent],
        now: Optional[datetime] = None
    ) -> str:
        """
        Build a complete VCALENDAR document.

        Args:
            events: Canonical events, emitted in the given order
            now: Generation instant used as DTSTAMP for every event

        Returns:
            Document text with CRLF line endings
        """
        if now is None:
            now = datetime.now(timezone.utc)
        dtstamp = format_utc_timestamp(now)

        lines = [
            'BEGIN:VCALENDAR',
            'VERSION:2.0',
            f'PRODID:{self.product_id}',
            'CALSCALE:GREGORIAN',
            'METHOD:PUBLISH',
        ]

        count = 0
        for event in events:
            lines.extend(self._event_lines(event, dtstamp))
            count += 1

        lines.append('END:VCALENDAR')
        logger.info(f"Built calendar with {count} events")

        physical = []
        for line in lines:
            physical.extend(fold_line(line))
        return CRLF.join(physical) + CRLF

    def _event_lines(self, event: CanonicalEvent, dtstamp: str) -> List[str]:
        lines = [
            'BEGIN:VEVENT',
            f'UID:{escape_text(event.uid)}',
            f'DTSTAMP:{dtstamp}',
        ]
        lines.extend(self._timing_lines(event))

        if event.summary:
            lines.append(f'SUMMARY:{escape_text(event.summary)}')
        if event.description:
            lines.append(f'DESCRIPTION:{escape_text(event.description)}')
        if event.url:
            lines.append(f'URL:{escape_text(event.url)}')

        lines.append('END:VEVENT')
        return lines

    def _timing_lines(self, event: CanonicalEvent) -> List[str]:
        timing = event.timing
        if isinstance(timing, AllDayTiming):
            lines = [f"DTSTART;VALUE=DATE:{format_date(timing.start_date)}"]
            if timing.end_date is not None:
                lines.append(f"DTEND;VALUE=DATE:{format_date(timing.end_date)}")
            return lines
        if isinstance(timing, TimedTiming):
            return [
                f'DTSTART:{format_floating(timing.start)}',
                f'DTEND:{format_floating(timing.end)}',
            ]
        raise TypeError(f"Unsupported event timing: {type(timing).__name__}")
