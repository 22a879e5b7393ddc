"""Event processor for normalizing upstream calendar records."""
import hashlib
import logging
import re
from collections.abc import Mapping
from datetime import date, datetime, timedelta
from typing import Any, Iterable, List, Optional, Tuple

from dateutil import parser as dtparser

from processor.models import (
    AllDayTiming,
    CanonicalEvent,
    RawEvent,
    TimedTiming,
    Timing,
)

logger = logging.getLogger(__name__)

DATE_PREFIX_RE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})')
EMBEDDED_TIME_RE = re.compile(r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}')
CLOCK_12H_RE = re.compile(r'^(\d{1,2})(?::(\d{2}))?(am|pm)$')
CLOCK_24H_RE = re.compile(r'^(\d{1,2}):(\d{2})$')

ALL_DAY_TEXT = 'all day'
DEFAULT_DURATION = timedelta(hours=1)
DEFAULT_UID_DOMAIN = 'stjosephsinfant.school'


def parse_clock_time(time_str: Any) -> Optional[Tuple[int, int]]:
    """
    Parse a clock time such as "3pm", "3:30pm" or "15:04".

    Args:
        time_str: Time text from the upstream record

    Returns:
        (hour, minute) in 24-hour form, or None if the text is not a clock time
    """
    if time_str is None:
        return None
    text = str(time_str).strip().lower()

    match = CLOCK_12H_RE.match(text)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2)) if match.group(2) else 0
        if not 1 <= hour <= 12 or minute > 59:
            return None
        if match.group(3) == 'pm' and hour != 12:
            hour += 12
        elif match.group(3) == 'am' and hour == 12:
            hour = 0
        return hour, minute

    match = CLOCK_24H_RE.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            return None
        return hour, minute

    return None


def parse_date_only(value: Any) -> Optional[date]:
    """Return the calendar date prefix (YYYY-MM-DD) of a value, if any."""
    if not value:
        return None
    match = DATE_PREFIX_RE.match(str(value).strip())
    if not match:
        return None
    try:
        return date(*(int(part) for part in match.groups()))
    except ValueError:
        return None


def parse_event_datetime(date_value: Any, time_str: Any = None) -> Optional[datetime]:
    """
    Combine an upstream date field and optional time field into a floating datetime.

    A date value that already carries a time ("2025-12-12T15:30:00") is parsed
    on its own and the time field is ignored. Otherwise the date portion is
    combined with the parsed clock time, falling back to midnight.

    Args:
        date_value: Upstream start/date/end value
        time_str: Optional upstream time-of-day text

    Returns:
        Naive datetime, or None if no date could be derived
    """
    if not date_value:
        return None
    text = str(date_value).strip()

    if EMBEDDED_TIME_RE.match(text):
        try:
            parsed = dtparser.isoparse(text)
        except (ValueError, OverflowError):
            return None
        # Floating time: keep the written wall clock, drop any offset
        return parsed.replace(tzinfo=None)

    day = parse_date_only(text)
    if day is None:
        return None

    clock = parse_clock_time(time_str) if time_str else None
    hour, minute = clock if clock else (0, 0)
    return datetime(day.year, day.month, day.day, hour, minute)


class EventProcessor:
    """Processor for normalizing upstream calendar records."""

    DESCRIPTION_SEPARATOR = '\n'

    def __init__(self, uid_domain: str = DEFAULT_UID_DOMAIN):
        """
        Initialize the event processor.

        Args:
            uid_domain: Domain suffix appended to every event UID
        """
        self.uid_domain = uid_domain

    def process_events(self, raw_events: Iterable[RawEvent]) -> List[CanonicalEvent]:
        """
        Normalize raw upstream records, keeping their order.

        Records without a usable start are skipped; one bad record never
        fails the whole feed.

        Args:
            raw_events: Records decoded from the upstream JSON array

        Returns:
            List of CanonicalEvent objects
        """
        processed_events = []
        total = 0

        for raw_event in raw_events:
            total += 1
            if not isinstance(raw_event, Mapping):
                logger.warning(
                    f"Skipping non-object upstream record: {type(raw_event).__name__}"
                )
                continue

            try:
                event = self.normalize_event(raw_event)
                if event:
                    processed_events.append(event)
            except Exception as e:
                logger.warning(
                    f"Failed to process event {raw_event.get('id')!r}: {e}"
                )
                continue

        logger.info(
            f"Processed {len(processed_events)} valid events out of "
            f"{total} total events"
        )
        return processed_events

    def normalize_event(self, raw_event: RawEvent) -> Optional[CanonicalEvent]:
        """
        Map one upstream record to a CanonicalEvent.

        Args:
            raw_event: Upstream record

        Returns:
            CanonicalEvent, or None if no start could be derived
        """
        timing = self._derive_timing(raw_event)
        if timing is None:
            logger.warning(
                f"Skipping event {raw_event.get('id')!r}: no usable start "
                f"(start={raw_event.get('start')!r}, date={raw_event.get('date')!r})"
            )
            return None

        return CanonicalEvent(
            uid=self.generate_uid(raw_event),
            timing=timing,
            summary=_text(raw_event.get('title')),
            description=self._compose_description(raw_event),
            url=_text(raw_event.get('url'))
        )

    def is_all_day(self, raw_event: RawEvent) -> bool:
        """Return True if the record is flagged all-day or its time reads "All Day"."""
        if raw_event.get('allDay'):
            return True
        time_text = raw_event.get('time')
        return bool(time_text) and str(time_text).strip().lower() == ALL_DAY_TEXT

    def _derive_timing(self, raw_event: RawEvent) -> Optional[Timing]:
        start_value = raw_event.get('start') or raw_event.get('date')

        if self.is_all_day(raw_event):
            start_date = parse_date_only(start_value)
            if start_date is None:
                return None
            return AllDayTiming(
                start_date=start_date,
                end_date=parse_date_only(raw_event.get('end'))
            )

        start = parse_event_datetime(start_value, raw_event.get('time'))
        if start is None:
            return None

        end = parse_event_datetime(raw_event.get('end'))
        if end is None:
            try:
                end = start + DEFAULT_DURATION
            except OverflowError:
                return None
        return TimedTiming(start=start, end=end)

    def _compose_description(self, raw_event: RawEvent) -> Optional[str]:
        parts = [
            text for text in (
                _text(raw_event.get('desc')),
                _text(raw_event.get('recurrence'))
            ) if text
        ]
        if not parts:
            return None
        return self.DESCRIPTION_SEPARATOR.join(parts)

    def generate_uid(self, raw_event: RawEvent) -> str:
        """
        Generate a UID that is stable across requests for the same record.

        The upstream id is used when present; otherwise a SHA256 of
        title + start stands in for it.

        Args:
            raw_event: Upstream record

        Returns:
            UID in the form "<id>@<domain>"
        """
        event_id = raw_event.get('id')
        if event_id is None or str(event_id).strip() == '':
            composite = (
                f"{raw_event.get('title') or ''}|"
                f"{raw_event.get('start') or raw_event.get('date') or ''}"
            )
            event_id = hashlib.sha256(_utf8_safe(composite).encode('utf-8')).hexdigest()
        return f"{_utf8_safe(str(event_id))}@{self.uid_domain}"


def _text(value: Any) -> Optional[str]:
    """Return value as a string, or None when absent or empty."""
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    return _utf8_safe(text) if text else None


def _utf8_safe(text: str) -> str:
    # JSON can carry lone surrogates, which UTF-8 cannot encode
    return text.encode('utf-8', 'replace').decode('utf-8')
