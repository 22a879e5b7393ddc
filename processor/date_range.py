"""Resolve the date window requested from the upstream calendar."""
import logging
import re
from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as dtparser
from dateutil.relativedelta import relativedelta

from processor.exceptions import InvalidDateFormat
from processor.models import DateWindow

logger = logging.getLogger(__name__)

ISO_DATE_RE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')

# Offsets in months from the first day of the current month.
MONTHS_BEFORE = 1
MONTHS_AFTER = 11


def parse_user_date(value: str, now: datetime) -> datetime:
    """
    Parse a caller-supplied date bound.

    Strict YYYY-MM-DD is taken as UTC midnight. Anything else goes through
    dateutil's general parser, with any missing fields taken from the UTC
    calendar day of now; naive results are assumed to be UTC.

    Args:
        value: Date text from the query string
        now: Evaluation instant supplying missing date fields

    Returns:
        Timezone-aware UTC datetime

    Raises:
        InvalidDateFormat: If the text cannot be parsed
    """
    text = value.strip()

    match = ISO_DATE_RE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        try:
            return datetime(year, month, day, tzinfo=timezone.utc)
        except ValueError as e:
            raise InvalidDateFormat(value, str(e)) from e

    try:
        parsed = dtparser.parse(text, default=_parser_default(now))
    except (ValueError, OverflowError) as e:
        raise InvalidDateFormat(
            value, 'expected YYYY-MM-DD or an ISO 8601 timestamp'
        ) from e

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parser_default(now: datetime) -> datetime:
    now_utc = now.astimezone(timezone.utc) if now.tzinfo else now
    return now_utc.replace(tzinfo=None, hour=0, minute=0, second=0, microsecond=0)


def default_window_bounds(now: datetime) -> tuple[datetime, datetime]:
    """
    Compute the rolling default window for the month containing now.

    The window only moves at month boundaries so subscribers polling daily
    see a stable set of dates.
    """
    now_utc = now.astimezone(timezone.utc) if now.tzinfo else now
    month_start = datetime(now_utc.year, now_utc.month, 1, tzinfo=timezone.utc)
    return (
        month_start - relativedelta(months=MONTHS_BEFORE),
        month_start + relativedelta(months=MONTHS_AFTER),
    )


def resolve_date_range(
    now: datetime,
    start: Optional[str] = None,
    end: Optional[str] = None
) -> DateWindow:
    """
    Resolve the [start, end) window from optional caller input.

    Args:
        now: Evaluation instant used for the defaults
        start: Optional start bound text
        end: Optional end bound text

    Returns:
        Validated DateWindow

    Raises:
        InvalidDateFormat: If an explicit bound cannot be parsed
        InvalidRange: If the resolved end is not after the resolved start
    """
    default_start, default_end = default_window_bounds(now)

    start_dt = parse_user_date(start, now) if start else default_start
    end_dt = parse_user_date(end, now) if end else default_end

    logger.debug(
        f"Resolved date range {start_dt.isoformat()} - {end_dt.isoformat()}"
    )
    return DateWindow(start=start_dt, end=end_dt)


def format_api_date(value: datetime) -> str:
    """Format a window bound as the upstream API expects (YYYY-MM-DDT00:00:00)."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT00:00:00')
