"""AWS Lambda handler serving the school calendar as an ICS feed."""
import json
import logging
import os
import time
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from fetcher.school_calendar import DEFAULT_BASE_URL, SchoolCalendarClient
from processor.date_range import resolve_date_range
from processor.event_processor import DEFAULT_UID_DOMAIN, EventProcessor
from processor.exceptions import CalendarFeedError, UpstreamFetchFailed
from serializer.ics_builder import ICSBuilder

FEED_PATH = '/calendar.ics'
BANNER = "St Joseph's Infant Calendar ICS proxy\n\nUse /calendar.ics"
TEXT_CONTENT_TYPE = 'text/plain; charset=utf-8'
CALENDAR_CONTENT_TYPE = 'text/calendar; charset=utf-8'


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _response(
    status_code: int,
    body: str,
    content_type: str = TEXT_CONTENT_TYPE,
    headers: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """Build a Lambda proxy response."""
    response_headers = {'Content-Type': content_type}
    if headers:
        response_headers.update(headers)
    return {
        'statusCode': status_code,
        'headers': response_headers,
        'body': body
    }


def _request_path(event: Dict[str, Any]) -> str:
    """Read the request path from an API Gateway (v1/v2) or function URL event."""
    return event.get('rawPath') or event.get('path') or '/'


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler serving the ICS feed.

    Args:
        event: API Gateway or function URL request event
        context: Lambda context object

    Returns:
        Proxy response dict with statusCode, headers and body
    """
    # Read configuration from environment variables
    upstream_url = os.environ.get('UPSTREAM_URL', DEFAULT_BASE_URL)
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    cache_max_age = int(os.environ.get('CACHE_MAX_AGE', '3600'))
    uid_domain = os.environ.get('UID_DOMAIN', DEFAULT_UID_DOMAIN)

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    path = _request_path(event)
    if path == '/':
        return _response(200, BANNER)
    if path != FEED_PATH:
        return _response(404, 'Not found')

    start_time = time.time()
    query = event.get('queryStringParameters') or {}
    logger.info(
        "Lambda execution started",
        extra={
            'path': path,
            'start': query.get('start'),
            'end': query.get('end')
        }
    )

    try:
        now = datetime.now(timezone.utc)

        try:
            window = resolve_date_range(
                now,
                start=query.get('start'),
                end=query.get('end')
            )
        except CalendarFeedError as e:
            logger.warning(f"Rejected date range: {e}")
            return _response(400, f"Invalid date range: {e}")

        client = SchoolCalendarClient(base_url=upstream_url, timeout=timeout_seconds)
        processor = EventProcessor(uid_domain=uid_domain)
        builder = ICSBuilder()

        try:
            logger.info("Fetching events from calendar")
            raw_events = client.fetch_events(window)
        except UpstreamFetchFailed as e:
            logger.error(
                f"Failed to fetch events from calendar: {e}",
                extra={'status_code': e.status_code}
            )
            return _response(502, str(e))

        logger.info("Normalizing events")
        events = processor.process_events(raw_events)

        ics = builder.build(events, now=now)

        duration = time.time() - start_time
        logger.info(
            "Lambda execution completed successfully",
            extra={
                'duration_seconds': round(duration, 2),
                'raw_events_fetched': len(raw_events),
                'events_emitted': len(events)
            }
        )

        return _response(
            200,
            ics,
            content_type=CALENDAR_CONTENT_TYPE,
            headers={
                'Cache-Control': f'public, max-age={cache_max_age}',
                'Access-Control-Allow-Origin': '*'
            }
        )

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _response(500, 'Internal server error')
