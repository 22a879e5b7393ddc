"""Client for the school's JSON calendar API."""
import logging
import time
from typing import Any, List

import requests

from processor.date_range import format_api_date
from processor.exceptions import UpstreamFetchFailed
from processor.models import DateWindow

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.stjosephsinfant.school/calendar/api.asp"


class SchoolCalendarClient:
    """Fetches raw event records from the school calendar API."""

    # Fixed view parameters identifying the public calendar
    CALENDAR_PARAMS = {
        'pid': '3',
        'viewid': '2',
        'calid': '1',
        'bgedit': 'false',
    }

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: int = 30):
        """
        Initialize the calendar client.

        Args:
            base_url: Upstream API endpoint
            timeout: HTTP request timeout in seconds (default: 30)
        """
        self.base_url = base_url
        self.timeout = timeout

    def build_params(self, window: DateWindow) -> dict:
        """
        Build the upstream query parameters for a date window.

        Args:
            window: Resolved date window

        Returns:
            Query parameters including a cache-busting token
        """
        params = dict(self.CALENDAR_PARAMS)
        params['start'] = format_api_date(window.start)
        params['end'] = format_api_date(window.end)
        params['_'] = str(int(time.time() * 1000))
        return params

    def fetch_events(self, window: DateWindow) -> List[Any]:
        """
        Fetch raw events for a date window.

        A single attempt is made; callers that want retries wrap this call.

        Args:
            window: Resolved date window

        Returns:
            List of raw event records (usually dicts)

        Raises:
            UpstreamFetchFailed: If the request fails or the body is not JSON
        """
        params = self.build_params(window)
        logger.info(
            f"Fetching events from {params['start']} to {params['end']}"
        )

        try:
            response = requests.get(
                self.base_url,
                params=params,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Request to calendar API failed: {e}")
            raise UpstreamFetchFailed(reason=type(e).__name__) from e

        if not response.ok:
            logger.error(
                f"Calendar API returned status {response.status_code}"
            )
            raise UpstreamFetchFailed(status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Calendar API returned invalid JSON: {e}")
            raise UpstreamFetchFailed(
                status_code=response.status_code,
                reason='invalid JSON body'
            ) from e

        if not isinstance(payload, list):
            logger.warning(
                f"Expected a JSON array from calendar API, got "
                f"{type(payload).__name__}; treating as empty"
            )
            return []

        logger.info(f"Successfully fetched {len(payload)} events")
        return payload
