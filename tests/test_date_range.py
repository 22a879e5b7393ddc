"""Unit tests for date range resolution."""
from datetime import datetime, timezone

import pytest
from processor.date_range import (
    format_api_date,
    parse_user_date,
    resolve_date_range,
)
from processor.exceptions import InvalidDateFormat, InvalidRange

NOW = datetime(2025, 6, 15, 9, 30, tzinfo=timezone.utc)


class TestParseUserDate:
    """Test cases for caller-supplied date parsing."""

    def test_strict_date_is_utc_midnight(self):
        """Test that YYYY-MM-DD is read as UTC midnight."""
        assert parse_user_date(' 2025-09-01 ', NOW) == datetime(2025, 9, 1, tzinfo=timezone.utc)

    def test_naive_timestamp_is_utc(self):
        """Test that a naive ISO timestamp is taken as UTC."""
        parsed = parse_user_date('2025-09-01T12:00:00', NOW)
        assert parsed == datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)

    def test_offset_timestamp_is_converted(self):
        """Test that an offset timestamp is converted to UTC."""
        parsed = parse_user_date('2025-09-01T02:00:00+02:00', NOW)
        assert parsed == datetime(2025, 9, 1, 0, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize('value', ['garbage', 'not-a-date', '2025-13-45', '2025-02-30'])
    def test_malformed_dates(self, value):
        """Test that malformed dates raise InvalidDateFormat."""
        with pytest.raises(InvalidDateFormat) as exc_info:
            parse_user_date(value, NOW)

        assert exc_info.value.value == value
        assert value in str(exc_info.value)

    def test_partial_date_filled_from_now(self):
        """Test that missing fields come from the injected instant, not the wall clock."""
        assert parse_user_date('June', NOW) == datetime(2025, 6, 15, tzinfo=timezone.utc)

        earlier = datetime(2019, 3, 10, 22, 45, tzinfo=timezone.utc)
        assert parse_user_date('June', earlier) == datetime(2019, 6, 10, tzinfo=timezone.utc)
        assert parse_user_date('15', earlier) == datetime(2019, 3, 15, tzinfo=timezone.utc)

    def test_error_message_is_single_line(self):
        """Test that line breaks in the caller value do not reach the message."""
        with pytest.raises(InvalidDateFormat) as exc_info:
            resolve_date_range(NOW, start='2025-01-01\nX-Injected: yes')

        message = str(exc_info.value)
        assert '\n' not in message
        assert '\r' not in message
        assert 'X-Injected' in message


class TestResolveDateRange:
    """Test cases for resolve_date_range."""

    def test_defaults(self):
        """Test the rolling default window."""
        window = resolve_date_range(NOW)

        assert window.start == datetime(2025, 5, 1, tzinfo=timezone.utc)
        assert window.end == datetime(2026, 5, 1, tzinfo=timezone.utc)

    def test_defaults_in_january(self):
        """Test that the default start rolls back into the previous year."""
        window = resolve_date_range(datetime(2026, 1, 31, 23, 59, tzinfo=timezone.utc))

        assert window.start == datetime(2025, 12, 1, tzinfo=timezone.utc)
        assert window.end == datetime(2026, 12, 1, tzinfo=timezone.utc)

    def test_defaults_stable_within_month(self):
        """Test that the default window only moves at month boundaries."""
        early = resolve_date_range(datetime(2025, 6, 1, tzinfo=timezone.utc))
        late = resolve_date_range(datetime(2025, 6, 30, 23, 0, tzinfo=timezone.utc))

        assert early == late

    def test_explicit_window_unchanged(self):
        """Test that a valid explicit window is returned as given."""
        window = resolve_date_range(NOW, start='2024-09-01', end='2024-12-31')

        assert window.start == datetime(2024, 9, 1, tzinfo=timezone.utc)
        assert window.end == datetime(2024, 12, 31, tzinfo=timezone.utc)

    def test_empty_strings_use_defaults(self):
        """Test that empty query values behave like omitted ones."""
        assert resolve_date_range(NOW, start='', end='') == resolve_date_range(NOW)

    def test_end_before_start(self):
        """Test that an inverted window raises InvalidRange."""
        with pytest.raises(InvalidRange):
            resolve_date_range(NOW, start='2025-09-01', end='2025-08-01')

    def test_end_equal_to_start(self):
        """Test that an empty window raises InvalidRange."""
        with pytest.raises(InvalidRange):
            resolve_date_range(NOW, start='2025-09-01', end='2025-09-01')

    def test_explicit_start_after_default_end(self):
        """Test that the range check also covers defaulted bounds."""
        with pytest.raises(InvalidRange):
            resolve_date_range(NOW, start='2027-01-01')

    def test_malformed_bound(self):
        """Test that a malformed bound raises InvalidDateFormat."""
        with pytest.raises(InvalidDateFormat):
            resolve_date_range(NOW, end='garbage')


def test_format_api_date():
    """Test the upstream date format."""
    assert format_api_date(datetime(2025, 5, 1, tzinfo=timezone.utc)) == '2025-05-01T00:00:00'
