"""Tests for utils/timezone.py - UTC-everywhere time handling."""

from datetime import datetime, timedelta, timezone

import pytest

from utils.timezone import from_epoch_millis, now_utc, to_epoch_millis, to_utc


class TestNowUtc:

    def test_is_aware_utc(self):
        result = now_utc()
        assert result.tzinfo == timezone.utc


class TestToUtc:

    def test_raises_on_naive(self):
        """Naive datetime must raise ValueError."""
        with pytest.raises(ValueError, match="naive"):
            to_utc(datetime(2024, 1, 1, 12, 0, 0))

    def test_converts_offset(self):
        shanghai = timezone(timedelta(hours=8))
        result = to_utc(datetime(2024, 1, 1, 20, 0, tzinfo=shanghai))
        assert result == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert result.tzinfo == timezone.utc


class TestEpochMillis:
    """The user center sends expireAt as epoch milliseconds."""

    def test_from_epoch_millis(self):
        assert from_epoch_millis(1_700_000_000_000) == datetime(
            2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc
        )

    def test_to_epoch_millis_keeps_milliseconds(self):
        dt = datetime(2023, 11, 14, 22, 13, 20, 123000, tzinfo=timezone.utc)
        assert to_epoch_millis(dt) == 1_700_000_000_123

    def test_to_epoch_millis_rejects_naive(self):
        with pytest.raises(ValueError):
            to_epoch_millis(datetime(2024, 1, 1))
