"""Tests for the injectable clock and business-date resolution."""

from datetime import date, datetime, timezone

import pytest

from settlement_kernel.domain.clock import DeterministicClock, resolve_timezone


class TestDeterministicClock:

    def test_now_is_stable_until_advanced(self):
        clock = DeterministicClock(datetime(2025, 11, 14, 9, 0, tzinfo=timezone.utc))

        assert clock.now() == clock.now()
        assert clock.advance(90) == datetime(2025, 11, 14, 9, 1, 30, tzinfo=timezone.utc)
        assert clock.now() == datetime(2025, 11, 14, 9, 1, 30, tzinfo=timezone.utc)

    def test_naive_start_rejected(self):
        with pytest.raises(ValueError):
            DeterministicClock(datetime(2025, 11, 14, 9, 0))


class TestBusinessDate:

    def test_today_defaults_to_utc_date(self):
        clock = DeterministicClock(datetime(2025, 11, 13, 22, 30, tzinfo=timezone.utc))

        assert clock.today() == date(2025, 11, 13)

    def test_today_follows_business_timezone(self):
        # 22:30 UTC is 01:30 the next morning in Nairobi (UTC+3)
        clock = DeterministicClock(
            datetime(2025, 11, 13, 22, 30, tzinfo=timezone.utc),
            business_timezone="Africa/Nairobi",
        )

        assert clock.today() == date(2025, 11, 14)

    def test_current_period_crosses_month_end_in_business_timezone(self):
        clock = DeterministicClock(
            datetime(2025, 11, 30, 21, 15, tzinfo=timezone.utc),
            business_timezone="Africa/Nairobi",
        )

        assert clock.current_period() == (2025, 12)

    @pytest.mark.parametrize("name", [None, "", "UTC", "utc"])
    def test_utc_names_resolve_to_utc(self, name):
        assert resolve_timezone(name) is timezone.utc
