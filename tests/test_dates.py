"""Tests for timezone-aware date keys."""

from datetime import datetime, timezone

from moments.dates import date_key_days_ago, time_of_day_stamp, today_key


class TestDateKeys:
    def test_today_uses_local_zone(self):
        # 23:30 UTC is already the next day in Amsterdam
        now = datetime(2026, 10, 17, 23, 30, tzinfo=timezone.utc)
        assert today_key("Europe/Amsterdam", now) == "2026-10-18"
        assert today_key("UTC", now) == "2026-10-17"

    def test_days_ago_crosses_month(self):
        now = datetime(2026, 11, 1, 12, 0)
        assert date_key_days_ago(1, "Europe/Amsterdam", now) == "2026-10-31"
        assert date_key_days_ago(0, "Europe/Amsterdam", now) == "2026-11-01"

    def test_time_stamp(self):
        now = datetime(2026, 10, 18, 7, 5, 9, tzinfo=timezone.utc)
        assert time_of_day_stamp("Europe/Amsterdam", now) == "090509"
