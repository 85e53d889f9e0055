from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from telegraws.util.errors import ConfigError
from telegraws.window import DAILY_PERIOD, HOURLY_PERIOD, TimeWindow, compute_time_window, select_period

MADRID_09 = datetime(2024, 3, 12, 8, 15, tzinfo=timezone.utc)  # 09:15 in Europe/Madrid (CET)


def test_daily_hour_gives_24h_daily_window() -> None:
    window = compute_time_window("Europe/Madrid", 1, 9, now=MADRID_09)

    assert window is not None
    assert window.is_daily_report is True
    assert window.end == MADRID_09
    assert window.end.hour == 9
    assert window.end - window.start == timedelta(hours=24)


def test_daily_hour_wins_even_when_routine_reports_disabled() -> None:
    window = compute_time_window("Europe/Madrid", 0, 9, now=MADRID_09)

    assert window is not None
    assert window.is_daily_report is True


def test_routine_window_uses_lookback_hours() -> None:
    window = compute_time_window("Europe/Madrid", 3, 20, now=MADRID_09)

    assert window is not None
    assert window.is_daily_report is False
    assert window.end == MADRID_09
    assert window.span == timedelta(hours=3)


def test_skip_when_routine_disabled_and_not_daily_hour() -> None:
    assert compute_time_window("Europe/Madrid", 0, 20, now=MADRID_09) is None


@pytest.mark.parametrize("lookback", [1, 2, 6, 12, 23, 24, 48])
def test_window_start_before_end_and_end_is_now(lookback: int) -> None:
    window = compute_time_window("UTC", lookback, 3, now=MADRID_09)

    assert window is not None
    assert window.start < window.end
    assert window.end == MADRID_09


def test_window_end_is_expressed_in_configured_zone() -> None:
    window = compute_time_window("America/New_York", 1, 0, now=MADRID_09)

    assert window is not None
    assert window.end.tzinfo is not None
    assert window.end.utcoffset() == timedelta(hours=-4)
    assert window.end.hour == 4


def test_invalid_timezone_is_config_error() -> None:
    with pytest.raises(ConfigError):
        compute_time_window("Mars/Olympus_Mons", 1, 9, now=MADRID_09)


def test_period_is_hourly_under_a_day_and_daily_otherwise() -> None:
    end = datetime(2024, 1, 2, tzinfo=timezone.utc)
    short = TimeWindow(start=end - timedelta(hours=23, minutes=59), end=end, is_daily_report=False, zone=timezone.utc)
    day = TimeWindow(start=end - timedelta(hours=24), end=end, is_daily_report=True, zone=timezone.utc)

    assert select_period(short) == HOURLY_PERIOD
    assert select_period(day) == DAILY_PERIOD
    assert day.period_seconds == DAILY_PERIOD


def _utc(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc)


def test_daily_window_is_24_real_hours_across_spring_forward() -> None:
    # Europe/Madrid moves from +01:00 to +02:00 on 2026-03-29.
    now = datetime(2026, 3, 29, 7, 0, tzinfo=timezone.utc)

    window = compute_time_window("Europe/Madrid", 1, 9, now=now)

    assert window is not None and window.is_daily_report
    assert window.end.hour == 9
    assert _utc(window.start) == datetime(2026, 3, 28, 7, 0, tzinfo=timezone.utc)
    assert _utc(window.end) - _utc(window.start) == timedelta(hours=24)
    assert window.start.hour == 8
    assert window.span == timedelta(hours=24)
    assert window.period_seconds == DAILY_PERIOD


def test_daily_window_is_24_real_hours_across_fall_back() -> None:
    # Europe/Madrid moves from +02:00 to +01:00 on 2026-10-25.
    now = datetime(2026, 10, 25, 8, 0, tzinfo=timezone.utc)

    window = compute_time_window("Europe/Madrid", 1, 9, now=now)

    assert window is not None and window.is_daily_report
    assert _utc(window.start) == datetime(2026, 10, 24, 8, 0, tzinfo=timezone.utc)
    assert window.start.hour == 10
    assert window.span == timedelta(hours=24)


def test_routine_window_spanning_fall_back_keeps_real_lookback() -> None:
    now = datetime(2026, 10, 25, 2, 30, tzinfo=timezone.utc)

    window = compute_time_window("Europe/Madrid", 2, 9, now=now)

    assert window is not None and not window.is_daily_report
    assert _utc(window.start) == datetime(2026, 10, 25, 0, 30, tzinfo=timezone.utc)
    assert window.span == timedelta(hours=2)
    assert window.period_seconds == HOURLY_PERIOD
