from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

from .util.time import load_zone, utc_now

HOURLY_PERIOD = 3600
DAILY_PERIOD = 86400
DAILY_LOOKBACK = timedelta(hours=24)


@dataclass(frozen=True)
class TimeWindow:
    """
    Sampling window for one cycle. end is the evaluation instant in zone.
    """

    start: datetime
    end: datetime
    is_daily_report: bool
    zone: tzinfo

    @property
    def span(self) -> timedelta:
        # Same-zone subtraction is wall-clock; compare instants instead.
        return self.end.astimezone(timezone.utc) - self.start.astimezone(timezone.utc)

    @property
    def period_seconds(self) -> int:
        return select_period(self)


def select_period(window: TimeWindow) -> int:
    """
    Query granularity: one hour for windows under 24h, one day otherwise.
    """
    if window.span < DAILY_LOOKBACK:
        return HOURLY_PERIOD
    return DAILY_PERIOD


def compute_time_window(
    zone_name: str,
    default_period_hours: int,
    daily_report_hour: int,
    *,
    now: Optional[datetime] = None,
) -> Optional[TimeWindow]:
    """
    Decide this cycle's window, or return None to skip it.

    - At the daily report hour: 24h lookback, daily report (wins even when
      default_period_hours is 0).
    - Otherwise with a positive default period: that many hours back.
    - Otherwise: skip.

    An unknown timezone raises ConfigError.
    """
    zone = load_zone(zone_name)
    # Lookbacks are real elapsed hours, so subtract in UTC and convert back.
    now_utc = (now or utc_now()).astimezone(timezone.utc)
    current = now_utc.astimezone(zone)

    if current.hour == daily_report_hour:
        return TimeWindow(
            start=(now_utc - DAILY_LOOKBACK).astimezone(zone),
            end=current,
            is_daily_report=True,
            zone=zone,
        )
    if default_period_hours > 0:
        return TimeWindow(
            start=(now_utc - timedelta(hours=default_period_hours)).astimezone(zone),
            end=current,
            is_daily_report=False,
            zone=zone,
        )
    return None
