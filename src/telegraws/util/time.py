from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ConfigError

REPORT_TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M:%S"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def load_zone(name: str) -> ZoneInfo:
    """
    Resolve an IANA timezone name; an unknown or empty name is a config error.
    """
    if not name or not str(name).strip():
        raise ConfigError("monitoring timezone is required")
    try:
        return ZoneInfo(str(name).strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"invalid timezone '{name}': {e}") from e


def to_epoch_millis(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def format_report_timestamp(dt: datetime) -> str:
    return dt.strftime(REPORT_TIMESTAMP_FORMAT)


def parse_iso_instant(value: str) -> datetime:
    """
    Parse an ISO-8601 instant; naive values are taken as UTC.
    """
    raw = (value or "").strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError as e:
        raise ConfigError(f"invalid ISO-8601 timestamp '{value}'") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
