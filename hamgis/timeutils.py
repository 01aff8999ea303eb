"""Time parsing and formatting utilities."""

from __future__ import annotations

from datetime import UTC, datetime, timezone

from zoneinfo import ZoneInfo


def tzinfo_from_name(tz_name: str) -> timezone:
    """Create tzinfo from an IANA timezone name.

    Args:
        tz_name: Timezone name like "Asia/Shanghai".

    Returns:
        tzinfo instance.

    Raises:
        ValueError: If timezone name is invalid on this system.
    """

    try:
        return ZoneInfo(tz_name)
    except Exception as exc:  # ZoneInfo raises KeyError / ZoneInfoNotFoundError (platform dependent)
        raise ValueError(f"无效时区：{tz_name!r}。例如可用：Asia/Shanghai") from exc


def dt_from_epoch_ms(epoch_ms: int, tz_name: str) -> datetime:
    """Convert epoch milliseconds to timezone-aware datetime.

    Args:
        epoch_ms: Unix epoch milliseconds.
        tz_name: IANA timezone name.

    Returns:
        Timezone-aware datetime.
    """

    tz = tzinfo_from_name(tz_name)
    return datetime.fromtimestamp(epoch_ms / 1000.0, tz=tz)


def epoch_ms_from_dt(dt: datetime) -> int:
    """Convert a datetime to epoch milliseconds.

    Args:
        dt: Datetime. If naive, will be treated as UTC (discouraged).

    Returns:
        Epoch milliseconds.
    """

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(dt.timestamp() * 1000)


def iso_utc(epoch_ms: int) -> str:
    """ISO-8601 UTC text with millisecond precision, e.g. 2025-01-01T08:00:00.000Z."""

    seconds, millis = divmod(int(epoch_ms), 1000)
    dt = datetime.fromtimestamp(seconds, tz=UTC)
    return f"{dt:%Y-%m-%dT%H:%M:%S}.{millis:03d}Z"


def utc_date(epoch_ms: int) -> str:
    """UTC calendar date (YYYY-MM-DD) of an epoch-ms timestamp."""

    return datetime.fromtimestamp(epoch_ms / 1000.0, tz=UTC).date().isoformat()


def format_local(epoch_ms: int, tz_name: str, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    """Format an epoch-ms timestamp in local time with strftime ``fmt``."""

    return dt_from_epoch_ms(epoch_ms, tz_name).strftime(fmt)


def parse_dt(text: str, tz_name: str) -> datetime:
    """Parse user-provided datetime text to a timezone-aware datetime.

    Supported formats:
      - "YYYY-MM-DD"
      - "YYYY-MM-DD HH:MM:SS"
      - "YYYY-MM-DDTHH:MM:SS"
      - with optional timezone offset, e.g. "+08:00"

    If timezone is missing, it will be assumed to be tz_name.

    Args:
        text: Datetime string.
        tz_name: IANA timezone name for naive strings.

    Returns:
        Timezone-aware datetime.

    Raises:
        ValueError: If cannot parse.
    """

    s = text.strip().replace("T", " ")
    tz = tzinfo_from_name(tz_name)
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as exc:
        raise ValueError(f"无法解析时间：{text!r}。建议格式：2025-12-18 09:30:00") from exc

    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)
