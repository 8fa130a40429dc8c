"""Shared validation utilities"""

from datetime import date, datetime, time, timezone


def parse_iso_datetime(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp into a naive UTC datetime.

    Offsets (including a trailing "Z") are converted to UTC; naive input is
    taken as UTC already. Seconds are kept, microseconds dropped.

    Raises:
        ValueError: If the value is empty or not ISO-8601
    """
    if not value or not isinstance(value, str):
        raise ValueError("Timestamp is required")

    raw = value.strip()
    if raw.endswith("Z") or raw.endswith("z"):
        raw = raw[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise ValueError(f"Invalid ISO-8601 timestamp: {value}") from None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)

    return parsed.replace(microsecond=0)


def parse_iso_date(value: str) -> date:
    """Parse a YYYY-MM-DD calendar day"""
    if not value or not isinstance(value, str):
        raise ValueError("Date is required")
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValueError(f"Invalid date format: {value}. Expected YYYY-MM-DD") from None


def parse_hhmm(value: str) -> time:
    """Parse a 24h HH:MM wall-clock time"""
    if not value or not isinstance(value, str):
        raise ValueError("Time is required")
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except ValueError:
        raise ValueError(f"Invalid time format: {value}. Expected HH:MM") from None


def format_hhmm(value: time) -> str:
    """Format a time (or datetime) as 24h HH:MM, the storage format for slot times"""
    return value.strftime("%H:%M")
