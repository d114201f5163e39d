from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context


DEFAULT_BUSINESS_TIMEZONE = "Asia/Seoul"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def business_tz() -> ZoneInfo:
    name = DEFAULT_BUSINESS_TIMEZONE
    if has_app_context():
        name = current_app.config.get("BUSINESS_TIMEZONE", DEFAULT_BUSINESS_TIMEZONE)
    return ZoneInfo(name)


def to_business_date(dt: datetime) -> date:
    """Calendar day of a UTC-naive instant in the business timezone."""
    return dt.replace(tzinfo=timezone.utc).astimezone(business_tz()).date()


def business_today(now: Optional[datetime] = None) -> date:
    return to_business_date(now or utcnow())


def start_of_business_day(day: date) -> datetime:
    """UTC-naive instant of 00:00 on `day` in the business timezone."""
    local = datetime.combine(day, time.min, tzinfo=business_tz())
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def end_of_business_day(day: date) -> datetime:
    return start_of_business_day(day + timedelta(days=1)) - timedelta(microseconds=1)


def yymmdd(day: date) -> str:
    return day.strftime("%y%m%d")


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse "YYYY-MM-DD" (or the compact "YYYYMMDD" lot key) into a date."""
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    if len(s) == 8 and s.isdigit():
        return datetime.strptime(s, "%Y%m%d").date()
    return date.fromisoformat(s)


def normalize_datetime(value) -> Optional[datetime]:
    """
    Normalize a datetime-ish input to canonical UTC-naive.

    Aware datetimes are converted to UTC, naive ones are taken as UTC,
    strings go through parse_iso_datetime.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, str):
        return parse_iso_datetime(value)
    raise ValueError("invalid datetime")


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_iso_date(day: Optional[date]) -> Optional[str]:
    return day.isoformat() if day is not None else None
