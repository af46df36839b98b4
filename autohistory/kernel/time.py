from __future__ import annotations

from datetime import datetime, timezone

UTC = timezone.utc


def utc_now() -> datetime:
    """Default `date_time_factory`: the current tz-aware UTC time."""
    return datetime.now(UTC)


def coerce_utc(value: datetime) -> datetime:
    """Return `value` as tz-aware UTC; naive values are taken to be UTC."""
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
