"""UTC datetime helpers. Every timestamp the services hand out is tz-aware UTC."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize a TIMESTAMPTZ read back from PostgreSQL to UTC.

    asyncpg returns aware datetimes in the session time zone; naive values are
    assumed to already be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
