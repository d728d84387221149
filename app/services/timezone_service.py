from datetime import date, datetime, timezone


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def to_utc_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
