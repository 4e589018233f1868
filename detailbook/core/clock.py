from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_naive_utc(dt: datetime) -> datetime:
    """For TIMESTAMP WITHOUT TIME ZONE columns: convert to UTC and strip tzinfo.

    Naive input is assumed to already be UTC.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC)
    return dt.replace(tzinfo=None)


def as_aware_utc(dt: datetime) -> datetime:
    """Attach UTC to naive values read back from the database."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def utc_naive_now() -> datetime:
    return to_naive_utc(utc_now())
