from datetime import datetime, timezone


def to_storage(value: datetime) -> datetime:
    """Naive UTC at millisecond precision, the form BSON round-trips exactly."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def utcnow() -> datetime:
    return to_storage(datetime.now(timezone.utc))
