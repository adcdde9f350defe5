from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Naive UTC timestamp, matching what the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_today() -> date:
    return utc_now().date()


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600
