"""UTC datetime utilities."""

from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def days_before(moment: datetime, days: int) -> datetime:
    return moment - timedelta(days=days)


def next_payment_date(today: date) -> date:
    """Next scheduled payout day: the 16th if before it this month, else the 1st of next month."""
    if today.day < 16:
        return today.replace(day=16)
    if today.month == 12:
        return date(today.year + 1, 1, 1)
    return date(today.year, today.month + 1, 1)
