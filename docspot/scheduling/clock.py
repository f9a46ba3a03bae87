"""Calendar-day arithmetic on the service clock (UTC)."""

import calendar
from datetime import date, datetime, timedelta, timezone

from docspot.scheduling.errors import InvalidInputError

MIN_MONTH = 1
MAX_MONTH = 12


def to_canonical_date(value: date | datetime | str) -> date:
    """Return the UTC calendar day of ``value``.

    Naive datetimes are taken to be UTC already; aware ones are converted.
    Strings may be ``YYYY-MM-DD`` or any ISO 8601 datetime.
    """
    if isinstance(value, str):
        stripped = value.strip()
        try:
            if len(stripped) == 10:
                return date.fromisoformat(stripped)
            value = datetime.fromisoformat(stripped.replace('Z', '+00:00'))
        except ValueError as exc:
            raise InvalidInputError(f'Invalid date: {value!r}.') from exc

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()

    if isinstance(value, date):
        return value

    raise InvalidInputError(f'Invalid date: {value!r}.')


def day_bounds(day: date) -> tuple[date, date]:
    """Half-open ``[day, next day)`` window."""
    return day, day + timedelta(days=1)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """Half-open window covering a one-based ``month`` of ``year``."""
    if not MIN_MONTH <= month <= MAX_MONTH:
        raise InvalidInputError('Month must be between 1 and 12.')
    if not 1 <= year <= 9998:
        raise InvalidInputError('Year is out of range.')

    first_day = date(year, month, 1)
    days_in_month = calendar.monthrange(year, month)[1]
    return first_day, first_day + timedelta(days=days_in_month)


def iterate_days(start: date, end: date):
    current = start
    while current < end:
        yield current
        current += timedelta(days=1)
