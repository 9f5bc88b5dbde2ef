"""
Calendar resolution.

Pure functions mapping civil ISO dates (YYYY-MM-DD, no timezone) to
weekdays, nutrition-cycle weeks and training dates.  No I/O.
"""

from datetime import date, datetime, timedelta
from typing import Iterable

from .config import DAYS_PER_WEEK, ISO_DATE_FORMAT, NEXT_TRAINING_SCAN_DAYS, WEEKDAYS
from .models import NextTraining


class ConfigurationError(ValueError):
    """Raised when calendar settings make a required answer impossible."""

    pass


def parse_iso_date(iso_date: str) -> date:
    """
    Parse a YYYY-MM-DD string into a civil date.

    Raises:
        ValueError: If the string is not a valid ISO date
    """
    return datetime.strptime(iso_date, ISO_DATE_FORMAT).date()


def to_iso_date(d: date) -> str:
    """Format a date as YYYY-MM-DD."""
    return d.strftime(ISO_DATE_FORMAT)


def today_iso() -> str:
    """Today's local civil date."""
    return to_iso_date(datetime.now().date())


def add_days(iso_date: str, amount: int) -> str:
    """Shift an ISO date by a signed number of days."""
    return to_iso_date(parse_iso_date(iso_date) + timedelta(days=amount))


def days_between(start_iso: str, end_iso: str) -> int:
    """Signed whole days from start to end."""
    return (parse_iso_date(end_iso) - parse_iso_date(start_iso)).days


def day_of_week(iso_date: str) -> str:
    """
    Weekday symbol for a date.

    >>> day_of_week("2026-02-14")
    'Sat'
    """
    return WEEKDAYS[parse_iso_date(iso_date).weekday()]


def week_start(iso_date: str) -> str:
    """Monday of the week containing the date."""
    d = parse_iso_date(iso_date)
    return to_iso_date(d - timedelta(days=d.weekday()))


def nutrition_week_index(iso_date: str, cycle_start: str, cycle_weeks: int) -> int:
    """
    1-based week of the date inside a repeating nutrition cycle.

    weeks_elapsed = floor(floor(days_diff) / 7)
    index = ((weeks_elapsed mod N) + N) mod N + 1

    Dates before ``cycle_start`` wrap backwards through the cycle, so the
    week immediately before the start is the last week of the cycle.

    Args:
        iso_date: Date to resolve
        cycle_start: Anchor date; its week is week 1
        cycle_weeks: Cycle length N in weeks

    Returns:
        Week index in [1, cycle_weeks]

    Raises:
        ConfigurationError: If cycle_weeks <= 0
    """
    if cycle_weeks <= 0:
        raise ConfigurationError("cycle_weeks must be greater than 0.")

    days_diff = days_between(cycle_start, iso_date)
    weeks_elapsed = days_diff // DAYS_PER_WEEK
    offset = ((weeks_elapsed % cycle_weeks) + cycle_weeks) % cycle_weeks
    return offset + 1


def cycle_day_index(iso_date: str, cycle_start: str, cycle_length: int) -> int:
    """
    0-based position of the date inside a repeating cycle of days.

    Raises:
        ConfigurationError: If cycle_length <= 0
    """
    if cycle_length <= 0:
        raise ConfigurationError("cycle_length must be greater than 0.")

    days_diff = days_between(cycle_start, iso_date)
    return ((days_diff % cycle_length) + cycle_length) % cycle_length


def auto_training_weekdays(training_day_count: int) -> tuple[str, ...]:
    """First N weekdays starting Monday, N clamped to 0..7."""
    count = max(0, min(DAYS_PER_WEEK, int(training_day_count)))
    return WEEKDAYS[:count]


def normalize_weekdays(days: Iterable[str]) -> tuple[str, ...]:
    """
    Sort weekday symbols Monday-first and drop duplicates.

    Raises:
        ConfigurationError: If any symbol is not a weekday
    """
    unique = set(days)
    unknown = unique - set(WEEKDAYS)
    if unknown:
        raise ConfigurationError(f"Unknown weekday symbols: {sorted(unknown)}")
    return tuple(d for d in WEEKDAYS if d in unique)


def is_training_day(weekday: str, training_weekdays: Iterable[str]) -> bool:
    return weekday in set(training_weekdays)


def next_training_date(from_date: str, training_weekdays: Iterable[str]) -> NextTraining:
    """
    First date on or after ``from_date`` that falls on a training weekday.

    Scans offsets 0..7 inclusive.

    Raises:
        ConfigurationError: If the weekday set is empty or holds unknown symbols
    """
    weekdays = normalize_weekdays(training_weekdays)
    if not weekdays:
        raise ConfigurationError("No training days configured.")

    base = parse_iso_date(from_date)
    for offset in range(NEXT_TRAINING_SCAN_DAYS + 1):
        candidate = base + timedelta(days=offset)
        weekday = WEEKDAYS[candidate.weekday()]
        if weekday in weekdays:
            return NextTraining(date=to_iso_date(candidate), day_of_week=weekday)

    # Unreachable with a non-empty, validated weekday set
    raise ConfigurationError("Unable to resolve next training day.")


def format_day_label(iso_date: str) -> str:
    """DD/MM/YYYY display form."""
    return parse_iso_date(iso_date).strftime("%d/%m/%Y")
