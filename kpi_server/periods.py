# periods.py
"""Month/year arithmetic for reporting periods."""

import calendar

from . import config
from .errors import ValidationError


def shift_month(month, year, offset):
    """Move (month, year) by ``offset`` months, rolling over year boundaries."""
    index = year * 12 + (month - 1) + offset
    return index % 12 + 1, index // 12


def previous_period(month, year):
    return shift_month(month, year, -1)


def resolve_period(month=None, year=None, now=None):
    """
    Turn request parameters into an absolute (month, year).

    A negative month means "that many months before the current one"; a
    negative year means "that many years before the current one". Missing
    values default to the current period. An explicit year always overrides
    the year derived from a relative month.
    """
    now = now or config.now()
    month_num, year_num = now.month, now.year

    if month is not None:
        month = int(month)
        if month < 0:
            month_num, year_num = shift_month(now.month, now.year, month)
        elif month == 0:
            raise ValidationError("Month must be between 1 and 12 or a negative offset")
        else:
            month_num = month

    if year is not None:
        year = int(year)
        year_num = now.year + year if year < 0 else year

    validate_period(month_num, year_num)
    return month_num, year_num


def validate_period(month, year):
    if not isinstance(month, int) or isinstance(month, bool) or not 1 <= month <= 12:
        raise ValidationError(f"Month must be between 1 and 12. Received: {month}")
    if not isinstance(year, int) or isinstance(year, bool) or year < config.KPI_MIN_YEAR:
        raise ValidationError(f"Year must be {config.KPI_MIN_YEAR} or later. Received: {year}")


def is_current_period(month, year, now=None):
    now = now or config.now()
    return month == now.month and year == now.year


def is_past_period(month, year, now=None):
    now = now or config.now()
    return (year, month) < (now.year, now.month)


def period_label(month, year):
    return calendar.month_name[month], str(year)
