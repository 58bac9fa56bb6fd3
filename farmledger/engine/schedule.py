"""
Schedule arithmetic for allowances and recurring chores.
"""

import calendar
import datetime as dt
from typing import Optional

from farmledger.models.financial import RecurringPeriod
from farmledger.models.parental import AllowanceFrequency


def add_months(moment: dt.datetime, months: int) -> dt.datetime:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _on_day_of_month(moment: dt.datetime, day: int) -> dt.datetime:
    last_day = calendar.monthrange(moment.year, moment.month)[1]
    return moment.replace(day=min(day, last_day))


def next_allowance_payment(
    frequency: AllowanceFrequency,
    after: dt.datetime,
    day_of_week: Optional[int] = None,
    day_of_month: Optional[int] = None,
) -> dt.datetime:
    """
    Next payment strictly after `after`.

    Weekly allowances pay on `day_of_week` (Monday=0); if that is today the
    payment lands a week out. Monthly allowances pay on `day_of_month` of
    this month if still ahead, otherwise next month.
    """
    if frequency == AllowanceFrequency.DAILY:
        return after + dt.timedelta(days=1)

    if frequency == AllowanceFrequency.WEEKLY:
        days_ahead = (day_of_week - after.weekday()) % 7 or 7
        return after + dt.timedelta(days=days_ahead)

    candidate = _on_day_of_month(after, day_of_month)
    if candidate <= after:
        candidate = _on_day_of_month(add_months(after.replace(day=1), 1), day_of_month)
    return candidate


def next_occurrence(period: RecurringPeriod, after: dt.datetime) -> dt.datetime:
    """One recurring period after `after`."""
    if period == RecurringPeriod.DAILY:
        return after + dt.timedelta(days=1)
    if period == RecurringPeriod.WEEKLY:
        return after + dt.timedelta(weeks=1)
    if period == RecurringPeriod.MONTHLY:
        return add_months(after, 1)
    return add_months(after, 12)
