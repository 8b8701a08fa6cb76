"""
Repayment Frequency Module

Each repayment frequency carries its own period arithmetic. Daily, weekly and
bi-weekly loans step in elapsed days; monthly and longer loans step in
calendar months. The two families are never mixed: a month is not 30 days.
"""

from datetime import date, timedelta
from enum import Enum
import calendar


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, handling month-end edge cases"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def months_between(start_date: date, end_date: date) -> int:
    """Calendar month difference, ignoring the day of month"""
    return (end_date.year - start_date.year) * 12 + (end_date.month - start_date.month)


class DayPeriod:
    """Period measured in elapsed days"""

    def __init__(self, days: int):
        self.days = days

    def advance(self, start_date: date, periods: int) -> date:
        return start_date + timedelta(days=self.days * periods)

    def count_between(self, start_date: date, end_date: date) -> int:
        elapsed_days = (end_date - start_date).days
        return -(-elapsed_days // self.days)

    def __repr__(self):
        return f"DayPeriod({self.days})"


class CalendarPeriod:
    """Period measured in calendar months"""

    def __init__(self, months: int):
        self.months = months

    def advance(self, start_date: date, periods: int) -> date:
        return add_months(start_date, self.months * periods)

    def count_between(self, start_date: date, end_date: date) -> int:
        return -(-months_between(start_date, end_date) // self.months)

    def __repr__(self):
        return f"CalendarPeriod({self.months})"


class RepaymentFrequency(Enum):
    """Repayment frequency options"""
    DAILY = "daily"                  # 365 payments per year
    WEEKLY = "weekly"                # 52 payments per year
    BIWEEKLY = "biweekly"            # 26 payments per year
    MONTHLY = "monthly"              # 12 payments per year
    QUARTERLY = "quarterly"          # 4 payments per year
    SEMI_ANNUALLY = "semi_annually"  # 2 payments per year
    ANNUALLY = "annually"            # 1 payment per year

    @property
    def periods_per_year(self) -> int:
        return _PERIODS_PER_YEAR[self]

    @property
    def period(self):
        """Period strategy (DayPeriod or CalendarPeriod)"""
        return _PERIODS[self]

    @property
    def is_calendar_based(self) -> bool:
        return isinstance(self.period, CalendarPeriod)

    def advance(self, start_date: date, periods: int = 1) -> date:
        """Move a date forward by whole periods"""
        return self.period.advance(start_date, periods)

    def count_between(self, start_date: date, end_date: date) -> int:
        """Number of periods needed to cover the span, rounded up"""
        return self.period.count_between(start_date, end_date)


_PERIODS_PER_YEAR = {
    RepaymentFrequency.DAILY: 365,
    RepaymentFrequency.WEEKLY: 52,
    RepaymentFrequency.BIWEEKLY: 26,
    RepaymentFrequency.MONTHLY: 12,
    RepaymentFrequency.QUARTERLY: 4,
    RepaymentFrequency.SEMI_ANNUALLY: 2,
    RepaymentFrequency.ANNUALLY: 1,
}

_PERIODS = {
    RepaymentFrequency.DAILY: DayPeriod(1),
    RepaymentFrequency.WEEKLY: DayPeriod(7),
    RepaymentFrequency.BIWEEKLY: DayPeriod(14),
    RepaymentFrequency.MONTHLY: CalendarPeriod(1),
    RepaymentFrequency.QUARTERLY: CalendarPeriod(3),
    RepaymentFrequency.SEMI_ANNUALLY: CalendarPeriod(6),
    RepaymentFrequency.ANNUALLY: CalendarPeriod(12),
}
