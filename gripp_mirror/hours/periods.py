"""
Reporting periods: ISO weeks and calendar months.
"""

import calendar
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Union

from gripp_mirror.cache import keys
from gripp_mirror.errors import ValidationError


@dataclass(frozen=True)
class WeekPeriod:
    """ISO-8601 week: Monday through Sunday."""

    year: int
    week: int

    def __post_init__(self):
        try:
            date.fromisocalendar(self.year, self.week, 1)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid ISO week {self.year}-W{self.week}: {e}") from e

    @property
    def start(self) -> date:
        return date.fromisocalendar(self.year, self.week, 1)

    @property
    def end(self) -> date:
        return date.fromisocalendar(self.year, self.week, 7)

    @property
    def label(self) -> str:
        return f"{self.year}-W{self.week:02d}"

    @property
    def cache_key(self) -> str:
        return keys.employees_week(self.year, self.week)

    def date_range(self) -> tuple[date, date]:
        return self.start, self.end

    def days(self) -> Iterator[date]:
        day = self.start
        while day <= self.end:
            yield day
            day += timedelta(days=1)

    def as_dict(self) -> dict:
        return {
            "type": "week",
            "year": self.year,
            "week": self.week,
            "label": self.label,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


@dataclass(frozen=True)
class MonthPeriod:
    """Calendar month: first through last day."""

    year: int
    month: int

    def __post_init__(self):
        if not isinstance(self.year, int) or not isinstance(self.month, int):
            raise ValidationError(f"Invalid month {self.year}-{self.month}")
        if not 1 <= self.month <= 12 or not date.min.year <= self.year <= date.max.year:
            raise ValidationError(f"Invalid month {self.year}-{self.month}")

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    @property
    def label(self) -> str:
        return f"{self.year}-{self.month:02d}"

    @property
    def cache_key(self) -> str:
        return keys.employees_month(self.year, self.month)

    def date_range(self) -> tuple[date, date]:
        return self.start, self.end

    def days(self) -> Iterator[date]:
        day = self.start
        while day <= self.end:
            yield day
            day += timedelta(days=1)

    def as_dict(self) -> dict:
        return {
            "type": "month",
            "year": self.year,
            "month": self.month,
            "label": self.label,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


Period = Union[WeekPeriod, MonthPeriod]
