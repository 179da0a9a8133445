"""Hours accounting over mirrored data."""

from gripp_mirror.hours.engine import HoursEngine, HoursSummary, select_contract
from gripp_mirror.hours.periods import MonthPeriod, Period, WeekPeriod
from gripp_mirror.hours.status import AbsenceStatus, is_approved, resolve_status

__all__ = [
    "HoursEngine",
    "HoursSummary",
    "select_contract",
    "WeekPeriod",
    "MonthPeriod",
    "Period",
    "AbsenceStatus",
    "resolve_status",
    "is_approved",
]
