"""
Hours accounting.

Derives contract, holiday, expected, leave, written and actual hours for an
employee over an ISO week or a calendar month from mirrored data.

Contract hours are accumulated per weekday, taking the contract that is
active on that day and the ISO week parity of that day, so months that span
several weeks (and contract changes mid-period) are handled exactly.
"""

import logging
import math
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, computed_field

from gripp_mirror.config import Settings
from gripp_mirror.hours.periods import Period
from gripp_mirror.hours.status import is_approved
from gripp_mirror.store import LocalStore

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday")


class HoursSummary(BaseModel):
    """Hours of one employee over one period."""

    contract_hours: float = 0.0
    holiday_hours: float = 0.0
    expected_hours: float = 0.0
    leave_hours: float = 0.0
    written_hours: float = 0.0
    actual_hours: float = 0.0

    @computed_field
    @property
    def percentage(self) -> int:
        """Actual as a share of expected, rounded half up; 0 without expected hours."""
        if self.expected_hours <= 0:
            return 0
        return math.floor(self.actual_hours / self.expected_hours * 100 + 0.5)


def select_contract(contracts: list[dict[str, Any]], day: date) -> Optional[dict[str, Any]]:
    """
    Pick the contract in force on a day.

    Among contracts covering the day, the one with the latest end date wins
    (open-ended beats any end date); ties go to the latest start date.
    """
    iso = day.isoformat()
    covering = [
        c for c in contracts
        if (not c.get("startdate") or c["startdate"] <= iso)
        and (not c.get("enddate") or c["enddate"] >= iso)
    ]
    if not covering:
        return None
    return max(
        covering,
        key=lambda c: (
            not c.get("enddate"),
            c.get("enddate") or "",
            c.get("startdate") or "",
        ),
    )


def contract_hours_for_day(contract: dict[str, Any], day: date) -> float:
    """Hours a contract prescribes for a weekday, by ISO week parity."""
    if day.weekday() >= 5:
        return 0.0
    parity = "even" if day.isocalendar()[1] % 2 == 0 else "odd"
    return float(contract.get(f"hours_{WEEKDAYS[day.weekday()]}_{parity}") or 0.0)


class HoursEngine:
    """Computes hours summaries from the Local Store."""

    def __init__(self, store: LocalStore, settings: Settings):
        self.store = store
        self.include_leave_in_actual = settings.actual_hours_include_leave

    def compute_for_period(self, employee_id: int, period: Period) -> HoursSummary:
        """
        Compute the hours summary of one employee.

        Args:
            employee_id: Employee id
            period: WeekPeriod or MonthPeriod

        Returns:
            HoursSummary
        """
        start, end = period.date_range()
        contracts = self.store.contracts_for_employee(employee_id, start, end)
        holidays = {row["date"] for row in self.store.holidays_between(start, end)}

        contract_total = 0.0
        holiday_total = 0.0
        for day in period.days():
            if day.weekday() >= 5:
                continue
            contract = select_contract(contracts, day)
            if contract is None:
                continue
            value = contract_hours_for_day(contract, day)
            contract_total += value
            if day.isoformat() in holidays:
                holiday_total += value

        leave = sum(
            float(line["amount"] or 0.0)
            for line in self.store.absence_lines_for_employee(employee_id, start, end)
            if is_approved(line)
        )
        written = self.store.hours_total(employee_id, start, end)
        actual = written + leave if self.include_leave_in_actual else written

        return HoursSummary(
            contract_hours=round(contract_total, 2),
            holiday_hours=round(holiday_total, 2),
            expected_hours=round(contract_total - holiday_total, 2),
            leave_hours=round(leave, 2),
            written_hours=round(written, 2),
            actual_hours=round(actual, 2),
        )

    def compute_overview(self, period: Period, active_only: bool = True) -> dict[str, Any]:
        """
        Compute summaries for every (active) employee.

        Args:
            period: WeekPeriod or MonthPeriod
            active_only: Skip inactive employees

        Returns:
            dict: period, one row per employee and column totals
        """
        rows = []
        totals = HoursSummary()
        for employee in self.store.list_employees(active_only=active_only):
            summary = self.compute_for_period(employee["id"], period)
            name = " ".join(p for p in (employee["firstname"], employee["lastname"]) if p)
            rows.append({
                "id": employee["id"],
                "name": name,
                "function": employee["function"],
                **summary.model_dump(),
            })
            totals = HoursSummary(
                contract_hours=round(totals.contract_hours + summary.contract_hours, 2),
                holiday_hours=round(totals.holiday_hours + summary.holiday_hours, 2),
                expected_hours=round(totals.expected_hours + summary.expected_hours, 2),
                leave_hours=round(totals.leave_hours + summary.leave_hours, 2),
                written_hours=round(totals.written_hours + summary.written_hours, 2),
                actual_hours=round(totals.actual_hours + summary.actual_hours, 2),
            )

        logger.debug(f"Computed hours overview for {period.label}: {len(rows)} employees")
        return {
            "period": period.as_dict(),
            "employees": rows,
            "totals": totals.model_dump(),
        }
