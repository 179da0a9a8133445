"""
Builders for upstream-shaped records and a fake upstream client.
"""

import asyncio
from typing import Any, Optional

from gripp_mirror.sync import ENTITY_DEFINITIONS
from gripp_mirror.upstream import PageSet, parse_record


def gripp_date(day: str) -> dict[str, Any]:
    """Date object as the upstream returns it."""
    return {"date": f"{day} 00:00:00.000000", "timezone_type": 3, "timezone": "Europe/Amsterdam"}


def gripp_employee(
    employee_id: int,
    firstname: str = "Test",
    lastname: str = "User",
    function: Optional[str] = None,
    active: bool = True,
) -> dict[str, Any]:
    return {
        "id": employee_id,
        "firstname": firstname,
        "lastname": lastname,
        "email": f"{firstname.lower()}@example.com",
        "function": function,
        "department": {"id": 1, "searchname": "Development"},
        "active": active,
    }


def gripp_contract(
    contract_id: int,
    employee_id: int,
    even: float = 8.0,
    odd: Optional[float] = None,
    start: Optional[str] = "2023-01-01",
    end: Optional[str] = None,
) -> dict[str, Any]:
    odd = even if odd is None else odd
    record: dict[str, Any] = {
        "id": contract_id,
        "employee": {"id": employee_id, "searchname": f"Employee {employee_id}"},
        "startdate": gripp_date(start) if start else None,
        "enddate": gripp_date(end) if end else None,
        "internal_price_per_hour": "75.00",
    }
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday"):
        record[f"hours_{day}_even"] = even
        record[f"hours_{day}_odd"] = odd
    return record


def gripp_hour(hour_id: int, employee_id: int, day: str, amount: float) -> dict[str, Any]:
    return {
        "id": hour_id,
        "employee": {"id": employee_id, "searchname": f"Employee {employee_id}"},
        "date": gripp_date(day),
        "amount": str(amount),
        "description": "Work",
        "status": {"id": 2, "searchname": "DEFINITIEF"},
        "offerprojectbase": {"id": 500, "searchname": "Website"},
    }


def gripp_absence(
    request_id: int,
    employee_id: int,
    lines: list[tuple[int, str, float, Optional[int], Optional[str]]],
) -> dict[str, Any]:
    """Absence request; lines are (id, date, amount, status_id, status_name)."""
    return {
        "id": request_id,
        "employee": {"id": employee_id, "searchname": f"Employee {employee_id}"},
        "absencetype": {"id": 1, "searchname": "Verlof"},
        "description": "Leave",
        "absencerequestline": [
            {
                "id": line_id,
                "date": gripp_date(day),
                "amount": amount,
                "description": "",
                "startingtime": "09:00",
                "absencerequeststatus": (
                    {"id": status_id, "searchname": status_name}
                    if status_id is not None or status_name is not None else None
                ),
            }
            for line_id, day, amount, status_id, status_name in lines
        ],
    }


def gripp_holiday(day: str, name: str) -> dict[str, Any]:
    return {"id": None, "date": gripp_date(day), "name": name}


def gripp_project_line(
    line_id: int, project_id: int, description: str, amount: float, ordering: int = 0
) -> dict[str, Any]:
    return {
        "id": line_id,
        "_ordering": ordering,
        "description": description,
        "additionalsubject": "",
        "amount": amount,
        "amountwritten": "12.50",
        "sellingprice": "95.00",
        "buyingprice": "",
        "discount": 0,
        "hidefortimewriting": False,
        "product": {"id": 7, "searchname": "Consultancy", "discr": "product"},
        "unit": {"id": 1, "searchname": "uur"},
        "rowtype": {"id": 1, "searchname": "NORMAL"},
        "invoicebasis": {"id": 2, "searchname": "COSTING"},
        "offerprojectbase": {"id": project_id, "searchname": "Project", "discr": "opdracht"},
    }


def gripp_project(
    project_id: int,
    name: str = "Website",
    lines: Optional[list[tuple[int, str, float]]] = None,
) -> dict[str, Any]:
    """Project; lines are (id, description, amount)."""
    return {
        "id": project_id,
        "number": project_id,
        "name": name,
        "company": {"id": 9, "searchname": "Acme"},
        "phase": {"id": 2, "searchname": "Uitvoering"},
        "startdate": gripp_date("2024-01-01"),
        "deadline": None,
        "enddate": None,
        "totalexclvat": "1000.00",
        "archived": False,
        "projectlines": [
            gripp_project_line(line_id, project_id, description, amount, ordering=i)
            for i, (line_id, description, amount) in enumerate(lines or [])
        ],
    }


def gripp_invoice(invoice_id: int, day: str = "2024-03-01") -> dict[str, Any]:
    return {
        "id": invoice_id,
        "number": 20240000 + invoice_id,
        "subject": "Services",
        "date": gripp_date(day),
        "expirydate": gripp_date("2024-03-31"),
        "company": {"id": 9, "searchname": "Acme"},
        "totalinclvat": "121.00",
        "totalexclvat": "100.00",
        "totalpayed": "121.00",
        "totalopeninclvat": "0.00",
    }


class FakeUpstream:
    """
    Stand-in for UpstreamClient.fetch_all.

    ``collections`` maps an upstream method to the rows it returns;
    ``errors`` maps a method to an exception to raise; ``failed_pages``
    maps a method to page offsets reported as failed. Every call is
    recorded in ``calls`` as (method, filters) and its deadline in
    ``deadlines``.
    """

    def __init__(self, collections: Optional[dict[str, list[dict]]] = None):
        self.collections = dict(collections or {})
        self.errors: dict[str, Exception] = {}
        self.failed_pages: dict[str, list[int]] = {}
        self.calls: list[tuple[str, list[dict]]] = []
        self.deadlines: list[Optional[float]] = []
        self.gate: Optional[asyncio.Event] = None

    async def fetch_all(
        self, method, filters, *, orderings=None, page_size=None, deadline=None
    ) -> PageSet:
        self.calls.append((method, list(filters)))
        self.deadlines.append(deadline)
        if self.gate is not None:
            await self.gate.wait()
        if method in self.errors:
            raise self.errors[method]
        rows = [dict(row) for row in self.collections.get(method, [])]
        return PageSet(rows=rows, pages=1, failed_pages=list(self.failed_pages.get(method, [])))

    async def close(self):
        return None


class FakeClock:
    """Manually advanced clock with a matching async sleep."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def load_rows(store, collections: dict[str, list[dict]]) -> None:
    """Validate upstream-shaped rows and write them straight into the store."""
    by_method = {d.method: d for d in ENTITY_DEFINITIONS.values()}
    with store.transaction() as conn:
        for method, rows in collections.items():
            definition = by_method[method]
            for raw in rows:
                record = parse_record(definition.model, raw, definition.entity.value)
                store.insert_record(conn, record.to_rows())
