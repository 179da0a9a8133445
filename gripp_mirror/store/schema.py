"""
Local Store schema.

One table per mirrored entity type, plus ``sync_status``. Column lists are
the single definition used by both the DDL and the insert path.
"""

import sqlite3
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional


class EntityType(str, Enum):
    """Entity types mirrored from the upstream."""
    EMPLOYEES = "employees"
    CONTRACTS = "contracts"
    HOURS = "hours"
    ABSENCES = "absences"
    HOLIDAYS = "holidays"
    PROJECTS = "projects"
    INVOICES = "invoices"

    @classmethod
    def parse(cls, value: "str | EntityType") -> "EntityType":
        """Look up an entity type by value, raising ValueError if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            known = ", ".join(e.value for e in cls)
            raise ValueError(f"Unknown entity type {value!r} (expected one of: {known})") from None


@dataclass(frozen=True)
class DateWindow:
    """Inclusive date range for a windowed sync."""

    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"Window end {self.end} is before start {self.start}")


@dataclass(frozen=True)
class TableSpec:
    """Storage layout of one entity type."""

    entity: EntityType
    table: str
    key: str = "id"
    child_table: Optional[str] = None
    child_key: Optional[str] = None
    child_order: str = "id"
    date_column: Optional[str] = None


HOUR_COLUMNS = [
    f"hours_{day}_{parity}"
    for parity in ("even", "odd")
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
]

COLUMNS: dict[str, list[str]] = {
    "employees": [
        "id", "firstname", "lastname", "email", "function",
        "department_id", "department_name", "active",
    ],
    "contracts": [
        "id", "employee_id", *HOUR_COLUMNS,
        "startdate", "enddate", "internal_price_per_hour",
    ],
    "hours": [
        "id", "employee_id", "date", "amount", "description",
        "status_id", "status_name", "project_id", "project_name",
    ],
    "absence_requests": [
        "id", "employee_id", "absencetype_id", "absencetype_name", "description",
    ],
    "absence_request_lines": [
        "id", "absencerequest_id", "date", "amount", "description",
        "startingtime", "status_id", "status_name",
    ],
    "holidays": ["date", "name"],
    "projects": [
        "id", "number", "name", "client_id", "client_name", "phase_name",
        "start_date", "deadline", "end_date", "total_excl_vat", "archived",
    ],
    "project_lines": [
        "id", "project_id", "ordering", "product_id", "product_name", "description",
        "additional_subject", "unit_name", "rowtype_name", "invoicebasis_name",
        "amount", "amount_written", "selling_price", "buying_price", "discount",
        "hide_for_timewriting",
    ],
    "invoices": [
        "id", "number", "subject", "date", "expirydate", "company_name",
        "total_incl_vat", "total_excl_vat", "total_paid", "total_open_incl_vat",
        "status",
    ],
}

TABLES: dict[EntityType, TableSpec] = {
    EntityType.EMPLOYEES: TableSpec(EntityType.EMPLOYEES, "employees"),
    EntityType.CONTRACTS: TableSpec(EntityType.CONTRACTS, "contracts"),
    EntityType.HOURS: TableSpec(EntityType.HOURS, "hours", date_column="date"),
    EntityType.ABSENCES: TableSpec(
        EntityType.ABSENCES,
        "absence_requests",
        child_table="absence_request_lines",
        child_key="absencerequest_id",
        child_order="date, id",
    ),
    EntityType.HOLIDAYS: TableSpec(EntityType.HOLIDAYS, "holidays", key="date"),
    EntityType.PROJECTS: TableSpec(
        EntityType.PROJECTS,
        "projects",
        child_table="project_lines",
        child_key="project_id",
        child_order="ordering, id",
    ),
    EntityType.INVOICES: TableSpec(EntityType.INVOICES, "invoices", date_column="date"),
}


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS employees (
    id INTEGER PRIMARY KEY,
    firstname TEXT,
    lastname TEXT,
    email TEXT,
    function TEXT,
    department_id INTEGER,
    department_name TEXT,
    active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS contracts (
    id INTEGER PRIMARY KEY,
    employee_id INTEGER NOT NULL,
    hours_monday_even REAL NOT NULL DEFAULT 0,
    hours_tuesday_even REAL NOT NULL DEFAULT 0,
    hours_wednesday_even REAL NOT NULL DEFAULT 0,
    hours_thursday_even REAL NOT NULL DEFAULT 0,
    hours_friday_even REAL NOT NULL DEFAULT 0,
    hours_monday_odd REAL NOT NULL DEFAULT 0,
    hours_tuesday_odd REAL NOT NULL DEFAULT 0,
    hours_wednesday_odd REAL NOT NULL DEFAULT 0,
    hours_thursday_odd REAL NOT NULL DEFAULT 0,
    hours_friday_odd REAL NOT NULL DEFAULT 0,
    startdate TEXT,
    enddate TEXT,
    internal_price_per_hour REAL
);
CREATE INDEX IF NOT EXISTS idx_contracts_employee ON contracts(employee_id);

CREATE TABLE IF NOT EXISTS hours (
    id INTEGER PRIMARY KEY,
    employee_id INTEGER NOT NULL,
    date TEXT NOT NULL,
    amount REAL NOT NULL DEFAULT 0,
    description TEXT,
    status_id INTEGER,
    status_name TEXT,
    project_id INTEGER,
    project_name TEXT
);
CREATE INDEX IF NOT EXISTS idx_hours_employee_date ON hours(employee_id, date);

CREATE TABLE IF NOT EXISTS absence_requests (
    id INTEGER PRIMARY KEY,
    employee_id INTEGER NOT NULL,
    absencetype_id INTEGER,
    absencetype_name TEXT,
    description TEXT
);
CREATE INDEX IF NOT EXISTS idx_absence_requests_employee ON absence_requests(employee_id);

CREATE TABLE IF NOT EXISTS absence_request_lines (
    id INTEGER PRIMARY KEY,
    absencerequest_id INTEGER NOT NULL
        REFERENCES absence_requests(id) ON DELETE CASCADE,
    date TEXT NOT NULL,
    amount REAL NOT NULL DEFAULT 0,
    description TEXT,
    startingtime TEXT,
    status_id INTEGER,
    status_name TEXT
);
CREATE INDEX IF NOT EXISTS idx_absence_lines_request ON absence_request_lines(absencerequest_id);
CREATE INDEX IF NOT EXISTS idx_absence_lines_date ON absence_request_lines(date);

CREATE TABLE IF NOT EXISTS holidays (
    date TEXT PRIMARY KEY,
    name TEXT
);

CREATE TABLE IF NOT EXISTS projects (
    id INTEGER PRIMARY KEY,
    number INTEGER,
    name TEXT,
    client_id INTEGER,
    client_name TEXT,
    phase_name TEXT,
    start_date TEXT,
    deadline TEXT,
    end_date TEXT,
    total_excl_vat REAL,
    archived INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS project_lines (
    id INTEGER PRIMARY KEY,
    project_id INTEGER NOT NULL
        REFERENCES projects(id) ON DELETE CASCADE,
    ordering INTEGER,
    product_id INTEGER,
    product_name TEXT,
    description TEXT,
    additional_subject TEXT,
    unit_name TEXT,
    rowtype_name TEXT,
    invoicebasis_name TEXT,
    amount REAL NOT NULL DEFAULT 0,
    amount_written REAL,
    selling_price REAL,
    buying_price REAL,
    discount REAL,
    hide_for_timewriting INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_project_lines_project ON project_lines(project_id);

CREATE TABLE IF NOT EXISTS invoices (
    id INTEGER PRIMARY KEY,
    number TEXT,
    subject TEXT,
    date TEXT NOT NULL,
    expirydate TEXT,
    company_name TEXT,
    total_incl_vat REAL NOT NULL DEFAULT 0,
    total_excl_vat REAL NOT NULL DEFAULT 0,
    total_paid REAL NOT NULL DEFAULT 0,
    total_open_incl_vat REAL NOT NULL DEFAULT 0,
    status TEXT
);
CREATE INDEX IF NOT EXISTS idx_invoices_date ON invoices(date);

CREATE TABLE IF NOT EXISTS sync_status (
    entity TEXT PRIMARY KEY,
    last_sync TEXT,
    last_success TEXT,
    status TEXT,
    error TEXT
);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create every table and index that does not exist yet."""
    conn.executescript(SCHEMA_SQL)
