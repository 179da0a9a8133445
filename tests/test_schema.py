"""Tests for the upstream record models."""

from datetime import date

import pytest

from gripp_mirror.errors import ValidationError
from gripp_mirror.upstream import (
    AbsenceRequest,
    Contract,
    Employee,
    Holiday,
    Hour,
    Invoice,
    Project,
    ProjectLine,
    parse_record,
)

from helpers import (
    gripp_absence,
    gripp_contract,
    gripp_date,
    gripp_employee,
    gripp_holiday,
    gripp_hour,
    gripp_invoice,
    gripp_project,
)


class TestEmployee:
    def test_flattens_department(self) -> None:
        employee = Employee.model_validate(gripp_employee(1, "Anna", function="Developer"))
        assert employee.department_id == 1
        assert employee.department_name == "Development"
        assert employee.function == "Developer"
        assert employee.to_rows() == {"employees": [employee.row()]}

    def test_function_reference_object(self) -> None:
        raw = gripp_employee(1)
        raw["function"] = {"id": 4, "searchname": "Designer"}
        assert Employee.model_validate(raw).function == "Designer"

    def test_department_zoeknaam(self) -> None:
        raw = gripp_employee(1)
        raw["department"] = {"id": 7, "zoeknaam": "Sales"}
        assert Employee.model_validate(raw).department_name == "Sales"

    def test_active_defaults_to_true(self) -> None:
        assert Employee.model_validate({"id": 5}).active is True


class TestContract:
    def test_unwraps_dates_and_employee(self) -> None:
        contract = Contract.model_validate(gripp_contract(10, 1, start="2024-01-01", end="2024-12-31"))
        assert contract.employee_id == 1
        assert contract.startdate == date(2024, 1, 1)
        assert contract.enddate == date(2024, 12, 31)
        assert contract.internal_price_per_hour == 75.0

    def test_row_uses_iso_dates(self) -> None:
        row = Contract.model_validate(gripp_contract(10, 1, start="2024-01-01")).row()
        assert row["startdate"] == "2024-01-01"
        assert row["enddate"] is None
        assert row["hours_monday_even"] == 8.0


class TestHour:
    def test_parses_amount_and_references(self) -> None:
        hour = Hour.model_validate(gripp_hour(100, 1, "2024-03-04", 7.5))
        assert hour.amount == 7.5
        assert hour.date == date(2024, 3, 4)
        assert hour.status_id == 2
        assert hour.status_name == "DEFINITIEF"
        assert hour.project_id == 500

    def test_plain_string_date(self) -> None:
        raw = gripp_hour(100, 1, "2024-03-04", 1)
        raw["date"] = "2024-03-05 00:00:00"
        assert Hour.model_validate(raw).date == date(2024, 3, 5)


class TestAbsenceRequest:
    def test_rows_for_request_and_lines(self) -> None:
        raw = gripp_absence(200, 1, [
            (201, "2024-03-06", 4.0, 2, "GOEDGEKEURD"),
            (202, "2024-03-07", 8.0, 1, "INGEDIEND"),
        ])
        rows = AbsenceRequest.model_validate(raw).to_rows()

        assert list(rows) == ["absence_requests", "absence_request_lines"]
        request = rows["absence_requests"][0]
        assert request["employee_id"] == 1
        assert request["absencetype_name"] == "Verlof"
        assert "lines" not in request
        lines = rows["absence_request_lines"]
        assert [line["absencerequest_id"] for line in lines] == [200, 200]
        assert lines[0]["status_name"] == "GOEDGEKEURD"
        assert lines[1]["date"] == "2024-03-07"

    def test_line_without_status(self) -> None:
        raw = gripp_absence(200, 1, [(201, "2024-03-06", 4.0, None, None)])
        line = AbsenceRequest.model_validate(raw).lines[0]
        assert line.status_id is None
        assert line.status_name is None


class TestProject:
    def test_project_columns(self) -> None:
        row = Project.model_validate(gripp_project(500)).row()
        assert row["client_name"] == "Acme"
        assert row["phase_name"] == "Uitvoering"
        assert row["start_date"] == "2024-01-01"
        assert row["total_excl_vat"] == 1000.0

    def test_rows_for_project_and_lines(self) -> None:
        raw = gripp_project(500, lines=[(600, "Design", 40.0), (601, "Development", 120.0)])
        rows = Project.model_validate(raw).to_rows()

        assert list(rows) == ["projects", "project_lines"]
        assert "lines" not in rows["projects"][0]
        lines = rows["project_lines"]
        assert [line["project_id"] for line in lines] == [500, 500]
        assert [line["ordering"] for line in lines] == [0, 1]
        design = lines[0]
        assert design["product_id"] == 7
        assert design["product_name"] == "Consultancy"
        assert design["unit_name"] == "uur"
        assert design["invoicebasis_name"] == "COSTING"
        assert design["amount"] == 40.0
        assert design["amount_written"] == 12.5
        assert design["selling_price"] == 95.0
        assert design["buying_price"] is None
        assert design["hide_for_timewriting"] is False

    def test_missing_lines(self) -> None:
        raw = gripp_project(501)
        raw["projectlines"] = None
        assert Project.model_validate(raw).to_rows()["project_lines"] == []
        del raw["projectlines"]
        assert Project.model_validate(raw).lines == []

    def test_line_blank_numbers(self) -> None:
        line = ProjectLine.model_validate({"id": 1, "amountwritten": " ", "sellingprice": None})
        assert line.amount_written is None
        assert line.selling_price is None
        assert line.amount == 0.0

    def test_line_without_id_is_invalid(self) -> None:
        raw = gripp_project(500, lines=[(600, "Design", 40.0)])
        del raw["projectlines"][0]["id"]
        with pytest.raises(ValidationError) as exc_info:
            parse_record(Project, raw, "projects")
        assert exc_info.value.record_id == 500
        assert str(exc_info.value).endswith(".0.id")


class TestOtherRecords:
    def test_holiday_keyed_by_date(self) -> None:
        holiday = Holiday.model_validate(gripp_holiday("2024-12-25", "Eerste Kerstdag"))
        assert holiday.record_key == "2024-12-25"
        assert holiday.row() == {"date": "2024-12-25", "name": "Eerste Kerstdag"}

    def test_invoice_paid(self) -> None:
        invoice = Invoice.model_validate(gripp_invoice(900))
        assert invoice.number == "20240900"
        assert invoice.status_on(date(2024, 5, 1)) == "paid"

    def test_invoice_overdue_and_unpaid(self) -> None:
        raw = gripp_invoice(900)
        raw["totalopeninclvat"] = "121.00"
        invoice = Invoice.model_validate(raw)
        assert invoice.status_on(date(2024, 5, 1)) == "overdue"
        assert invoice.status_on(date(2024, 3, 15)) == "unpaid"


class TestParseRecord:
    def test_missing_id_is_validation_error(self) -> None:
        raw = gripp_employee(1)
        del raw["id"]
        with pytest.raises(ValidationError) as exc_info:
            parse_record(Employee, raw, "employees")
        assert exc_info.value.entity == "employees"
        assert exc_info.value.record_id is None
        assert "id" in str(exc_info.value)

    def test_missing_employee_reference(self) -> None:
        raw = gripp_hour(100, 1, "2024-03-04", 1)
        raw["employee"] = None
        with pytest.raises(ValidationError) as exc_info:
            parse_record(Hour, raw, "hours")
        assert exc_info.value.record_id == 100

    def test_bad_date(self) -> None:
        raw = gripp_hour(100, 1, "2024-03-04", 1)
        raw["date"] = gripp_date("not-a-date")
        with pytest.raises(ValidationError):
            parse_record(Hour, raw, "hours")

    def test_non_mapping_row(self) -> None:
        with pytest.raises(ValidationError):
            parse_record(Employee, "garbage", "employees")
