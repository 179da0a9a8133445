"""
Pydantic models for Gripp records.

Each model validates one upstream row and knows how to turn itself into
Local Store rows. Gripp nests references as ``{"id", "searchname"}``
objects and dates as ``{"date": "YYYY-MM-DD HH:MM:SS.ffffff", ...}``;
both are flattened before field validation.
"""

from datetime import date
from typing import Annotated, Any, ClassVar, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from gripp_mirror.errors import ValidationError


def _parse_date(value: Any) -> Any:
    """Unwrap a Gripp date object or datetime string to ``YYYY-MM-DD``."""
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        value = value.get("date")
        if not value:
            return None
    if isinstance(value, str):
        return value[:10]
    return value


def _as_text(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


GrippDate = Annotated[date, BeforeValidator(_parse_date)]
OptionalGrippDate = Annotated[Optional[date], BeforeValidator(_parse_date)]
Text = Annotated[Optional[str], BeforeValidator(_as_text)]
Number = Annotated[Optional[float], BeforeValidator(_blank_to_none)]


class GrippRecord(BaseModel):
    """
    Base model for one upstream record.

    ``references`` maps a nested upstream key to the flat (id, name) fields
    it fills; either side may be None when only one half is mirrored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    table: ClassVar[str] = ""
    references: ClassVar[dict[str, tuple[Optional[str], Optional[str]]]] = {}

    id: int

    @model_validator(mode="before")
    @classmethod
    def _flatten_references(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not cls.references:
            return data

        flat = {k: v for k, v in data.items() if k not in cls.references}
        for key, (id_field, name_field) in cls.references.items():
            ref = data.get(key)
            if not isinstance(ref, dict):
                if ref is not None and id_field and id_field not in flat:
                    flat[id_field] = ref
                continue
            if id_field and id_field not in flat:
                flat[id_field] = ref.get("id")
            if name_field and name_field not in flat:
                flat[name_field] = (
                    ref.get("searchname") or ref.get("name") or ref.get("zoeknaam")
                )
        return flat

    @property
    def record_key(self) -> Any:
        """Identifier used in logs and error reports."""
        return self.id

    def row(self) -> dict[str, Any]:
        """Column values for this record's own table."""
        return self.model_dump(mode="json")

    def to_rows(self) -> dict[str, list[dict[str, Any]]]:
        """
        Convert to Local Store rows.

        Returns:
            dict: Table name mapped to the rows to insert, parents first
        """
        return {self.table: [self.row()]}


class Employee(GrippRecord):
    """Maps to: employee.get"""

    table: ClassVar[str] = "employees"
    references: ClassVar[dict[str, tuple[Optional[str], Optional[str]]]] = {
        "department": ("department_id", "department_name"),
    }

    firstname: Text = None
    lastname: Text = None
    email: Text = None
    function: Text = None
    department_id: Optional[int] = None
    department_name: Text = None
    active: bool = True

    @model_validator(mode="before")
    @classmethod
    def _unwrap_function(cls, data: Any) -> Any:
        # Some accounts return the function as a reference object
        if isinstance(data, dict) and isinstance(data.get("function"), dict):
            data = dict(data)
            ref = data["function"]
            data["function"] = ref.get("searchname") or ref.get("name")
        return data


class Contract(GrippRecord):
    """Maps to: employmentcontract.get"""

    table: ClassVar[str] = "contracts"
    references: ClassVar[dict[str, tuple[Optional[str], Optional[str]]]] = {
        "employee": ("employee_id", None),
    }

    employee_id: int
    hours_monday_even: float = 0.0
    hours_tuesday_even: float = 0.0
    hours_wednesday_even: float = 0.0
    hours_thursday_even: float = 0.0
    hours_friday_even: float = 0.0
    hours_monday_odd: float = 0.0
    hours_tuesday_odd: float = 0.0
    hours_wednesday_odd: float = 0.0
    hours_thursday_odd: float = 0.0
    hours_friday_odd: float = 0.0
    startdate: OptionalGrippDate = None
    enddate: OptionalGrippDate = None
    internal_price_per_hour: Optional[float] = None


class Hour(GrippRecord):
    """Maps to: hour.get"""

    table: ClassVar[str] = "hours"
    references: ClassVar[dict[str, tuple[Optional[str], Optional[str]]]] = {
        "employee": ("employee_id", None),
        "status": ("status_id", "status_name"),
        "offerprojectbase": ("project_id", "project_name"),
    }

    employee_id: int
    date: GrippDate
    amount: float = 0.0
    description: Text = None
    status_id: Optional[int] = None
    status_name: Text = None
    project_id: Optional[int] = None
    project_name: Text = None


class AbsenceLine(GrippRecord):
    """One day of an absence request."""

    table: ClassVar[str] = "absence_request_lines"
    references: ClassVar[dict[str, tuple[Optional[str], Optional[str]]]] = {
        "absencerequeststatus": ("status_id", "status_name"),
        "absencerequest": (None, None),
    }

    date: GrippDate
    amount: float = 0.0
    description: Text = None
    startingtime: Text = None
    status_id: Optional[int] = None
    status_name: Text = None


class AbsenceRequest(GrippRecord):
    """Maps to: absencerequest.get (request with its lines)"""

    table: ClassVar[str] = "absence_requests"
    references: ClassVar[dict[str, tuple[Optional[str], Optional[str]]]] = {
        "employee": ("employee_id", None),
        "absencetype": ("absencetype_id", "absencetype_name"),
    }

    employee_id: int
    absencetype_id: Optional[int] = None
    absencetype_name: Text = None
    description: Text = None
    lines: list[AbsenceLine] = Field(
        default_factory=list,
        validation_alias=AliasChoices("absencerequestline", "lines"),
    )

    def row(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"lines"})

    def to_rows(self) -> dict[str, list[dict[str, Any]]]:
        lines = []
        for line in self.lines:
            line_row = line.row()
            line_row["absencerequest_id"] = self.id
            lines.append(line_row)
        return {self.table: [self.row()], AbsenceLine.table: lines}


class Holiday(GrippRecord):
    """Maps to: holiday.get. Keyed by date; the upstream id is not mirrored."""

    table: ClassVar[str] = "holidays"

    id: Optional[int] = None
    date: GrippDate
    name: Text = Field(
        default=None,
        validation_alias=AliasChoices("name", "description", "searchname"),
    )

    @property
    def record_key(self) -> Any:
        return self.date.isoformat()

    def row(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})


class ProjectLine(GrippRecord):
    """One budget line of a project."""

    table: ClassVar[str] = "project_lines"
    references: ClassVar[dict[str, tuple[Optional[str], Optional[str]]]] = {
        "product": ("product_id", "product_name"),
        "unit": (None, "unit_name"),
        "rowtype": (None, "rowtype_name"),
        "invoicebasis": (None, "invoicebasis_name"),
        "offerprojectbase": (None, None),
    }

    ordering: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("_ordering", "ordering")
    )
    product_id: Optional[int] = None
    product_name: Text = None
    description: Text = None
    additional_subject: Text = Field(
        default=None, validation_alias=AliasChoices("additionalsubject", "additional_subject")
    )
    unit_name: Text = None
    rowtype_name: Text = None
    invoicebasis_name: Text = None
    amount: float = 0.0
    amount_written: Number = Field(
        default=None, validation_alias=AliasChoices("amountwritten", "amount_written")
    )
    selling_price: Number = Field(
        default=None, validation_alias=AliasChoices("sellingprice", "selling_price")
    )
    buying_price: Number = Field(
        default=None, validation_alias=AliasChoices("buyingprice", "buying_price")
    )
    discount: Number = None
    hide_for_timewriting: bool = Field(
        default=False,
        validation_alias=AliasChoices("hidefortimewriting", "hide_for_timewriting"),
    )


class Project(GrippRecord):
    """Maps to: project.get"""

    table: ClassVar[str] = "projects"
    references: ClassVar[dict[str, tuple[Optional[str], Optional[str]]]] = {
        "company": ("client_id", "client_name"),
        "phase": (None, "phase_name"),
    }

    number: Optional[int] = None
    name: Text = None
    client_id: Optional[int] = None
    client_name: Text = None
    phase_name: Text = None
    start_date: OptionalGrippDate = Field(
        default=None, validation_alias=AliasChoices("startdate", "start_date")
    )
    deadline: OptionalGrippDate = None
    end_date: OptionalGrippDate = Field(
        default=None, validation_alias=AliasChoices("enddate", "end_date")
    )
    total_excl_vat: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("totalexclvat", "total_excl_vat")
    )
    archived: bool = False
    lines: Annotated[list[ProjectLine], BeforeValidator(_none_to_list)] = Field(
        default_factory=list,
        validation_alias=AliasChoices("projectlines", "lines"),
    )

    def row(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"lines"})

    def to_rows(self) -> dict[str, list[dict[str, Any]]]:
        lines = []
        for line in self.lines:
            line_row = line.row()
            line_row["project_id"] = self.id
            lines.append(line_row)
        return {self.table: [self.row()], ProjectLine.table: lines}


class Invoice(GrippRecord):
    """Maps to: invoice.get"""

    table: ClassVar[str] = "invoices"
    references: ClassVar[dict[str, tuple[Optional[str], Optional[str]]]] = {
        "company": (None, "company_name"),
    }

    number: Text = None
    subject: Text = Field(
        default=None, validation_alias=AliasChoices("subject", "description")
    )
    date: GrippDate
    expirydate: OptionalGrippDate = None
    company_name: Text = None
    total_incl_vat: float = Field(
        default=0.0, validation_alias=AliasChoices("totalinclvat", "total_incl_vat")
    )
    total_excl_vat: float = Field(
        default=0.0, validation_alias=AliasChoices("totalexclvat", "total_excl_vat")
    )
    total_paid: float = Field(
        default=0.0, validation_alias=AliasChoices("totalpayed", "total_paid")
    )
    total_open_incl_vat: float = Field(
        default=0.0,
        validation_alias=AliasChoices("totalopeninclvat", "total_open_incl_vat"),
    )

    def status_on(self, today: date) -> str:
        """paid, overdue or unpaid as of the given day."""
        if round(self.total_open_incl_vat, 2) == 0:
            return "paid"
        if self.expirydate is not None and self.expirydate < today:
            return "overdue"
        return "unpaid"

    def row(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["status"] = self.status_on(date.today())
        return data


def parse_record(model: type[GrippRecord], raw: Any, entity: str) -> GrippRecord:
    """
    Validate one upstream row.

    Args:
        model: Record model for the entity type
        raw: Row as returned by the upstream
        entity: Entity type name, for error reporting

    Returns:
        The validated record

    Raises:
        ValidationError: If the row is missing required fields or has bad values
    """
    record_id = raw.get("id") if isinstance(raw, dict) else None
    try:
        return model.model_validate(raw)
    except PydanticValidationError as exc:
        fields = ", ".join(
            ".".join(str(part) for part in error["loc"]) or "<root>"
            for error in exc.errors()
        )
        raise ValidationError(
            f"Invalid {entity} record {record_id!r}: {fields}",
            entity=entity,
            record_id=record_id,
        ) from exc
