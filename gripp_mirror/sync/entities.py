"""
Entity registry: how each entity type is fetched and validated.
"""

from dataclasses import dataclass
from typing import Optional

from gripp_mirror.store.schema import EntityType
from gripp_mirror.upstream.schema import (
    AbsenceRequest,
    Contract,
    Employee,
    GrippRecord,
    Holiday,
    Hour,
    Invoice,
    Project,
)


@dataclass(frozen=True)
class EntityDefinition:
    """
    Sync definition of one entity type.

    Attributes:
        entity: Entity type
        method: Upstream method returning the collection
        model: Record model used for validation
        date_field: Upstream field for date-window filters (None when the
            entity can only be synced in full)
        employee_scoped: Rows must reference a mirrored employee
    """

    entity: EntityType
    method: str
    model: type[GrippRecord]
    date_field: Optional[str] = None
    employee_scoped: bool = False

    @property
    def supports_window(self) -> bool:
        return self.date_field is not None


ENTITY_DEFINITIONS: dict[EntityType, EntityDefinition] = {
    EntityType.EMPLOYEES: EntityDefinition(
        EntityType.EMPLOYEES, "employee.get", Employee,
    ),
    EntityType.CONTRACTS: EntityDefinition(
        EntityType.CONTRACTS, "employmentcontract.get", Contract, employee_scoped=True,
    ),
    EntityType.HOURS: EntityDefinition(
        EntityType.HOURS, "hour.get", Hour, date_field="hour.date", employee_scoped=True,
    ),
    EntityType.ABSENCES: EntityDefinition(
        EntityType.ABSENCES, "absencerequest.get", AbsenceRequest, employee_scoped=True,
    ),
    EntityType.HOLIDAYS: EntityDefinition(
        EntityType.HOLIDAYS, "holiday.get", Holiday,
    ),
    EntityType.PROJECTS: EntityDefinition(
        EntityType.PROJECTS, "project.get", Project,
    ),
    EntityType.INVOICES: EntityDefinition(
        EntityType.INVOICES, "invoice.get", Invoice, date_field="invoice.date",
    ),
}

# Employees first: scoped entities are checked against the employees table
SYNC_ORDER: list[EntityType] = [
    EntityType.EMPLOYEES,
    EntityType.CONTRACTS,
    EntityType.HOLIDAYS,
    EntityType.HOURS,
    EntityType.ABSENCES,
    EntityType.PROJECTS,
    EntityType.INVOICES,
]


def entity_definition(entity: EntityType | str) -> EntityDefinition:
    return ENTITY_DEFINITIONS[EntityType.parse(entity)]
