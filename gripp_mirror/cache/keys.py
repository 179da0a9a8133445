"""
Cache key builders.

Derived hours metrics are keyed per period
(``employees_week_<year>_<week>``, ``employees_month_<year>_<month>``). Each
family also has one ``..._global`` key holding the most recently computed
period, served as a stale fallback when a period key is missing.
"""

import re
from typing import Any, Optional

from gripp_mirror.store.schema import EntityType

WEEK_PREFIX = "employees_week_"
MONTH_PREFIX = "employees_month_"
WEEK_GLOBAL = "employees_week_global"
MONTH_GLOBAL = "employees_month_global"

_DERIVED = re.compile(r"^employees_(week|month)_\d+_\d+$")


def employees_week(year: int, week: int) -> str:
    return f"{WEEK_PREFIX}{year}_{week}"


def employees_month(year: int, month: int) -> str:
    return f"{MONTH_PREFIX}{year}_{month}"


def is_derived(key: str) -> bool:
    """True for per-period derived-metrics keys."""
    return bool(_DERIVED.match(key))


def global_key_for(key: str) -> Optional[str]:
    """Global fallback key of a derived-metrics key, or None."""
    match = _DERIVED.match(key)
    if not match:
        return None
    return WEEK_GLOBAL if match.group(1) == "week" else MONTH_GLOBAL


def entity_list(entity: EntityType | str) -> str:
    return f"{EntityType.parse(entity).value}_all"


def entity_item(entity: EntityType | str, key: Any) -> str:
    return f"{EntityType.parse(entity).value}_{key}"


_HOURS_INPUTS = (WEEK_PREFIX, MONTH_PREFIX)

INVALIDATION_PREFIXES: dict[EntityType, tuple[str, ...]] = {
    EntityType.EMPLOYEES: ("employees_",),
    EntityType.CONTRACTS: ("contracts_", *_HOURS_INPUTS),
    EntityType.HOURS: ("hours_", *_HOURS_INPUTS),
    EntityType.ABSENCES: ("absences_", *_HOURS_INPUTS),
    EntityType.HOLIDAYS: ("holidays_", *_HOURS_INPUTS),
    EntityType.PROJECTS: ("projects_",),
    EntityType.INVOICES: ("invoices_",),
}


def invalidation_prefixes(entity: EntityType | str) -> tuple[str, ...]:
    """Key prefixes whose entries depend on the given entity's table."""
    return INVALIDATION_PREFIXES[EntityType.parse(entity)]
