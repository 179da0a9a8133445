"""
Absence line status resolution.

The upstream reports status as an id plus a display name, and the name has
appeared in Dutch and English spellings in different casings.
"""

from enum import Enum
from typing import Any, Mapping, Optional


class AbsenceStatus(str, Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    UNKNOWN = "unknown"


_BY_ID = {
    1: AbsenceStatus.SUBMITTED,
    2: AbsenceStatus.APPROVED,
    3: AbsenceStatus.REJECTED,
}

_BY_NAME = {
    "ingediend": AbsenceStatus.SUBMITTED,
    "submitted": AbsenceStatus.SUBMITTED,
    "pending": AbsenceStatus.SUBMITTED,
    "goedgekeurd": AbsenceStatus.APPROVED,
    "approved": AbsenceStatus.APPROVED,
    "afgekeurd": AbsenceStatus.REJECTED,
    "afgewezen": AbsenceStatus.REJECTED,
    "rejected": AbsenceStatus.REJECTED,
}


def resolve_status(status_id: Optional[Any], status_name: Optional[str]) -> AbsenceStatus:
    """
    Resolve an absence line status.

    Approval by either encoding wins; otherwise the name is consulted before
    the id.

    Args:
        status_id: Upstream status id
        status_name: Upstream status name

    Returns:
        AbsenceStatus
    """
    by_name = _BY_NAME.get((status_name or "").strip().lower())
    try:
        by_id = _BY_ID.get(int(status_id)) if status_id is not None else None
    except (TypeError, ValueError):
        by_id = None

    if AbsenceStatus.APPROVED in (by_name, by_id):
        return AbsenceStatus.APPROVED
    return by_name or by_id or AbsenceStatus.UNKNOWN


def is_approved(line: Mapping[str, Any]) -> bool:
    """True if an absence line row counts toward leave hours."""
    return resolve_status(line.get("status_id"), line.get("status_name")) == AbsenceStatus.APPROVED
