"""Gripp API client, response normalisation and record models."""

from gripp_mirror.upstream.client import Filter, PageSet, UpstreamClient
from gripp_mirror.upstream.rate_limiter import RateLimiter
from gripp_mirror.upstream.responses import (
    ResponseFormat,
    ResultStatus,
    UpstreamResult,
    normalize_response,
)
from gripp_mirror.upstream.retry import RetryPolicy
from gripp_mirror.upstream.schema import (
    AbsenceLine,
    AbsenceRequest,
    Contract,
    Employee,
    GrippRecord,
    Holiday,
    Hour,
    Invoice,
    Project,
    ProjectLine,
    parse_record,
)

__all__ = [
    "UpstreamClient",
    "Filter",
    "PageSet",
    "RateLimiter",
    "RetryPolicy",
    "ResponseFormat",
    "ResultStatus",
    "UpstreamResult",
    "normalize_response",
    "GrippRecord",
    "Employee",
    "Contract",
    "Hour",
    "AbsenceRequest",
    "AbsenceLine",
    "Holiday",
    "Project",
    "ProjectLine",
    "Invoice",
    "parse_record",
]
