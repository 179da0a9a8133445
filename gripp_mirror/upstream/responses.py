"""
Response normalisation for the upstream API.

Over time the upstream (and proxies in front of it) answered in several
shapes. Every shape is detected here and folded into a single
``UpstreamResult`` before any caller looks at it.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from gripp_mirror.errors import UpstreamError

logger = logging.getLogger(__name__)


class ResultStatus(Enum):
    """Status of an upstream call."""
    OK = "ok"
    ERROR = "error"


class ResponseFormat(Enum):
    """Response shapes the detector understands."""
    RPC_BATCH = "rpc_batch"          # [{"id", "result": {...}}]
    RPC_SINGLE = "rpc_single"        # {"id", "result": {...}} or {"error": {...}}
    SUCCESS_DATA = "success_data"    # {"success": true, "data": [...]}
    RESPONSE_LIST = "response_list"  # {"response": [...]}
    BARE_ROWS = "bare_rows"          # [{row}, {row}]


@dataclass
class UpstreamResult:
    """Result from an upstream call, independent of the wire shape."""

    status: ResultStatus
    rows: list[dict] = field(default_factory=list)
    count: Optional[int] = None
    more_items: Optional[bool] = None
    next_start: Optional[int] = None
    error_code: Optional[int] = None
    error_message: Optional[str] = None
    source_format: Optional[ResponseFormat] = None

    @property
    def is_success(self) -> bool:
        """Check if the result indicates success."""
        return self.status == ResultStatus.OK

    @classmethod
    def success(
        cls,
        rows: list[dict],
        source_format: ResponseFormat,
        **paging: Any,
    ) -> "UpstreamResult":
        """Create a successful result."""
        return cls(
            status=ResultStatus.OK,
            rows=rows,
            source_format=source_format,
            **paging,
        )

    @classmethod
    def error(
        cls,
        message: str,
        source_format: ResponseFormat,
        code: Optional[int] = None,
    ) -> "UpstreamResult":
        """Create an error result."""
        return cls(
            status=ResultStatus.ERROR,
            error_code=code,
            error_message=message,
            source_format=source_format,
        )


def detect_format(payload: Any) -> ResponseFormat:
    """
    Work out which response shape a decoded JSON payload has.

    Args:
        payload: Decoded JSON body

    Returns:
        The detected ResponseFormat

    Raises:
        UpstreamError: If the payload matches no known shape
    """
    if isinstance(payload, list):
        if payload and isinstance(payload[0], dict) and (
            "result" in payload[0] or "error" in payload[0]
        ):
            return ResponseFormat.RPC_BATCH
        if all(isinstance(item, dict) for item in payload):
            return ResponseFormat.BARE_ROWS
    elif isinstance(payload, dict):
        if "result" in payload or "error" in payload:
            return ResponseFormat.RPC_SINGLE
        if "success" in payload:
            return ResponseFormat.SUCCESS_DATA
        if isinstance(payload.get("response"), list):
            return ResponseFormat.RESPONSE_LIST

    raise UpstreamError(f"Unrecognised response format: {type(payload).__name__}")


def _from_rpc(call: dict, source_format: ResponseFormat) -> UpstreamResult:
    error = call.get("error")
    if error:
        if isinstance(error, dict):
            return UpstreamResult.error(
                str(error.get("message") or "Unknown API error"),
                source_format,
                code=error.get("code"),
            )
        return UpstreamResult.error(str(error), source_format)

    result = call.get("result")
    if not isinstance(result, dict):
        raise UpstreamError("Invalid result format from API")

    return UpstreamResult.success(
        list(result.get("rows") or []),
        source_format,
        count=result.get("count"),
        more_items=result.get("more_items_in_collection"),
        next_start=result.get("next_start"),
    )


def normalize_response(payload: Any) -> UpstreamResult:
    """
    Normalise any accepted response shape into an UpstreamResult.

    Args:
        payload: Decoded JSON body

    Returns:
        UpstreamResult with rows and paging metadata, or an error result
    """
    source_format = detect_format(payload)
    logger.debug(f"Upstream response format: {source_format.value}")

    if source_format == ResponseFormat.RPC_BATCH:
        return _from_rpc(payload[0], source_format)

    if source_format == ResponseFormat.RPC_SINGLE:
        return _from_rpc(payload, source_format)

    if source_format == ResponseFormat.SUCCESS_DATA:
        if not payload.get("success"):
            error = payload.get("error") or payload.get("message") or "Request failed"
            if isinstance(error, dict):
                return UpstreamResult.error(
                    str(error.get("message") or "Request failed"),
                    source_format,
                    code=error.get("code"),
                )
            return UpstreamResult.error(str(error), source_format)
        data = payload.get("data")
        if isinstance(data, dict) and "rows" in data:
            data = data["rows"]
        return UpstreamResult.success(list(data or []), source_format)

    if source_format == ResponseFormat.RESPONSE_LIST:
        return UpstreamResult.success(list(payload["response"]), source_format)

    return UpstreamResult.success(list(payload), source_format)
