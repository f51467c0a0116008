"""Error envelope returned by the mirror API for unhandled failures."""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class ErrorCode(str, Enum):
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorDetail(BaseModel):
    code: ErrorCode
    message: str
    path: str | None = None
    detail: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """{"error": {"code", "message", "path", "detail"}}"""

    error: ErrorDetail
