"""
TallyHub Backend — Response Envelope
======================================

What:  The uniform JSON shape every endpoint returns, plus helpers that build it.
Why:   Clients parse one structure for every outcome; the HTTP status code is
       the only thing that distinguishes failure kinds.

Shapes:
    Success: {"success": true,  "message": str, "data"?: any,   "timestamp": ISO-8601}
    Failure: {"success": false, "message": str, "error"?: str,  "timestamp": ISO-8601}

Keys inside `data` are camelCase. Response models inherit CamelModel so their
snake_case attributes serialize as lastUpdated, createdAt, hasNext, ...
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


def iso_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class CamelModel(BaseModel):
    """Base for response payloads: snake_case in Python, camelCase on the wire."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


class ApiResponse(BaseModel):
    """Envelope model. Used for OpenAPI docs and by the builders below."""

    success: bool = Field(description="True for 2xx outcomes")
    message: str = Field(description="Human-readable outcome description")
    data: Optional[Any] = Field(default=None, description="Payload on success")
    error: Optional[str] = Field(default=None, description="Failure detail, when any")
    timestamp: str = Field(default_factory=iso_timestamp)


def _encode(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True, exclude_none=True)
    return jsonable_encoder(data, by_alias=True, exclude_none=True)


def success_response(
    data: Any = None,
    message: str = "Operation completed successfully",
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    envelope = ApiResponse(success=True, message=message, data=_encode(data))
    return JSONResponse(
        status_code=status_code,
        content=envelope.model_dump(exclude_none=True),
        headers=headers,
    )


def created_response(data: Any = None, message: str = "Resource created successfully") -> JSONResponse:
    return success_response(data, message, status_code=201)


def error_response(
    message: str = "Internal server error",
    status_code: int = 500,
    error: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    envelope = ApiResponse(success=False, message=message, error=error)
    return JSONResponse(
        status_code=status_code,
        content=envelope.model_dump(exclude_none=True),
        headers=headers,
    )
