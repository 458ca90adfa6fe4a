"""
Common Models
=============

Wire conventions shared by every endpoint: camelCase field names, the
error envelope and the health report.

Version: 0.1.0
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base model exposing camelCase field names on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class FieldError(BaseModel):
    """One rejected input field."""

    field: str
    message: str


def field_errors(errors: list[Any]) -> list[dict[str, str]]:
    """Flatten pydantic error entries; the `body` location prefix is dropped."""
    return [
        FieldError(
            field=".".join(str(p) for p in err["loc"] if p != "body"),
            message=err["msg"],
        ).model_dump()
        for err in errors
    ]


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    success: bool = False
    error: str
    error_code: str
    details: Any | None = None
    stage: str | None = Field(default=None, description="Failing issuance step, if any")

    def render(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class HealthResponse(BaseModel):
    """Service health check response."""

    status: str = "healthy"
    service: str
    version: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Per-component reports (database, blockchain, ipfs)
    components: dict[str, dict[str, Any]] = Field(default_factory=dict)


# OpenAPI documentation for the error envelope
ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    code: {"model": ErrorResponse, "description": description}
    for code, description in (
        (400, "Validation failed"),
        (401, "Missing or invalid session token"),
        (403, "Not permitted"),
        (404, "Not found"),
        (409, "Conflict"),
        (502, "Pinning service, ledger or database failure"),
        (504, "Ledger transaction not confirmed in time"),
    )
}
