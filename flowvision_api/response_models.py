"""
Pydantic response models for the analytics API.

Every analytics endpoint answers with AnalyticsResponse:

    {status, data, computed_at, params, errors, error?, error_code?}

status mirrors the engine result: ok, empty or degraded. errors lists the
faults behind a degraded result as {kind, source, message}.
"""

from typing import Any

from pydantic import BaseModel, Field

# ==== Analytics Envelope ====


class ResultErrorModel(BaseModel):
    """One fault behind a degraded result."""

    kind: str = Field(description="data_unavailable, invalid_configuration, computation_overflow or internal_error")
    source: str = Field(description="Input or sub-engine that failed")
    message: str


class AnalyticsResponse(BaseModel):
    """Standard analytics endpoint envelope."""

    status: str = Field(description="ok, empty, degraded or error")
    data: Any = Field(default=None, description="Response payload")
    computed_at: str = Field(description="ISO timestamp of computation")
    params: dict[str, Any] = Field(default_factory=dict, description="Echo of request params")
    errors: list[ResultErrorModel] = Field(default_factory=list)
    error: str | None = Field(default=None, description="Error message if status=error")
    error_code: str | None = Field(default=None, description="Error code if status=error")


# ==== Health Check ====


class HealthResponse(BaseModel):
    status: str = Field(description="healthy")
    version: str
    timestamp: str = Field(description="ISO timestamp")
