"""
EngineResult: per-operation status wrapper.

Lets callers distinguish "empty because there is no data" from "empty (or
defaulted) because something failed", without exceptions crossing the engine
boundary.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ResultStatus(Enum):
    OK = "ok"
    EMPTY = "empty"  # Ran cleanly, nothing to report
    DEGRADED = "degraded"  # Partial or defaulted output after a fault


@dataclass
class ResultError:
    """One fault recorded while producing a result."""

    kind: str  # data_unavailable | invalid_configuration | computation_overflow | internal_error
    source: str
    message: str

    def to_dict(self) -> dict:
        return {"kind": self.kind, "source": self.source, "message": self.message}


@dataclass
class EngineResult(Generic[T]):
    """Result of one engine operation."""

    operation: str
    value: T
    status: ResultStatus = ResultStatus.OK
    errors: list[ResultError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is not ResultStatus.DEGRADED

    @property
    def degraded(self) -> bool:
        return self.status is ResultStatus.DEGRADED

    @property
    def failed_sources(self) -> list[str]:
        return [e.source for e in self.errors]

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "status": self.status.value,
            "data": _serialize(self.value),
            "errors": [e.to_dict() for e in self.errors],
        }


def _serialize(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value
