"""Gate-tagged diagnostics and their repair classification."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from layout_orchestrator.domain.models import JSONValue


class Gate(StrEnum):
    SCHEMA = "schema"
    LINT = "lint"
    TYPES = "types"
    UNIT = "unit"
    SMOKE = "smoke"


GATE_ORDER: tuple[Gate, ...] = (Gate.SCHEMA, Gate.LINT, Gate.TYPES, Gate.UNIT, Gate.SMOKE)


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ErrorType(StrEnum):
    DUPLICATE_ID = "duplicate_id"
    INVALID_REFERENCE = "invalid_reference"
    OUT_OF_BOUNDS = "out_of_bounds"
    SCHEMA_VIOLATION = "schema_violation"
    MISSING_DEPENDENCY = "missing_dependency"
    CIRCULAR_REFERENCE = "circular_reference"
    TYPE_MISMATCH = "type_mismatch"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class DiagnosticLocation:
    """Where a diagnostic points: a component id, a dotted document path, or both."""

    component_id: str | None = None
    path: str | None = None

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {}
        if self.component_id is not None:
            out["componentId"] = self.component_id
        if self.path is not None:
            out["path"] = self.path
        return out


@dataclass(frozen=True, slots=True)
class Diagnostic:
    gate: Gate
    severity: Severity
    message: str
    location: DiagnosticLocation | None = None

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {
            "gate": self.gate.value,
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.location is not None:
            out["location"] = self.location.to_dict()
        return out


@dataclass(frozen=True, slots=True)
class ClassifiedDiagnostic(Diagnostic):
    error_type: ErrorType = ErrorType.UNKNOWN

    @classmethod
    def from_diagnostic(cls, diagnostic: Diagnostic, error_type: ErrorType) -> ClassifiedDiagnostic:
        return cls(
            gate=diagnostic.gate,
            severity=diagnostic.severity,
            message=diagnostic.message,
            location=diagnostic.location,
            error_type=error_type,
        )

    def to_dict(self) -> dict[str, JSONValue]:
        out = Diagnostic.to_dict(self)
        out["type"] = self.error_type.value
        return out


def error(
    gate: Gate,
    message: str,
    *,
    component_id: str | None = None,
    path: str | None = None,
) -> Diagnostic:
    return Diagnostic(gate, Severity.ERROR, message, _location(component_id, path))


def warning(
    gate: Gate,
    message: str,
    *,
    component_id: str | None = None,
    path: str | None = None,
) -> Diagnostic:
    return Diagnostic(gate, Severity.WARNING, message, _location(component_id, path))


def info(
    gate: Gate,
    message: str,
    *,
    component_id: str | None = None,
    path: str | None = None,
) -> Diagnostic:
    return Diagnostic(gate, Severity.INFO, message, _location(component_id, path))


def _location(component_id: str | None, path: str | None) -> DiagnosticLocation | None:
    if component_id is None and path is None:
        return None
    return DiagnosticLocation(component_id=component_id, path=path)


def errors_only(diagnostics: Iterable[Diagnostic]) -> list[Diagnostic]:
    return [item for item in diagnostics if item.is_error]


def count_errors(diagnostics: Iterable[Diagnostic]) -> int:
    return sum(1 for item in diagnostics if item.is_error)


__all__ = [
    "GATE_ORDER",
    "ClassifiedDiagnostic",
    "Diagnostic",
    "DiagnosticLocation",
    "ErrorType",
    "Gate",
    "Severity",
    "count_errors",
    "error",
    "errors_only",
    "info",
    "warning",
]
