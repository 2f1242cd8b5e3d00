"""Message-pattern classification of gate diagnostics into repairable error types."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Final

from layout_orchestrator.domain.diagnostics import ClassifiedDiagnostic, Diagnostic, ErrorType

# Precedence matters: the first matching pattern wins.
CLASSIFICATION_RULES: Final[tuple[tuple[str, ErrorType], ...]] = (
    ("Duplicate component ID", ErrorType.DUPLICATE_ID),
    ("Invalid child reference", ErrorType.INVALID_REFERENCE),
    ("coordinate out of bounds", ErrorType.OUT_OF_BOUNDS),
    ("Missing dependency", ErrorType.MISSING_DEPENDENCY),
    ("Circular reference", ErrorType.CIRCULAR_REFERENCE),
    ("Type mismatch", ErrorType.TYPE_MISMATCH),
)


class ErrorClassifier:
    def __init__(
        self, rules: Iterable[tuple[str, ErrorType]] = CLASSIFICATION_RULES
    ) -> None:
        self._rules = tuple(rules)

    def error_type_for(self, message: str) -> ErrorType:
        for needle, error_type in self._rules:
            if needle in message:
                return error_type
        return ErrorType.UNKNOWN

    def classify(self, diagnostic: Diagnostic) -> ClassifiedDiagnostic:
        """Attach an error type; diagnostics that already carry one keep it."""
        if isinstance(diagnostic, ClassifiedDiagnostic):
            return diagnostic
        return ClassifiedDiagnostic.from_diagnostic(
            diagnostic, self.error_type_for(diagnostic.message)
        )

    def classify_all(self, diagnostics: Iterable[Diagnostic]) -> list[ClassifiedDiagnostic]:
        return [self.classify(item) for item in diagnostics]


__all__ = ["CLASSIFICATION_RULES", "ErrorClassifier"]
