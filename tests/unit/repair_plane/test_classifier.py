"""Unit tests for diagnostic classification."""

from __future__ import annotations

import pytest

from layout_orchestrator.domain.diagnostics import (
    ClassifiedDiagnostic,
    ErrorType,
    Gate,
    Severity,
    error,
    warning,
)
from layout_orchestrator.repair_plane.classifier import ErrorClassifier


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("Duplicate component ID: X", ErrorType.DUPLICATE_ID),
        ("Invalid child reference in p: c does not exist", ErrorType.INVALID_REFERENCE),
        ("Component a has x coordinate out of bounds: 5000", ErrorType.OUT_OF_BOUNDS),
        ("Missing dependency: d for component a", ErrorType.MISSING_DEPENDENCY),
        ("Circular reference detected: a -> b -> a", ErrorType.CIRCULAR_REFERENCE),
        (
            "Type mismatch: Button component b prop 'label' should be a string, got number",
            ErrorType.TYPE_MISMATCH,
        ),
        ("Component a has invalid width: 20000", ErrorType.UNKNOWN),
        ("", ErrorType.UNKNOWN),
    ],
)
def test_error_type_for_known_patterns(message: str, expected: ErrorType) -> None:
    assert ErrorClassifier().error_type_for(message) is expected


def test_first_matching_rule_wins() -> None:
    classifier = ErrorClassifier()
    message = "Duplicate component ID: Missing dependency"
    assert classifier.error_type_for(message) is ErrorType.DUPLICATE_ID


def test_classify_preserves_diagnostic_fields() -> None:
    source = error(Gate.SMOKE, "Component a has y coordinate out of bounds: -2000", component_id="a")
    classified = ErrorClassifier().classify(source)

    assert classified.error_type is ErrorType.OUT_OF_BOUNDS
    assert classified.gate is Gate.SMOKE
    assert classified.severity is Severity.ERROR
    assert classified.location == source.location
    assert classified.to_dict()["type"] == "out_of_bounds"


def test_pre_classified_diagnostics_are_kept() -> None:
    pre = ClassifiedDiagnostic(
        gate=Gate.TYPES,
        severity=Severity.ERROR,
        message="Type error at nodes.0.type: invalid value",
        error_type=ErrorType.SCHEMA_VIOLATION,
    )
    classifier = ErrorClassifier()

    assert classifier.classify(pre) is pre

    once = classifier.classify(error(Gate.SCHEMA, "Duplicate component ID: X"))
    assert classifier.classify(once) is once


def test_custom_rules_and_classify_all() -> None:
    classifier = ErrorClassifier(rules=[("overlap", ErrorType.SCHEMA_VIOLATION)])
    classified = classifier.classify_all(
        [warning(Gate.SCHEMA, "Components a and b overlap in region main"), error(Gate.SCHEMA, "other")]
    )
    assert [item.error_type for item in classified] == [ErrorType.SCHEMA_VIOLATION, ErrorType.UNKNOWN]
