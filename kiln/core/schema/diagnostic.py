"""Diagnostic model for representing pipeline warnings and failures."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# Diagnostic codes, one per error-taxonomy entry
CLASSIFICATION_AMBIGUOUS = "ClassificationAmbiguous"
REPAIR_INCOMPLETE = "RepairIncomplete"
COMPILE_ERROR = "CompileError"
VALIDATION_INCONCLUSIVE = "ValidationInconclusive"
PREPARATION_FAILURE = "PreparationFailure"
INTERNAL_ERROR = "InternalError"

FATAL_CODES = frozenset({COMPILE_ERROR, PREPARATION_FAILURE, INTERNAL_ERROR})


@dataclass(frozen=True)
class Diagnostic:
    """Represents a warning or failure raised by a pipeline stage.

    Diagnostics accumulate on pipeline results. Warnings never block success;
    fatal codes (compile errors, preparation failures) mark the result failed.

    Attributes:
        code: Taxonomy name, e.g. "RepairIncomplete" or "CompileError"
        message: Human-readable description
        stage: Pipeline stage that produced it ("classify", "repair", ...)
        severity: "error", "warning" or "info"
        evidence: Stage-specific details such as line/column, unrepaired
                  identifiers or the runtime error name
    """

    code: str
    message: str
    stage: str
    severity: str = "warning"
    evidence: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_fatal(self) -> bool:
        return self.code in FATAL_CODES

    def to_dict(self) -> Dict[str, Any]:
        """Convert diagnostic to dictionary format."""
        return {
            "code": self.code,
            "message": self.message,
            "stage": self.stage,
            "severity": self.severity,
            "evidence": dict(self.evidence),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Diagnostic":
        return cls(
            code=data["code"],
            message=data.get("message", ""),
            stage=data.get("stage", ""),
            severity=data.get("severity", "warning"),
            evidence=dict(data.get("evidence") or {}),
        )


def compile_diagnostic(
    message: str, line: Optional[int] = None, column: Optional[int] = None
) -> Diagnostic:
    """Build the fatal diagnostic reported for a transform failure."""
    evidence: Dict[str, Any] = {}
    if line is not None:
        evidence["line"] = line
        evidence["column"] = column
    return Diagnostic(
        code=COMPILE_ERROR,
        message=message,
        stage="transform",
        severity="error",
        evidence=evidence,
    )
