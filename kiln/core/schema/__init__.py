"""
Core schema definitions for artifacts, diagnostics and runtimes.

These dataclasses and protocols are shared by every pipeline stage.
"""

from kiln.core.schema.artifact import (
    CompiledArtifact,
    Format,
    OriginKind,
    SourceArtifact,
    ValidationStatus,
)
from kiln.core.schema.diagnostic import Diagnostic
from kiln.core.schema.runtime import (
    FRAMEWORK_PRIMITIVES,
    ExecutionReport,
    RuntimeBinding,
    ScriptRuntime,
    ValidationResult,
)

__all__ = [
    "CompiledArtifact",
    "Diagnostic",
    "ExecutionReport",
    "FRAMEWORK_PRIMITIVES",
    "Format",
    "OriginKind",
    "RuntimeBinding",
    "ScriptRuntime",
    "SourceArtifact",
    "ValidationResult",
    "ValidationStatus",
]
