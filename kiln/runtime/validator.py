"""Execution validation for compiled component code."""

import logging
import re
from typing import Optional

from kiln.core.errors import CompileError
from kiln.core.schema.artifact import Format
from kiln.core.schema.runtime import (
    ExecutionReport,
    RuntimeBinding,
    ScriptRuntime,
    ValidationResult,
)
from kiln.jsx.scanner import find_markup

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_RE = re.compile(
    r"^export\s+default\b|^export\s*\{[^}]*\bas\s+default\b", re.M
)
RENDERABLE = frozenset({"element", "text", "list", "empty"})


class ExecutionValidator:
    """Confirms compiled code yields a usable component.

    Inline code is executed in an isolated script runtime with the framework
    binding injected. Standard-module code cannot be executed here (it needs
    the host's dynamic-import facility), so it is checked syntactically: a
    default export must be present and no markup may remain. A syntactic
    pass is not a guarantee the module runs; that is only known at load time.

    The validator never raises. Runtime crashes are reported as invalid
    results, and the pipeline downgrades any invalid result to a warning.
    """

    def __init__(
        self,
        runtime: Optional[ScriptRuntime] = None,
        binding: Optional[RuntimeBinding] = None,
    ):
        """Initialize the validator.

        Args:
            runtime: Script runtime for inline code (defaults to QuickJS)
            binding: Framework binding, used to classify lifecycle errors
        """
        self.binding = binding or RuntimeBinding()
        if runtime is None:
            from kiln.runtime.quickjs_runtime import QuickJSRuntime

            runtime = QuickJSRuntime(binding=self.binding)
        self.runtime = runtime

    def validate(self, code: str, fmt: Format) -> ValidationResult:
        """Validate compiled code for its format.

        Args:
            code: Transformed inline body or standard-module source
            fmt: Format of the code

        Returns:
            ValidationResult
        """
        if fmt is Format.STANDARD_MODULE:
            return self.validate_module(code)
        return self.validate_inline(code)

    def validate_module(self, code: str) -> ValidationResult:
        """Syntactic proxy validation for standard-module source."""
        has_default = bool(DEFAULT_EXPORT_RE.search(code))

        try:
            markup = find_markup(code)
        except CompileError as e:
            return ValidationResult(
                valid=False,
                reason=f"Module source could not be scanned: {e}",
                component_detected=has_default,
                phase="compile",
            )

        if markup:
            return ValidationResult(
                valid=False,
                reason=f"Module still contains {len(markup)} untransformed markup element(s)",
                component_detected=has_default,
                phase="compile",
                details={"markup_offsets": markup[:10]},
            )
        if not has_default:
            return ValidationResult(
                valid=False,
                reason="Module has no default export",
                component_detected=False,
                phase="compile",
            )
        return ValidationResult(
            valid=True,
            reason="Syntactic check only; module execution is deferred to load time",
            component_detected=True,
        )

    def validate_inline(self, code: str) -> ValidationResult:
        """Execute a transformed inline body and classify the outcome."""
        try:
            report = self.runtime.execute_component(code)
        except Exception as e:
            # Convert runtime crashes to results so the pipeline keeps going
            logger.warning(f"Script runtime failed: {e}")
            return ValidationResult(
                valid=False,
                reason=f"Script runtime failed: {e}",
                phase="runtime",
                details={"exception_type": type(e).__name__},
            )
        return self.classify(report)

    def classify(self, report: ExecutionReport) -> ValidationResult:
        """Turn a raw execution report into a validation result."""
        details = {"error_name": report.error_name} if report.error_name else {}

        if report.phase == "compile":
            return ValidationResult(
                valid=False,
                reason=f"{report.error_name or 'SyntaxError'}: {report.error_message}",
                phase="compile",
                details=details,
            )
        if report.phase == "instantiate":
            return ValidationResult(
                valid=False,
                reason=f"Component body threw {report.error_name}: {report.error_message}",
                phase="instantiate",
                details=details,
            )
        if not report.component_detected:
            return ValidationResult(
                valid=False,
                reason="Code did not produce a callable component",
                phase="instantiate",
            )
        if report.phase == "render":
            if self.binding.is_lifecycle_error(report.error_message):
                return ValidationResult(
                    valid=False,
                    reason=(
                        "Component uses framework primitives that only run inside an "
                        "active render cycle"
                    ),
                    component_detected=True,
                    expected=True,
                    phase="render",
                    details=details,
                )
            return ValidationResult(
                valid=False,
                reason=f"Component threw {report.error_name}: {report.error_message}",
                component_detected=True,
                phase="render",
                details=details,
            )
        if report.rendered not in RENDERABLE:
            return ValidationResult(
                valid=False,
                reason=f"Component returned a non-renderable {report.rendered}",
                component_detected=True,
                phase="render",
            )
        return ValidationResult(valid=True, component_detected=True)
