"""Unit tests for the execution validator.

The script runtime is replaced by a fake that returns canned execution
reports, so these tests exercise classification only.
"""

from kiln.core.schema.artifact import Format
from kiln.core.schema.runtime import ExecutionReport, RuntimeBinding
from kiln.runtime.validator import ExecutionValidator


class FakeRuntime:
    """Script runtime returning a fixed report and recording calls."""

    def __init__(self, report: ExecutionReport = None):
        self.report = report or ExecutionReport(
            phase="done", component_detected=True, rendered="element"
        )
        self.calls = []

    def execute_component(self, code: str) -> ExecutionReport:
        self.calls.append(code)
        return self.report


class CrashingRuntime:
    """Script runtime whose engine fails outright."""

    def execute_component(self, code: str) -> ExecutionReport:
        raise RuntimeError("engine exploded")


def validate_inline(report: ExecutionReport):
    return ExecutionValidator(runtime=FakeRuntime(report)).validate("return A;", Format.INLINE)


class TestInlineValidation:
    """Tests for classification of inline execution reports."""

    def test_rendered_element_is_valid(self):
        runtime = FakeRuntime()
        validator = ExecutionValidator(runtime=runtime)

        result = validator.validate("const A = () => null;\nreturn A;\n", Format.INLINE)

        assert result.valid
        assert result.component_detected
        assert runtime.calls == ["const A = () => null;\nreturn A;\n"]

    def test_empty_render_is_valid(self):
        result = validate_inline(ExecutionReport(phase="done", component_detected=True, rendered="empty"))

        assert result.valid

    def test_lifecycle_error_is_expected(self):
        """A hook guard tripping outside a render cycle is classified, not fatal."""
        result = validate_inline(
            ExecutionReport(
                phase="render",
                component_detected=True,
                error_name="Error",
                error_message="Invalid hook call. Hooks can only be called inside of the body of a function component. (useState)",
            )
        )

        assert not result.valid
        assert result.expected
        assert result.component_detected
        assert result.phase == "render"

    def test_other_render_error_is_not_expected(self):
        result = validate_inline(
            ExecutionReport(
                phase="render",
                component_detected=True,
                error_name="TypeError",
                error_message="cannot read property 'map' of undefined",
            )
        )

        assert not result.valid
        assert not result.expected
        assert "TypeError" in result.reason

    def test_compile_failure(self):
        result = validate_inline(
            ExecutionReport(phase="compile", error_name="SyntaxError", error_message="unexpected token")
        )

        assert not result.valid
        assert result.phase == "compile"
        assert result.reason == "SyntaxError: unexpected token"

    def test_body_throwing_is_instantiation_failure(self):
        result = validate_inline(
            ExecutionReport(phase="instantiate", error_name="ReferenceError", error_message="x is not defined")
        )

        assert not result.valid
        assert result.phase == "instantiate"
        assert not result.component_detected

    def test_non_callable_result(self):
        result = validate_inline(ExecutionReport(phase="done", component_detected=False))

        assert not result.valid
        assert "callable component" in result.reason

    def test_non_renderable_value(self):
        result = validate_inline(ExecutionReport(phase="done", component_detected=True, rendered="object"))

        assert not result.valid
        assert "non-renderable" in result.reason

    def test_runtime_crash_becomes_invalid_result(self):
        validator = ExecutionValidator(runtime=CrashingRuntime())

        result = validator.validate("return A;", Format.INLINE)

        assert not result.valid
        assert result.phase == "runtime"
        assert result.details["exception_type"] == "RuntimeError"

    def test_custom_lifecycle_patterns(self):
        binding = RuntimeBinding(lifecycle_error_patterns=("hooks are render-only",))
        validator = ExecutionValidator(
            runtime=FakeRuntime(
                ExecutionReport(
                    phase="render",
                    component_detected=True,
                    error_name="Error",
                    error_message="hooks are render-only",
                )
            ),
            binding=binding,
        )

        assert validator.validate("return A;", Format.INLINE).expected


class TestModuleValidation:
    """Tests for the syntactic check applied to standard modules."""

    def test_default_export_passes_without_execution(self):
        runtime = FakeRuntime()
        validator = ExecutionValidator(runtime=runtime)
        source = "import React from 'react';\nexport default function Card() {\n  return React.createElement('div', null);\n}\n"

        result = validator.validate(source, Format.STANDARD_MODULE)

        assert result.valid
        assert runtime.calls == []

    def test_default_export_alias_passes(self):
        validator = ExecutionValidator(runtime=FakeRuntime())

        assert validator.validate("const Card = () => null;\nexport { Card as default };", Format.STANDARD_MODULE).valid

    def test_missing_default_export(self):
        validator = ExecutionValidator(runtime=FakeRuntime())

        result = validator.validate("export const Card = () => null;", Format.STANDARD_MODULE)

        assert not result.valid
        assert result.reason == "Module has no default export"

    def test_residual_markup_fails(self):
        validator = ExecutionValidator(runtime=FakeRuntime())

        result = validator.validate("export default () => <div/>;", Format.STANDARD_MODULE)

        assert not result.valid
        assert result.component_detected
        assert result.details["markup_offsets"] == [21]

    def test_unscannable_module(self):
        validator = ExecutionValidator(runtime=FakeRuntime())

        result = validator.validate("export default function A() {", Format.STANDARD_MODULE)

        assert not result.valid
        assert result.phase == "compile"
