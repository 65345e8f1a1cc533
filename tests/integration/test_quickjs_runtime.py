"""Integration tests running transformed components in QuickJS."""

import asyncio

import pytest

quickjs = pytest.importorskip("quickjs")

from kiln.core.pipeline import ComponentPipeline, PipelineOptions
from kiln.core.schema.artifact import Format, SourceArtifact, ValidationStatus
from kiln.core.schema.diagnostic import VALIDATION_INCONCLUSIVE
from kiln.jsx.transformer import transform
from kiln.runtime.preparer import ModulePreparer
from kiln.runtime.quickjs_runtime import QuickJSRuntime
from kiln.runtime.validator import ExecutionValidator


@pytest.fixture
def runtime():
    return QuickJSRuntime()


@pytest.fixture
def pipeline(tmp_path):
    return ComponentPipeline(preparer=ModulePreparer(directory=str(tmp_path)))


def validate(source: str):
    return ExecutionValidator().validate(transform(source).code, Format.INLINE)


class TestQuickJSRuntime:
    """Tests for the raw execution report."""

    def test_null_component_renders_empty(self, runtime):
        report = runtime.execute_component("const C = () => null;\nreturn C;\n")

        assert report.phase == "done"
        assert report.component_detected
        assert report.rendered == "empty"

    def test_element_is_recognized(self, runtime):
        report = runtime.execute_component(transform("const C = () => <div>hi</div>;").code)

        assert report.rendered == "element"

    def test_syntax_error_is_compile_phase(self, runtime):
        report = runtime.execute_component("const C = () => { return 1 +; };\nreturn C;\n")

        assert report.phase == "compile"
        assert report.error_name == "SyntaxError"

    def test_body_throw_is_instantiate_phase(self, runtime):
        report = runtime.execute_component("throw new Error('boom');")

        assert report.phase == "instantiate"
        assert report.error_message == "boom"

    def test_contexts_are_isolated(self, runtime):
        runtime.execute_component("globalThis.leak = 1;\nreturn () => null;")
        report = runtime.execute_component("return () => (typeof leak === 'undefined' ? null : 'leaked');")

        assert report.rendered == "empty"


class TestValidationInQuickJS:
    """Tests for validator classification against the real engine."""

    def test_plain_component_passes(self):
        result = validate("const Card = ({ title }) => <div className=\"card\">{title}</div>;")

        assert result.valid

    def test_hook_outside_render_is_expected(self):
        source = (
            "import React, { useState } from 'react';\n"
            "const Counter = () => {\n"
            "  const [n, setN] = useState(0);\n"
            "  return <button onClick={() => setN(n + 1)}>{n}</button>;\n"
            "};\n"
        )

        result = validate(source)

        assert not result.valid
        assert result.expected
        assert result.component_detected

    def test_class_component(self):
        result = validate(
            "class Panel extends React.Component {\n"
            "  render() { return <section>{this.props.children}</section>; }\n"
            "}\n"
        )

        assert result.valid

    def test_render_type_error_is_not_expected(self):
        result = validate("const List = ({ items }) => <ul>{items.map((i) => <li>{i}</li>)}</ul>;")

        assert not result.valid
        assert not result.expected
        assert result.details["error_name"] == "TypeError"


class TestPipelineWithQuickJS:
    """End-to-end pipeline runs using the default validator."""

    def test_repaired_hook_component_is_inconclusive_but_successful(self, pipeline):
        source = SourceArtifact(
            "const Toggle = () => {\n"
            "  const [on, setOn] = useState(false);\n"
            "  return <button onClick={() => setOn(!on)}>{on ? 'on' : 'off'}</button>;\n"
            "};\n"
        )

        result = asyncio.run(pipeline.process_source(source))

        assert result.success
        assert result.artifact.validation_status is ValidationStatus.INCONCLUSIVE
        assert [w.code for w in result.warnings] == [VALIDATION_INCONCLUSIVE]
        assert result.warnings[0].evidence["expected"] is True

    def test_plain_component_passes(self, pipeline):
        source = SourceArtifact("() => <p>Hello &amp; welcome</p>")

        result = asyncio.run(pipeline.process_source(source, PipelineOptions()))

        assert result.success
        assert result.warnings == []
        assert result.artifact.component_name == "Component"
        assert result.artifact.validation_status is ValidationStatus.PASSED
