"""Unit tests for the markup scanner and source transformer.

Tests cover:
- Markup elements, fragments, attributes, spreads and text children
- Deciding when '<' opens markup
- Component identifier selection and bare-expression bodies
- Framework import lifting for inline evaluation
- CompileError locations for malformed markup
- Standard-module pass-through
"""

import pytest

from kiln.core.errors import CompileError
from kiln.core.schema.artifact import Format
from kiln.jsx.scanner import MarkupScanner, clean_markup_text, find_markup
from kiln.jsx.transformer import transform


def scan(source: str) -> str:
    return MarkupScanner(source).scan()


class TestMarkupRewriting:
    """Tests for markup-to-call rewriting."""

    def test_simple_element(self):
        assert scan("const A = () => <b>hi</b>;") == (
            'const A = () => React.createElement("b", null, "hi");'
        )

    def test_expression_child(self):
        assert scan("const X = () => <div>{count}</div>") == (
            'const X = () => React.createElement("div", null, count)'
        )

    def test_component_tag_is_an_identifier(self):
        assert scan("const A = () => <Card title=\"x\" />;") == (
            'const A = () => React.createElement(Card, {title: "x"});'
        )

    def test_member_tag_is_an_identifier(self):
        assert scan("const A = () => <Ctx.Provider value={v}>{c}</Ctx.Provider>;") == (
            "const A = () => React.createElement(Ctx.Provider, {value: v}, c);"
        )

    def test_lowercase_member_tag_is_an_identifier(self):
        assert scan("const A = () => <motion.div animate={a}/>;") == (
            "const A = () => React.createElement(motion.div, {animate: a});"
        )

    def test_fragment(self):
        assert scan("const F = () => <><i/>text</>;") == (
            'const F = () => React.createElement(React.Fragment, null, '
            'React.createElement("i", null), "text");'
        )

    def test_attributes_spread_and_boolean(self):
        source = '<div className="a" hidden {...rest} onClick={go}>x</div>'

        assert scan(source) == (
            'React.createElement("div", Object.assign({}, {className: "a", hidden: true}, '
            'rest, {onClick: go}), "x")'
        )

    def test_dashed_attribute_is_quoted(self):
        assert scan('<div data-id="1" />') == 'React.createElement("div", {"data-id": "1"})'

    def test_nested_elements_and_multiline_text(self):
        source = "(\n  <ul>\n    <li>\n      Hello\n      world\n    </li>\n  </ul>\n)"

        assert scan(source) == (
            '(\n  React.createElement("ul", null, '
            'React.createElement("li", null, "Hello world"))\n)'
        )

    def test_comment_only_container_is_dropped(self):
        assert scan("<p>{/* note */}a</p>") == 'React.createElement("p", null, "a")'

    def test_entities_are_decoded(self):
        assert scan("<p>a &amp; b</p>") == 'React.createElement("p", null, "a & b")'

    def test_markup_inside_template_expression(self):
        assert scan("const s = `${<b/>}`;") == 'const s = `${React.createElement("b", null)}`;'

    def test_comparison_is_not_markup(self):
        source = "const A = () => { const ok = a < b; return ok ? <b/> : null; };"

        out = scan(source)

        assert "a < b" in out
        assert 'ok ? React.createElement("b", null) : null' in out

    def test_strings_and_regex_are_copied(self):
        source = "const re = /<div>/g; const s = '<span>';"

        assert scan(source) == source

    def test_clean_markup_text(self):
        assert clean_markup_text("\n   \n") == ""
        assert clean_markup_text("  a  ") == "  a  "
        assert clean_markup_text("a\n   b\n") == "a b"


class TestScannerErrors:
    """Tests for CompileError reporting."""

    def test_mismatched_closing_tag(self):
        with pytest.raises(CompileError) as exc_info:
            scan("const A = () => <div><span></div>;")

        assert "closing tag for <span>" in exc_info.value.message
        assert (exc_info.value.line, exc_info.value.column) == (1, 28)

    def test_error_line_is_reported(self):
        source = "const A = () => (\n  <div>\n    <p>hi</div>\n);"

        with pytest.raises(CompileError) as exc_info:
            scan(source)

        assert exc_info.value.line == 3

    def test_unterminated_tag(self):
        with pytest.raises(CompileError, match="Unterminated markup tag <div>"):
            scan('const A = () => <div className="x"')

    def test_unterminated_contents(self):
        with pytest.raises(CompileError, match="Unterminated markup contents for <div>"):
            scan("const A = () => <div>;")

    def test_unbalanced_brace(self):
        with pytest.raises(CompileError, match="never closed"):
            scan("const A = () => {")

    def test_unterminated_string(self):
        with pytest.raises(CompileError, match="Unterminated string constant"):
            scan("const s = 'abc;\n")

    def test_empty_attribute_expression(self):
        with pytest.raises(CompileError, match="non-empty expression"):
            scan("<div title={} />")

    def test_error_str_includes_location(self):
        error = CompileError("Bad thing", line=2, column=5)
        assert str(error) == "Bad thing (2:5)"
        assert str(CompileError("Bad thing")) == "Bad thing"

    def test_find_markup_reports_offsets(self):
        assert find_markup("const a = 1;\nexport default () => <div/>;") == [34]
        assert find_markup("export default function A() { return null; }") == []


class TestTransform:
    """Tests for transform()."""

    def test_inline_returns_bound_component(self):
        result = transform("const A = () => <b>hi</b>;")

        assert result.code == 'const A = () => React.createElement("b", null, "hi");\nreturn A;\n'
        assert result.component_name == "A"
        assert result.markup_elements == 1

    def test_function_declaration(self):
        result = transform("function Card() { return <p/>; }")

        assert result.code == 'function Card() { return React.createElement("p", null); }\nreturn Card;\n'
        assert result.component_name == "Card"

    def test_prefers_binding_named_component(self):
        source = "const helper = 1;\nconst Card = () => null;\nconst Component = () => <Card />;\n"

        assert transform(source).component_name == "Component"

    def test_last_capitalized_binding_otherwise(self):
        source = "const Header = () => null;\nconst Page = () => <Header />;\n"

        assert transform(source).component_name == "Page"

    def test_trailing_constant_is_not_the_component(self):
        result = transform("const Card = () => <div>hi</div>;\nconst STYLES = { color: 'red' };")

        assert result.component_name == "Card"
        assert result.code.endswith("return Card;\n")

    def test_wrapped_and_class_components_are_callable(self):
        memo = "const Inner = () => null;\nconst Card = React.memo(Inner);\nconst THEME = 'dark';\n"
        klass = "class Panel extends React.Component {}\nconst DEFAULTS = {};\n"

        assert transform(memo).component_name == "Card"
        assert transform(klass).component_name == "Panel"

    def test_non_callable_binding_used_when_nothing_else_declared(self):
        source = "const Inner = 1;\nconst Themed = withTheme(Inner);\n"

        assert transform(source).component_name == "Themed"

    def test_nested_declarations_are_not_candidates(self):
        source = "const Outer = () => { const Inner = 1; return Inner; };"

        assert transform(source).component_name == "Outer"

    def test_bare_expression_is_wrapped(self):
        result = transform("() => <div>hi</div>")

        assert result.code == (
            'const Component = (\n() => React.createElement("div", null, "hi")\n);\n'
            "return Component;\n"
        )
        assert result.component_name == "Component"

    def test_framework_imports_become_binding_statements(self):
        source = (
            "import React, { useState } from 'react';\n"
            "const Counter = () => {\n"
            "  const [n] = useState(0);\n"
            "  return <span>{n}</span>;\n"
            "};\n"
        )

        result = transform(source)

        assert result.code.startswith("const { useState } = React;\nconst Counter = () => {\n")
        assert 'React.createElement("span", null, n)' in result.code
        assert result.code.endswith("return Counter;\n")
        assert "import" not in result.code

    def test_aliased_and_namespace_imports(self):
        source = "import * as R from 'react';\nimport { useState as useS } from 'react';\nconst A = () => null;"

        code = transform(source).code

        assert code.startswith("const R = React;\nconst { useState: useS } = React;\n")

    def test_non_framework_import_is_rejected(self):
        with pytest.raises(CompileError, match="'./styles.css'"):
            transform("import styles from './styles.css';\nconst A = () => null;")

    def test_no_component_declaration(self):
        with pytest.raises(CompileError, match="No component declaration found"):
            transform("let x = 1;\nx + 1;")

    def test_malformed_markup_fails(self):
        with pytest.raises(CompileError):
            transform("const A = () => <div>;")

    def test_standard_module_passes_through(self):
        source = "import React from 'react';\nexport default () => <div/>;\n"

        result = transform(source, Format.STANDARD_MODULE)

        assert result.code == source
        assert result.component_name is None
