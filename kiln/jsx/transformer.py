"""Source transformation for inline components.

Inline components are bare declarations (``const Component = () => <div/>``)
written with embedded markup. Transformation turns them into a plain
function body that takes the framework binding and returns the component:

    const { useState } = React;
    const Component = () => React.createElement("div", null);
    return Component;

The host evaluates it as ``new Function("React", body)(React)``.
Standard-module source passes through untouched; the host's module loader
executes it as-is.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from kiln.core.errors import CompileError
from kiln.core.schema.artifact import Format
from kiln.core.schema.runtime import RuntimeBinding
from kiln.jsx.imports import (
    SIDE_EFFECT_IMPORT_RE,
    ImportClause,
    find_import_declarations,
)
from kiln.jsx.scanner import Declaration, MarkupScanner

logger = logging.getLogger(__name__)

PREFERRED_COMPONENT_NAME = "Component"
_EXPRESSION_START_RE = re.compile(r"^(?:\(|function\b|async\b|class\b)")
_CALLABLE_INITIALIZER_RE = re.compile(
    r"\s*=\s*(?:"
    r"(?:async\s+)?(?:function\b|\(|[A-Za-z_$][\w$]*\s*=>)"
    r"|class\b"
    r"|(?:[A-Za-z_$][\w$]*\.)?(?:memo|forwardRef|lazy)\s*\("
    r")"
)


@dataclass(frozen=True)
class TransformResult:
    """Outcome of transformation.

    Attributes:
        code: Transformed function body (or the untouched module source)
        component_name: Identifier the body returns, None for modules
        markup_elements: Number of markup elements rewritten
    """

    code: str
    component_name: Optional[str] = None
    markup_elements: int = 0


def _binding_statement(clause: ImportClause, binding: RuntimeBinding) -> str:
    statements = []
    if clause.default and clause.default != binding.name:
        statements.append(f"const {clause.default} = {binding.name};")
    if clause.namespace and clause.namespace != binding.name:
        statements.append(f"const {clause.namespace} = {binding.name};")
    if clause.named:
        names = [
            s.imported if s.local == s.imported else f"{s.imported}: {s.local}"
            for s in clause.named
        ]
        statements.append("const { " + ", ".join(names) + " } = " + binding.name + ";")
    return " ".join(statements)


def rewrite_framework_imports(source: str, binding: RuntimeBinding) -> Tuple[str, List[str]]:
    """Lift framework import declarations out of inline source.

    Each declaration is blanked in place (keeping its line breaks so compile
    errors still point at the original lines) and turned into a statement
    destructuring the runtime binding.

    Returns:
        Tuple of (source without framework imports, binding statements)

    Raises:
        CompileError: If the source imports anything other than the framework
    """
    side_effect = SIDE_EFFECT_IMPORT_RE.search(source)
    if side_effect:
        raise CompileError.at(
            f"Import of '{side_effect.group('specifier')}' is not supported in inline "
            "components; submit a standard module instead",
            source,
            side_effect.start(),
        )

    pieces: List[str] = []
    statements: List[str] = []
    cursor = 0
    for declaration in find_import_declarations(source):
        if declaration.specifier != binding.package:
            raise CompileError.at(
                f"Import from '{declaration.specifier}' is not supported in inline "
                "components; submit a standard module instead",
                source,
                declaration.start,
            )
        original = source[declaration.start:declaration.end]
        statement = _binding_statement(declaration.clause, binding)
        if statement:
            statements.append(statement)
        pieces.append(source[cursor:declaration.start])
        pieces.append("\n" * original.count("\n"))
        cursor = declaration.end
    pieces.append(source[cursor:])
    return "".join(pieces), statements


def _is_callable_binding(source: str, declaration: Declaration) -> bool:
    if declaration.keyword in ("function", "class"):
        return True
    return _CALLABLE_INITIALIZER_RE.match(source, declaration.pos + len(declaration.name)) is not None


def _component_name(scanner: MarkupScanner) -> Optional[str]:
    """Pick the top-level binding the body returns.

    Capitalised bindings that hold a function or class win over other
    capitalised bindings such as style constants; the other bindings are
    only used when nothing callable is declared (e.g. a higher-order
    component result).
    """
    candidates = [d for d in scanner.declarations if d.depth == 0 and d.name[:1].isupper()]
    callables = [d for d in candidates if _is_callable_binding(scanner.src, d)]
    names = [d.name for d in (callables or candidates)]
    if not names:
        return None
    if PREFERRED_COMPONENT_NAME in names:
        return PREFERRED_COMPONENT_NAME
    return names[-1]


def transform(
    source: str, fmt: Format = Format.INLINE, binding: Optional[RuntimeBinding] = None
) -> TransformResult:
    """Transform component source into directly executable code.

    Args:
        source: Repaired component source
        fmt: Format the source was classified as
        binding: Framework binding naming the element constructor

    Returns:
        TransformResult with the executable code and the component identifier

    Raises:
        CompileError: On malformed markup or unterminated expressions, or when
            an inline body declares no component and is not a bare expression
    """
    if fmt is Format.STANDARD_MODULE:
        return TransformResult(code=source)

    binding = binding or RuntimeBinding()
    body, statements = rewrite_framework_imports(source, binding)

    scanner = MarkupScanner(body, binding)
    code = scanner.scan()
    name = _component_name(scanner)

    if name is not None:
        code = f"{code.rstrip()}\nreturn {name};\n"
    else:
        stripped = code.strip()
        bare_expression = _EXPRESSION_START_RE.match(stripped) and (
            scanner.top_level_statements == 0
            or (scanner.top_level_statements == 1 and stripped.endswith(";"))
        )
        if not bare_expression:
            raise CompileError(
                "No component declaration found; declare it as "
                f"'const {PREFERRED_COMPONENT_NAME} = ...'",
                line=1,
                column=1,
            )
        name = PREFERRED_COMPONENT_NAME
        code = f"const {name} = (\n{stripped.rstrip(';')}\n);\nreturn {name};\n"

    code = code.lstrip("\n")
    if statements:
        code = "\n".join(statements) + "\n" + code

    logger.debug(
        f"Transformed inline component '{name}' ({len(scanner.markup_positions)} markup elements)"
    )
    return TransformResult(
        code=code, component_name=name, markup_elements=len(scanner.markup_positions)
    )
