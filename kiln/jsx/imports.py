"""Import repair for inline component source.

AI-generated components frequently call framework hooks (``useState``,
``useEffect`` ...) without importing them. The repairer scans the source
lexically, finds known primitives that are used but not imported from the
framework package, and rewrites (or synthesizes) the framework import
declaration so every used primitive is imported.

Repair is idempotent: running it on already-repaired source adds nothing
and returns the input byte-for-byte.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from kiln.core.errors import CompileError
from kiln.core.schema.runtime import RuntimeBinding
from kiln.jsx.scanner import MarkupScanner

logger = logging.getLogger(__name__)

IMPORT_DECLARATION_RE = re.compile(
    r"^(?P<indent>[ \t]*)import[ \t]+(?P<clause>[^;'\"]+?)\s*\bfrom[ \t]*"
    r"(?P<quote>['\"])(?P<specifier>[^'\"\n]+)(?P=quote)(?P<semi>[ \t]*;)?",
    re.M,
)
SIDE_EFFECT_IMPORT_RE = re.compile(r"^[ \t]*import[ \t]*(['\"])(?P<specifier>[^'\"\n]+)\1", re.M)
_SPECIFIER_RE = re.compile(r"^(?:type\s+)?([\w$]+)(?:\s+as\s+([\w$]+))?$")
_NAMESPACE_RE = re.compile(r"\*\s*as\s+([\w$]+)")
_HOOK_NAME_RE = re.compile(r"^use[A-Z][\w$]*$")


@dataclass(frozen=True)
class ImportSpecifier:
    """One ``name`` or ``name as alias`` entry of a named import list."""

    imported: str
    local: str
    text: str


@dataclass
class ImportClause:
    """Bindings introduced by an import declaration."""

    default: Optional[str] = None
    namespace: Optional[str] = None
    named: List[ImportSpecifier] = field(default_factory=list)

    @property
    def local_names(self) -> List[str]:
        names = [s.local for s in self.named]
        if self.default:
            names.insert(0, self.default)
        if self.namespace:
            names.append(self.namespace)
        return names


@dataclass
class ImportDeclaration:
    """A located ``import ... from '...'`` declaration."""

    start: int
    end: int
    indent: str
    clause: ImportClause
    specifier: str
    quote: str
    semicolon: str


@dataclass
class RepairResult:
    """Outcome of import repair.

    Attributes:
        fixed: True when the import declaration was rewritten or synthesized
        added_names: Primitives added, in order of first reference
        code: Repaired source (identical to the input when nothing was added)
        unresolved: Hook-like identifiers called but neither known, imported
                    nor declared; left unrepaired
    """

    fixed: bool
    added_names: List[str]
    code: str
    unresolved: List[str] = field(default_factory=list)


def parse_import_clause(text: str) -> ImportClause:
    """Parse the bindings part of an import declaration.

    Handles ``React``, ``React, { a, b as c }``, ``{ a }``, ``* as R`` and
    ``React, * as R``.
    """
    clause = ImportClause()
    rest = text.strip()

    brace = re.search(r"\{([^}]*)\}", rest)
    if brace:
        for part in brace.group(1).split(","):
            part = " ".join(part.split())
            if not part:
                continue
            match = _SPECIFIER_RE.match(part)
            imported = match.group(1) if match else part
            local = match.group(2) if match and match.group(2) else imported
            clause.named.append(ImportSpecifier(imported=imported, local=local, text=part))
        rest = rest[:brace.start()] + rest[brace.end():]

    namespace = _NAMESPACE_RE.search(rest)
    if namespace:
        clause.namespace = namespace.group(1)
        rest = rest[:namespace.start()] + rest[namespace.end():]

    rest = rest.strip().strip(",").strip()
    if rest:
        clause.default = rest
    return clause


def find_import_declarations(source: str) -> List[ImportDeclaration]:
    """Locate every line-anchored ``import ... from`` declaration."""
    declarations = []
    for match in IMPORT_DECLARATION_RE.finditer(source):
        declarations.append(
            ImportDeclaration(
                start=match.start(),
                end=match.end(),
                indent=match.group("indent"),
                clause=parse_import_clause(match.group("clause")),
                specifier=match.group("specifier"),
                quote=match.group("quote"),
                semicolon=(match.group("semi") or "").strip(),
            )
        )
    return declarations


def render_import(
    default: Optional[str], names: List[str], specifier: str, quote: str = "'", semicolon: str = ";"
) -> str:
    """Render an import declaration with a default and a named list."""
    parts = []
    if default:
        parts.append(default)
    if names:
        parts.append("{ " + ", ".join(names) + " }")
    return f"import {', '.join(parts)} from {quote}{specifier}{quote}{semicolon}"


def _ordered_unique(names: List[str]) -> List[str]:
    seen = set()
    ordered = []
    for name in names:
        if name not in seen:
            seen.add(name)
            ordered.append(name)
    return ordered


def repair_imports(source: str, binding: Optional[RuntimeBinding] = None) -> RepairResult:
    """Inject missing framework primitive imports.

    1. Collect known primitives referenced outside strings, comments and
       markup text (property accesses such as ``React.useState`` do not count).
    2. Collect names already imported from the framework package.
    3. Add the difference: existing names keep their order, new names follow
       in order of first reference. Without any framework import, one is
       synthesized at the top of the source.

    Never fails; a source the scanner cannot fully read is repaired from the
    identifiers seen before the scan stopped.

    Args:
        source: Inline component source
        binding: Framework binding (package name and known primitives)

    Returns:
        RepairResult with the repaired code and the added names

    Example:
        >>> result = repair_imports("const [n] = useState(0);")
        >>> result.code.splitlines()[0]
        "import React, { useState } from 'react';"
    """
    binding = binding or RuntimeBinding()
    known = set(binding.primitives)

    scanner = MarkupScanner(source, binding)
    try:
        scanner.scan()
    except CompileError as e:
        logger.debug(f"Import scan stopped early: {e}")

    declarations = find_import_declarations(source)
    framework_imports = [d for d in declarations if d.specifier == binding.package]

    imported = _ordered_unique(
        [s.imported for d in framework_imports for s in d.clause.named]
    )
    imported_locals = {name for d in declarations for name in d.clause.local_names}
    declared = {d.name for d in scanner.declarations}

    uses = [u for u in scanner.identifiers if not u.member]
    used = _ordered_unique([u.name for u in uses if u.name in known])
    missing = [name for name in used if name not in imported and name not in declared]

    unresolved = _ordered_unique(
        [
            u.name
            for u in uses
            if u.called
            and _HOOK_NAME_RE.match(u.name)
            and u.name not in known
            and u.name not in declared
            and u.name not in imported_locals
        ]
    )
    if unresolved:
        logger.warning(f"Unknown hooks left unrepaired: {', '.join(unresolved)}")

    if not missing:
        return RepairResult(fixed=False, added_names=[], code=source, unresolved=unresolved)

    target = next((d for d in framework_imports if d.clause.namespace is None), None)
    if target is not None:
        names = [s.text for s in target.clause.named] + missing
        rewritten = target.indent + render_import(
            target.clause.default, names, binding.package, target.quote, target.semicolon
        )
        code = source[:target.start] + rewritten + source[target.end:]
    elif framework_imports:
        # Namespace-only imports cannot take named bindings; add a declaration
        last = framework_imports[-1]
        addition = render_import(None, missing, binding.package, last.quote)
        code = source[:last.end] + "\n" + last.indent + addition + source[last.end:]
    else:
        code = render_import(binding.name, missing, binding.package) + "\n" + source

    logger.info(f"Added missing imports: {', '.join(missing)}")
    return RepairResult(fixed=True, added_names=missing, code=code, unresolved=unresolved)
