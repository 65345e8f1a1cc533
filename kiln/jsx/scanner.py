"""Markup-aware scanner for component source.

The scanner walks component source once, copying ordinary code through
unchanged and rewriting embedded markup elements into nested constructor
calls (``React.createElement(type, props, ...children)``). While walking it
records identifier uses and declarations for the import repairer, and the
positions of markup elements for residual-markup checks.

This is a lexical scanner for the small surface AI-generated components
use, not a language front end: it understands strings, template literals,
comments, regular expression literals, bracket balance and markup
elements, and decides whether ``<`` opens markup from the previous token.
"""

import html
import json
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from kiln.core.errors import CompileError
from kiln.core.schema.runtime import RuntimeBinding

PAIRS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {")", "]", "}"}

# Keywords after which an expression (and therefore markup or a regex) may start
KEYWORDS_BEFORE_EXPRESSION = frozenset(
    {"return", "yield", "await", "default", "case", "typeof", "void",
     "delete", "in", "of", "else", "do", "throw"}
)
DECLARATION_KEYWORDS = frozenset({"const", "let", "var", "function", "class"})

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")
_COMMENTS_RE = re.compile(r"/\*.*?\*/|//[^\n]*", re.S)


def is_identifier_start(ch: str) -> bool:
    return ch.isalpha() or ch in "_$"


def is_identifier_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


@dataclass(frozen=True)
class IdentifierUse:
    """An identifier seen in code (outside strings, comments and markup text).

    Attributes:
        name: The identifier
        pos: Character offset in the scanned source
        member: True when accessed as a property (``React.useState``)
        called: True when immediately followed by a call ``(``
    """

    name: str
    pos: int
    member: bool = False
    called: bool = False


@dataclass(frozen=True)
class Declaration:
    """A binding introduced by const/let/var/function/class."""

    name: str
    keyword: str
    depth: int
    pos: int


def clean_markup_text(text: str) -> str:
    """Collapse markup text the way markup children are normalized.

    Lines are trimmed (except the outer edges of the first and last line),
    whitespace-only lines are dropped and the rest are joined with a single
    space. HTML entities are decoded.
    """
    lines = text.replace("\r\n", "\n").split("\n")
    last_non_empty = -1
    for i, line in enumerate(lines):
        if line.strip(" \t"):
            last_non_empty = i

    result = []
    for i, line in enumerate(lines):
        trimmed = line.replace("\t", " ")
        if i != 0:
            trimmed = trimmed.lstrip(" ")
        if i != len(lines) - 1:
            trimmed = trimmed.rstrip(" ")
        if trimmed:
            if i != last_non_empty:
                trimmed += " "
            result.append(trimmed)
    return html.unescape("".join(result))


def _js_string(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _property_key(name: str) -> str:
    return name if _IDENTIFIER_RE.match(name) else _js_string(name)


class MarkupScanner:
    """Single-pass scanner and markup rewriter.

    Example:
        >>> scanner = MarkupScanner("const A = () => <b>hi</b>;")
        >>> scanner.scan()
        'const A = () => React.createElement("b", null, "hi");'
        >>> [d.name for d in scanner.declarations]
        ['A']
    """

    def __init__(self, source: str, binding: Optional[RuntimeBinding] = None):
        self.src = source
        self.binding = binding or RuntimeBinding()
        self.pos = 0
        self.identifiers: List[IdentifierUse] = []
        self.declarations: List[Declaration] = []
        self.markup_positions: List[int] = []
        self.top_level_statements = 0
        self._nesting = 0
        self._prev: Optional[Tuple[str, str]] = None

    def scan(self) -> str:
        """Scan the whole source and return it with markup rewritten.

        Raises:
            CompileError: On unbalanced brackets or markup, or unterminated
                strings, templates, comments and regular expressions
        """
        self.pos = 0
        return self._scan_code(closing=None, start=0)

    # -- code -----------------------------------------------------------

    def _scan_code(self, closing: Optional[str], start: int) -> str:
        src = self.src
        out: List[str] = []
        stack: List[Tuple[str, int]] = []

        while self.pos < len(src):
            ch = src[self.pos]

            if ch in " \t\r\n":
                out.append(ch)
                self.pos += 1
            elif src.startswith("//", self.pos):
                end = src.find("\n", self.pos)
                end = len(src) if end == -1 else end
                out.append(src[self.pos:end])
                self.pos = end
            elif src.startswith("/*", self.pos):
                end = src.find("*/", self.pos + 2)
                if end == -1:
                    raise CompileError.at("Unterminated comment", src, self.pos)
                out.append(src[self.pos:end + 2])
                self.pos = end + 2
            elif ch in "\"'":
                out.append(self._read_string())
                self._prev = ("string", "")
            elif ch == "`":
                out.append(self._read_template())
                self._prev = ("string", "")
            elif ch.isdigit():
                out.append(self._read_number())
                self._prev = ("number", "")
            elif is_identifier_start(ch):
                out.append(self._read_identifier())
            elif ch == "/" and self._expression_allowed():
                out.append(self._read_regex())
                self._prev = ("regex", "")
            elif ch == "<" and self._expression_allowed() and self._opens_markup():
                out.append(self._scan_element())
                self._prev = ("markup", "")
            elif ch in PAIRS:
                stack.append((ch, self.pos))
                self._nesting += 1
                out.append(ch)
                self._prev = ("punct", ch)
                self.pos += 1
            elif ch in CLOSERS:
                if not stack:
                    if ch == closing:
                        return "".join(out)
                    raise CompileError.at(f"Unexpected token '{ch}'", src, self.pos)
                opener, _ = stack.pop()
                if PAIRS[opener] != ch:
                    raise CompileError.at(
                        f"Unexpected token '{ch}', expected '{PAIRS[opener]}'", src, self.pos
                    )
                self._nesting -= 1
                out.append(ch)
                self._prev = ("punct", ch)
                self.pos += 1
            else:
                if ch == ";" and self._nesting == 0:
                    self.top_level_statements += 1
                out.append(ch)
                self._prev = ("punct", ch)
                self.pos += 1

        if stack:
            opener, opened_at = stack[-1]
            raise CompileError.at(
                f"Unexpected end of input, '{opener}' is never closed", src, opened_at
            )
        if closing is not None:
            raise CompileError.at(
                f"Unexpected end of input, expected '{closing}'", src, start
            )
        return "".join(out)

    def _expression_allowed(self) -> bool:
        if self._prev is None:
            return True
        kind, value = self._prev
        if kind == "punct":
            return value not in CLOSERS
        if kind == "ident":
            return value in KEYWORDS_BEFORE_EXPRESSION
        return False

    def _opens_markup(self) -> bool:
        nxt = self.src[self.pos + 1:self.pos + 2]
        return nxt == ">" or (nxt != "" and is_identifier_start(nxt))

    def _read_identifier(self) -> str:
        src = self.src
        start = self.pos
        while self.pos < len(src) and is_identifier_char(src[self.pos]):
            self.pos += 1
        name = src[start:self.pos]

        member = self._prev == ("punct", ".")
        if not member and self._prev is not None and self._prev[0] == "ident":
            if self._prev[1] in DECLARATION_KEYWORDS:
                self.declarations.append(
                    Declaration(name=name, keyword=self._prev[1], depth=self._nesting, pos=start)
                )

        after = self.pos
        while after < len(src) and src[after] in " \t\r\n":
            after += 1
        called = src[after:after + 1] == "("

        self.identifiers.append(IdentifierUse(name=name, pos=start, member=member, called=called))
        self._prev = ("ident", name)
        return name

    def _read_number(self) -> str:
        src = self.src
        start = self.pos
        while self.pos < len(src) and (src[self.pos].isalnum() or src[self.pos] in "._"):
            self.pos += 1
        return src[start:self.pos]

    def _read_string(self) -> str:
        src = self.src
        quote = src[self.pos]
        start = self.pos
        self.pos += 1
        while True:
            if self.pos >= len(src) or src[self.pos] == "\n":
                raise CompileError.at("Unterminated string constant", src, start)
            ch = src[self.pos]
            if ch == "\\":
                self.pos += 2
                continue
            self.pos += 1
            if ch == quote:
                return src[start:self.pos]

    def _read_template(self) -> str:
        src = self.src
        start = self.pos
        out = ["`"]
        self.pos += 1
        while True:
            if self.pos >= len(src):
                raise CompileError.at("Unterminated template literal", src, start)
            ch = src[self.pos]
            if ch == "\\":
                out.append(src[self.pos:self.pos + 2])
                self.pos += 2
            elif ch == "`":
                out.append("`")
                self.pos += 1
                return "".join(out)
            elif src.startswith("${", self.pos):
                out.append("${")
                self.pos += 2
                out.append(self._scan_container(self.pos - 2))
                out.append("}")
            else:
                out.append(ch)
                self.pos += 1

    def _read_regex(self) -> str:
        src = self.src
        start = self.pos
        self.pos += 1
        in_class = False
        while True:
            if self.pos >= len(src) or src[self.pos] == "\n":
                raise CompileError.at("Unterminated regular expression", src, start)
            ch = src[self.pos]
            if ch == "\\":
                self.pos += 2
                continue
            self.pos += 1
            if ch == "[":
                in_class = True
            elif ch == "]":
                in_class = False
            elif ch == "/" and not in_class:
                break
        while self.pos < len(src) and is_identifier_char(src[self.pos]):
            self.pos += 1
        return src[start:self.pos]

    def _scan_container(self, start: int) -> str:
        """Scan an embedded expression up to and including its closing brace."""
        saved_prev = self._prev
        self._prev = None
        self._nesting += 1
        code = self._scan_code(closing="}", start=start)
        self._nesting -= 1
        self.pos += 1
        self._prev = saved_prev
        return code

    # -- markup ---------------------------------------------------------

    def _skip_markup_whitespace(self) -> None:
        while self.pos < len(self.src) and self.src[self.pos] in " \t\r\n":
            self.pos += 1

    def _read_markup_name(self, start: int) -> str:
        src = self.src
        begin = self.pos
        while self.pos < len(src) and (is_identifier_char(src[self.pos]) or src[self.pos] in "-.:"):
            self.pos += 1
        name = src[begin:self.pos]
        if not name:
            raise CompileError.at("Expected a markup tag name", src, start)
        return name

    def _tag_expression(self, name: str) -> str:
        if "-" in name or ":" in name:
            return _js_string(name)
        if "." in name or not name[0].islower():
            return name
        return _js_string(name)

    def _scan_element(self) -> str:
        src = self.src
        start = self.pos
        self.markup_positions.append(start)
        self.pos += 1
        self._skip_markup_whitespace()

        if src[self.pos:self.pos + 1] == ">":
            self.pos += 1
            children = self._scan_children(None, start)
            return self._emit(self.binding.fragment, [], children)

        name = self._read_markup_name(start)
        attributes: List[Tuple[Optional[str], str]] = []

        while True:
            self._skip_markup_whitespace()
            if self.pos >= len(src):
                raise CompileError.at(f"Unterminated markup tag <{name}>", src, start)
            ch = src[self.pos]
            if ch == "/":
                if src.startswith("/>", self.pos):
                    self.pos += 2
                    return self._emit(self._tag_expression(name), attributes, [])
                raise CompileError.at(f"Expected '>' to close <{name}>", src, self.pos)
            if ch == ">":
                self.pos += 1
                break
            if ch == "{":
                brace = self.pos
                self.pos += 1
                self._skip_markup_whitespace()
                if not src.startswith("...", self.pos):
                    raise CompileError.at("Expected '...' in spread attribute", src, self.pos)
                self.pos += 3
                attributes.append((None, self._scan_container(brace).strip()))
                continue
            if not is_identifier_start(ch):
                raise CompileError.at(f"Unexpected character '{ch}' in <{name}>", src, self.pos)

            key_start = self.pos
            while self.pos < len(src) and (is_identifier_char(src[self.pos]) or src[self.pos] in "-:"):
                self.pos += 1
            key = src[key_start:self.pos]
            self._skip_markup_whitespace()
            if src[self.pos:self.pos + 1] != "=":
                attributes.append((key, "true"))
                continue
            self.pos += 1
            self._skip_markup_whitespace()
            attributes.append((key, self._read_attribute_value(name, start)))

        children = self._scan_children(name, start)
        return self._emit(self._tag_expression(name), attributes, children)

    def _read_attribute_value(self, name: str, start: int) -> str:
        src = self.src
        ch = src[self.pos:self.pos + 1]
        if ch in ("\"", "'"):
            end = src.find(ch, self.pos + 1)
            if end == -1:
                raise CompileError.at("Unterminated string constant", src, self.pos)
            value = src[self.pos + 1:end]
            self.pos = end + 1
            return _js_string(html.unescape(value))
        if ch == "{":
            brace = self.pos
            self.pos += 1
            code = self._scan_container(brace)
            if not _COMMENTS_RE.sub("", code).strip():
                raise CompileError.at(
                    "Markup attributes must only be assigned a non-empty expression", src, brace
                )
            return code.strip()
        if ch == "<":
            return self._scan_element()
        raise CompileError.at(f"Expected an attribute value in <{name}>", src, self.pos)

    def _scan_children(self, name: Optional[str], start: int) -> List[str]:
        src = self.src
        label = name or ""
        children: List[str] = []

        while True:
            if self.pos >= len(src):
                raise CompileError.at(f"Unterminated markup contents for <{label}>", src, start)
            ch = src[self.pos]
            if ch == "<":
                if src.startswith("</", self.pos):
                    close_start = self.pos
                    self.pos += 2
                    self._skip_markup_whitespace()
                    closing_name = None
                    if src[self.pos:self.pos + 1] != ">":
                        closing_name = self._read_markup_name(close_start)
                        self._skip_markup_whitespace()
                    if src[self.pos:self.pos + 1] != ">":
                        raise CompileError.at("Expected '>' in closing tag", src, self.pos)
                    self.pos += 1
                    if closing_name != name:
                        raise CompileError.at(
                            f"Expected corresponding closing tag for <{label}>", src, close_start
                        )
                    return children
                children.append(self._scan_element())
            elif ch == "{":
                brace = self.pos
                self.pos += 1
                code = self._scan_container(brace)
                if _COMMENTS_RE.sub("", code).strip():
                    children.append(code.strip())
            else:
                end = self.pos
                while end < len(src) and src[end] not in "<{":
                    end += 1
                text = clean_markup_text(src[self.pos:end])
                self.pos = end
                if text:
                    children.append(_js_string(text))

    def _emit(self, tag: str, attributes: List[Tuple[Optional[str], str]], children: List[str]) -> str:
        args = [tag, self._props(attributes)] + children
        return f"{self.binding.pragma}({', '.join(args)})"

    def _props(self, attributes: List[Tuple[Optional[str], str]]) -> str:
        if not attributes:
            return "null"

        segments: List[str] = []
        pending: List[str] = []
        for key, value in attributes:
            if key is None:
                if pending:
                    segments.append("{" + ", ".join(pending) + "}")
                    pending = []
                segments.append(value)
            else:
                pending.append(f"{_property_key(key)}: {value}")
        if pending:
            segments.append("{" + ", ".join(pending) + "}")

        if len(segments) == 1 and all(key is not None for key, _ in attributes):
            return segments[0]
        return "Object.assign({}, " + ", ".join(segments) + ")"


def find_markup(source: str) -> List[int]:
    """Return offsets of markup elements remaining in ``source``.

    Raises:
        CompileError: If the source cannot be scanned
    """
    scanner = MarkupScanner(source)
    scanner.scan()
    return scanner.markup_positions
