"""Runtime binding and script runtime protocol for execution validation."""

from dataclasses import dataclass, field
from typing import Optional, Protocol, Tuple

# Hooks that AI-generated components routinely use without importing
FRAMEWORK_PRIMITIVES: Tuple[str, ...] = (
    "useState",
    "useEffect",
    "useRef",
    "useMemo",
    "useCallback",
    "useContext",
    "useReducer",
    "useLayoutEffect",
    "useImperativeHandle",
    "useDebugValue",
    "useDeferredValue",
    "useTransition",
    "useId",
    "useSyncExternalStore",
    "useInsertionEffect",
)


@dataclass(frozen=True)
class RuntimeBinding:
    """Framework runtime injected into every evaluation context.

    The binding is supplied once by the host and passed explicitly to the
    transformer, the import repairer and the validator; nothing in kiln keeps
    a process-global framework instance.

    Attributes:
        name: Identifier the framework is bound to inside evaluated code
        package: Module specifier the framework is imported from
        primitives: Known primitive identifiers the repairer may import
        pragma: Call used for transformed markup elements
        fragment: Expression used for transformed markup fragments
        lifecycle_error_patterns: Substrings identifying the framework's own
            "used outside an active render cycle" errors
    """

    name: str = "React"
    package: str = "react"
    primitives: Tuple[str, ...] = FRAMEWORK_PRIMITIVES
    pragma: str = "React.createElement"
    fragment: str = "React.Fragment"
    lifecycle_error_patterns: Tuple[str, ...] = (
        "Invalid hook call",
        "outside of the body of a function component",
    )

    def is_lifecycle_error(self, message: Optional[str]) -> bool:
        if not message:
            return False
        return any(pattern in message for pattern in self.lifecycle_error_patterns)


@dataclass(frozen=True)
class ExecutionReport:
    """Raw outcome of running transformed code in a script runtime.

    Attributes:
        phase: Last phase reached: "compile", "instantiate", "render" or "done"
        component_detected: Whether the body returned a callable component
        error_name: JS error constructor name if a phase threw
        error_message: JS error message if a phase threw
        rendered: Kind of value the component returned ("element", "text",
                  "list", "empty" or a JS typeof name)
    """

    phase: str
    component_detected: bool = False
    error_name: Optional[str] = None
    error_message: Optional[str] = None
    rendered: Optional[str] = None


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of the validation stage. Ephemeral, never persisted.

    Attributes:
        valid: Whether the code passed validation
        reason: Why validation did not pass (or a note on a syntactic pass)
        component_detected: Whether a callable component was found
        expected: True when the failure is an expected, classified runtime
                  error (e.g. a hook guard tripped outside a render cycle)
        phase: Phase the failure occurred in, if any
    """

    valid: bool
    reason: Optional[str] = None
    component_detected: bool = False
    expected: bool = False
    phase: Optional[str] = None
    details: dict = field(default_factory=dict)


class ScriptRuntime(Protocol):
    """Isolated evaluation context for transformed inline code.

    A runtime evaluates a transformed function body with the framework
    binding injected, calls the returned component once with empty props
    and reports what happened. Each call must use a fresh scope.

    Example:
        class FakeRuntime:
            def execute_component(self, code: str) -> ExecutionReport:
                return ExecutionReport(phase="done", component_detected=True,
                                       rendered="element")
    """

    def execute_component(self, code: str) -> ExecutionReport:
        """Evaluate code and report the furthest phase reached."""
        ...
