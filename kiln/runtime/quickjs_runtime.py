"""Script runtime backed by an embedded QuickJS engine."""

import json
import logging
from typing import Optional

import quickjs

from kiln.core.schema.runtime import ExecutionReport, RuntimeBinding
from kiln.runtime.shim import build_shim

logger = logging.getLogger(__name__)

DEFAULT_TIME_LIMIT = 2.0
DEFAULT_MEMORY_LIMIT = 64 * 1024 * 1024

# Runs the transformed body, then the component it returns, reporting the
# furthest phase reached as a JSON string.
_HARNESS_TEMPLATE = """
(function () {
  var report = { phase: "compile", component: false, errorName: null, errorMessage: null, rendered: null };
  function fail(error) {
    report.errorName = (error && error.name) || "Error";
    report.errorMessage = String((error && error.message) || error);
    return JSON.stringify(report);
  }
  function describe(node) {
    if (node === null || node === undefined || typeof node === "boolean") return "empty";
    if (typeof node === "string" || typeof node === "number") return "text";
    if (Array.isArray(node)) return "list";
    if (%(name)s.isValidElement(node)) return "element";
    return typeof node;
  }

  var factory;
  try {
    factory = new Function(%(name_literal)s, %(code)s);
  } catch (error) {
    return fail(error);
  }

  report.phase = "instantiate";
  var component;
  try {
    component = factory(%(name)s);
  } catch (error) {
    return fail(error);
  }
  if (typeof component !== "function") {
    report.phase = "done";
    report.rendered = null;
    return JSON.stringify(report);
  }

  report.component = true;
  report.phase = "render";
  var node;
  try {
    if (component.prototype && component.prototype.isReactComponent) {
      node = new component({}).render();
    } else {
      node = component({});
    }
  } catch (error) {
    return fail(error);
  }
  report.phase = "done";
  report.rendered = describe(node);
  return JSON.stringify(report);
})()
"""


class QuickJSRuntime:
    """Evaluates transformed inline components in a fresh QuickJS context.

    Every call builds a new context, defines the framework shim for the
    injected binding, and runs the harness; nothing leaks between calls.

    Example:
        >>> runtime = QuickJSRuntime()
        >>> report = runtime.execute_component("const C = () => null; return C;")
        >>> report.phase, report.rendered
        ('done', 'empty')
    """

    def __init__(
        self,
        binding: Optional[RuntimeBinding] = None,
        time_limit: float = DEFAULT_TIME_LIMIT,
        memory_limit: int = DEFAULT_MEMORY_LIMIT,
    ):
        self.binding = binding or RuntimeBinding()
        self.time_limit = time_limit
        self.memory_limit = memory_limit
        self._shim = build_shim(self.binding)

    def _harness(self, code: str) -> str:
        return _HARNESS_TEMPLATE % {
            "name": self.binding.name,
            "name_literal": json.dumps(self.binding.name),
            "code": json.dumps(code),
        }

    def execute_component(self, code: str) -> ExecutionReport:
        """Run a transformed body and its component once.

        Args:
            code: Transformed inline function body

        Returns:
            ExecutionReport describing the furthest phase reached

        Raises:
            quickjs.JSException: If the shim or harness itself fails to run
        """
        context = quickjs.Context()
        context.set_time_limit(self.time_limit)
        context.set_memory_limit(self.memory_limit)
        context.eval(self._shim)

        raw = context.eval(self._harness(code))
        data = json.loads(raw)
        report = ExecutionReport(
            phase=data["phase"],
            component_detected=bool(data["component"]),
            error_name=data.get("errorName"),
            error_message=data.get("errorMessage"),
            rendered=data.get("rendered"),
        )
        logger.debug(f"QuickJS execution reached phase '{report.phase}'")
        return report
