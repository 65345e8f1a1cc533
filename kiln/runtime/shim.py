"""Minimal framework runtime evaluated ahead of validated components.

The shim provides just enough of the framework surface for a component to
be instantiated and invoked once outside a render cycle: an element
constructor, fragments, context objects and hook stubs. Hook stubs throw
the framework's own "invalid hook call" error, the same guard the real
framework raises when a hook runs outside an active render.
"""

import json

from kiln.core.schema.runtime import RuntimeBinding

_SHIM_TEMPLATE = """
var %(name)s = (function () {
  var ELEMENT = "kiln.element";
  var FRAGMENT = "kiln.fragment";

  function createElement(type, props) {
    var merged = {};
    if (props) {
      for (var key in props) {
        if (Object.prototype.hasOwnProperty.call(props, key)) {
          merged[key] = props[key];
        }
      }
    }
    var children = Array.prototype.slice.call(arguments, 2);
    if (children.length === 1) {
      merged.children = children[0];
    } else if (children.length > 1) {
      merged.children = children;
    }
    return { $$typeof: ELEMENT, type: type, props: merged, key: merged.key === undefined ? null : merged.key };
  }

  function isValidElement(value) {
    return value !== null && typeof value === "object" && value.$$typeof === ELEMENT;
  }

  function guard(name) {
    return function () {
      throw new Error(
        "Invalid hook call. Hooks can only be called inside of the body of a function component. (" + name + ")"
      );
    };
  }

  function Component(props) { this.props = props; this.state = {}; }
  Component.prototype.isReactComponent = {};
  Component.prototype.setState = function () {};

  var api = {
    createElement: createElement,
    isValidElement: isValidElement,
    Fragment: FRAGMENT,
    StrictMode: FRAGMENT,
    Component: Component,
    PureComponent: Component,
    createContext: function (value) {
      return { Provider: FRAGMENT, Consumer: FRAGMENT, _currentValue: value };
    },
    memo: function (type) { return type; },
    forwardRef: function (render) { return render; },
    lazy: function (load) { return load; },
    Children: {
      toArray: function (children) { return [].concat(children === undefined ? [] : children); }
    }
  };

  var primitives = %(primitives)s;
  for (var i = 0; i < primitives.length; i++) {
    api[primitives[i]] = guard(primitives[i]);
  }
  return api;
})();
"""


def build_shim(binding: RuntimeBinding) -> str:
    """Render the shim script that defines the binding as a global."""
    return _SHIM_TEMPLATE % {
        "name": binding.name,
        "primitives": json.dumps(list(binding.primitives)),
    }
