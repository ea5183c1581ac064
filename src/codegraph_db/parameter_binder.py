"""
ParameterBinder - Binds query parameters natively or as escaped literals.

Two modes:
    - native (preferred): the store receives the query text untouched plus
      the parameter map, and binds values itself.
    - text substitution (fallback): every `$name` token is replaced by a
      literal. Strings are single-quoted with embedded quotes escaped by a
      backslash. This mode exists for stores without bind-parameter support
      and reproduces their expected literal format; it is not an injection
      defence and should not be chosen when native binding is available.

License: MIT
"""

import math
import warnings
from typing import Any, Dict, Optional, Set, Tuple

import structlog

from codegraph_db.exceptions import (
    MissingParameterError,
    ParameterSerializationError,
    UnknownParameterWarning,
)
from codegraph_db.models import PARAMETER_NAME, PARAMETER_TOKEN, referenced_parameters

logger = structlog.get_logger(__name__)


def format_literal(value: Any, name: str = "", _path: Optional[Set[int]] = None) -> str:
    """
    Render a parameter value as query literal text.

    Args:
        value: str, int, float, bool, None, list/tuple or dict (nested allowed)
        name: Parameter name, used in error messages
        _path: ids of containers on the current recursion path

    Returns:
        Literal text, e.g. ``'O\\'Brien'``, ``42``, ``[1, 'a']``, ``{k: true}``

    Raises:
        ParameterSerializationError: On circular references, non-finite floats
            or unsupported value types
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ParameterSerializationError(
                f"Parameter {name} is not a finite number: {value}", parameter=name
            )
        return repr(value)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace("'", "\\'")
        return f"'{escaped}'"

    if isinstance(value, (list, tuple, dict)):
        path = _path if _path is not None else set()
        if id(value) in path:
            raise ParameterSerializationError(
                f"Parameter {name} contains a circular reference", parameter=name
            )
        path.add(id(value))
        try:
            if isinstance(value, dict):
                items = []
                for key, item in value.items():
                    if not isinstance(key, str) or not PARAMETER_NAME.match(key):
                        raise ParameterSerializationError(
                            f"Parameter {name} has an invalid map key: {key!r}", parameter=name
                        )
                    items.append(f"{key}: {format_literal(item, name, path)}")
                return "{" + ", ".join(items) + "}"
            return "[" + ", ".join(format_literal(item, name, path) for item in value) + "]"
        finally:
            path.discard(id(value))

    raise ParameterSerializationError(
        f"Unsupported parameter type for {name}: {type(value).__name__}", parameter=name
    )


class ParameterBinder:
    """
    Turns ``(query_text, bindings)`` into what the graph store receives.

    Example:
        ```python
        binder = ParameterBinder(native_parameters=False)
        text, params = binder.render(
            "MATCH (e:CodeEntity) WHERE e.name = $name RETURN e",
            {"name": "O'Brien"},
        )
        # text == "MATCH (e:CodeEntity) WHERE e.name = 'O\\'Brien' RETURN e"
        # params == {}
        ```
    """

    def __init__(self, native_parameters: bool = True) -> None:
        self.native_parameters = native_parameters

    def bind(self, name: str, value: Any) -> str:
        """
        Return the token that stands for ``value`` in query text.

        Native mode yields ``$name``; text mode yields the escaped literal.
        """
        if not isinstance(name, str) or not PARAMETER_NAME.match(name):
            raise ParameterSerializationError(f"Invalid parameter name: {name!r}", parameter=str(name))
        if self.native_parameters:
            return f"${name}"
        return format_literal(value, name)

    def render(
        self, template_text: str, bindings: Optional[Dict[str, Any]] = None
    ) -> Tuple[str, Dict[str, Any]]:
        """
        Resolve every `$name` token of ``template_text`` against ``bindings``.

        Returns:
            Tuple of (query_text, parameters_dict). In text mode the
            parameters dict is empty because all values were inlined.

        Raises:
            MissingParameterError: Naming the first unresolved token; nothing
                is substituted in that case
            ParameterSerializationError: If a value cannot be rendered
        """
        bindings = bindings or {}
        names = referenced_parameters(template_text)

        for name in names:
            if name not in bindings:
                raise MissingParameterError(f"Unresolved query parameter: ${name}", parameter=name)

        unknown = [key for key in bindings if key not in names]
        if unknown:
            self._report_unknown(unknown)

        if self.native_parameters:
            return template_text, dict(bindings)

        # All literals are rendered before any substitution
        literals = {name: format_literal(bindings[name], name) for name in names}
        rendered = PARAMETER_TOKEN.sub(lambda m: literals[m.group(1)], template_text)
        return rendered, {}

    def _report_unknown(self, keys: list) -> None:
        message = f"Parameters supplied but never referenced: {', '.join(keys)}"
        warnings.warn(message, UnknownParameterWarning, stacklevel=3)
        logger.warning("unknown_parameters", keys=keys, native=self.native_parameters)
