"""
StatementBuilder - Fluent composer of parameterized Cypher statements.

Clauses are appended in call order and assembled by build() into a single
Statement. Values never enter the query text: they are bound as `$name`
parameters and passed alongside.

License: MIT
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import structlog

from codegraph_db.exceptions import EmptyStatementError, InvalidClauseError, MissingParameterError
from codegraph_db.models import (
    PARAMETER_NAME,
    Clause,
    ClauseKind,
    Connector,
    Statement,
    referenced_parameters,
)

logger = structlog.get_logger(__name__)

PATTERN_KINDS = frozenset({ClauseKind.MATCH, ClauseKind.OPTIONAL_MATCH, ClauseKind.CREATE})
LITERAL_RETURN_KINDS = frozenset(
    {ClauseKind.RETURN, ClauseKind.RETURN_DISTINCT, ClauseKind.ORDER_BY, ClauseKind.LIMIT}
)
# Consecutive clauses of these kinds are folded into one, joined by ", "
LIST_KINDS = frozenset(
    {ClauseKind.SET, ClauseKind.RETURN, ClauseKind.RETURN_DISTINCT, ClauseKind.ORDER_BY}
)

_RELATIONSHIP = re.compile(r"-\[.*?\]-")
_VARIABLE_LENGTH = re.compile(r"\*\d*\.\.\d*")
_NODE = re.compile(r"\([^)]*\)")


def pattern_complexity(pattern: str) -> int:
    """Rough cost of a graph pattern: nodes, relationships and variable-length paths."""
    return (
        1
        + 2 * len(_RELATIONSHIP.findall(pattern))
        + 5 * len(_VARIABLE_LENGTH.findall(pattern))
        + len(_NODE.findall(pattern))
    )


def statement_complexity(clauses: Iterable[Clause]) -> int:
    """Summed pattern complexity of the MATCH / OPTIONAL MATCH / CREATE clauses."""
    return sum(pattern_complexity(c.text) for c in clauses if c.kind in PATTERN_KINDS)


class StatementBuilder:
    """
    Stateful, chainable statement builder.

    build() does not consume state: calling it repeatedly on an unchanged
    builder yields equal statements. reset() clears everything for reuse.

    Example:
        ```python
        statement = (
            StatementBuilder()
            .match("(e:CodeEntity)")
            .where("e.type = $entityType", {"entityType": "function"})
            .return_(["e.id", "e.name"])
            .order_by("e.name")
            .limit(10)
            .build()
        )
        # statement.query ==
        #   "MATCH (e:CodeEntity)\nWHERE e.type = $entityType\n"
        #   "RETURN e.id, e.name\nORDER BY e.name ASC\nLIMIT 10"
        ```
    """

    def __init__(self) -> None:
        self._clauses: List[Clause] = []
        self._parameters: Dict[str, Any] = {}

    def reset(self) -> "StatementBuilder":
        self._clauses = []
        self._parameters = {}
        return self

    # ------------------------------------------------------------------
    # Clauses
    # ------------------------------------------------------------------

    def match(self, pattern: str) -> "StatementBuilder":
        return self._append(ClauseKind.MATCH, self._require_text(pattern, "Match pattern"))

    def optional_match(self, pattern: str) -> "StatementBuilder":
        return self._append(
            ClauseKind.OPTIONAL_MATCH, self._require_text(pattern, "Optional match pattern")
        )

    def where(
        self,
        predicate: str,
        bindings: Optional[Dict[str, Any]] = None,
        connector: Union[str, Connector] = Connector.AND,
    ) -> "StatementBuilder":
        """
        Add a predicate. Predicates accumulate into one WHERE clause joined by
        their connector. A WHERE given before any MATCH/CREATE is attached
        right after the first one.
        """
        text = self._require_text(predicate, "Where predicate")
        try:
            connector = Connector(str(getattr(connector, "value", connector)).upper())
        except ValueError:
            raise InvalidClauseError(f"Invalid connector: {connector}. Must be AND or OR")
        staged = self._stage(bindings)
        return self._append(ClauseKind.WHERE, text, connector=connector, staged=staged)

    def or_where(self, predicate: str, bindings: Optional[Dict[str, Any]] = None) -> "StatementBuilder":
        return self.where(predicate, bindings, Connector.OR)

    def create(self, pattern: str, bindings: Optional[Dict[str, Any]] = None) -> "StatementBuilder":
        text = self._require_text(pattern, "Create pattern")
        staged = self._stage(bindings)
        return self._append(ClauseKind.CREATE, text, staged=staged)

    def set_properties(self, target_var: str, properties: Dict[str, Any]) -> "StatementBuilder":
        """Set each property of ``target_var`` from a generated parameter."""
        if not isinstance(target_var, str) or not PARAMETER_NAME.match(target_var):
            raise InvalidClauseError(f"Invalid SET target variable: {target_var!r}")
        if not isinstance(properties, dict) or not properties:
            raise InvalidClauseError("SET properties must be a non-empty dict")

        staged = dict(self._parameters)
        assignments = []
        for key, value in properties.items():
            if not isinstance(key, str) or not PARAMETER_NAME.match(key):
                raise InvalidClauseError(f"Invalid property name: {key!r}")
            param = _fresh_parameter_name(staged, f"{target_var}_{key}", value)
            _bind(staged, param, value)
            assignments.append(f"{target_var}.{key} = ${param}")

        return self._append(ClauseKind.SET, ", ".join(assignments), staged=staged)

    def merge_properties(self, target_var: str, param_name: str, properties: Any) -> "StatementBuilder":
        """Merge a whole property map bound as one parameter (``SET e += $props``)."""
        if not isinstance(target_var, str) or not PARAMETER_NAME.match(target_var):
            raise InvalidClauseError(f"Invalid SET target variable: {target_var!r}")
        staged = self._stage({param_name: properties})
        return self._append(ClauseKind.SET, f"{target_var} += ${param_name}", staged=staged)

    def return_(self, fields: Union[str, Sequence[str]]) -> "StatementBuilder":
        return self._append(ClauseKind.RETURN, ", ".join(self._field_list(fields)))

    def return_distinct(self, fields: Union[str, Sequence[str]]) -> "StatementBuilder":
        return self._append(ClauseKind.RETURN_DISTINCT, ", ".join(self._field_list(fields)))

    def order_by(self, field: str, direction: str = "ASC") -> "StatementBuilder":
        text = self._require_text(field, "Order by field")
        normalized = str(direction).upper()
        if normalized not in ("ASC", "DESC"):
            raise InvalidClauseError(f"Invalid direction: {direction}. Must be ASC or DESC")
        return self._append(ClauseKind.ORDER_BY, f"{text} {normalized}")

    def order_by_desc(self, field: str) -> "StatementBuilder":
        return self.order_by(field, "DESC")

    def limit(self, count: int) -> "StatementBuilder":
        """Set the row limit. A later call replaces an earlier one."""
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise InvalidClauseError(f"Limit must be a positive integer, got {count!r}")
        self._clauses = [c for c in self._clauses if c.kind is not ClauseKind.LIMIT]
        return self._append(ClauseKind.LIMIT, str(count))

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def clauses(self) -> List[Clause]:
        return list(self._clauses)

    @property
    def parameters(self) -> Dict[str, Any]:
        return dict(self._parameters)

    @property
    def clause_count(self) -> int:
        return len(self._clauses)

    @property
    def estimated_complexity(self) -> int:
        return statement_complexity(self._clauses)

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def build(self) -> Statement:
        """
        Assemble the clauses into a Statement.

        Raises:
            EmptyStatementError: No MATCH/OPTIONAL MATCH/CREATE clause and the
                statement is not a pure literal RETURN
            InvalidClauseError: RETURN and RETURN DISTINCT are mixed
            MissingParameterError: A `$token` has no binding
        """
        kinds = {c.kind for c in self._clauses}
        if not self._clauses:
            raise EmptyStatementError("Statement has no clauses")
        if not kinds & PATTERN_KINDS and not kinds <= LITERAL_RETURN_KINDS:
            raise EmptyStatementError()
        if ClauseKind.RETURN in kinds and ClauseKind.RETURN_DISTINCT in kinds:
            raise InvalidClauseError("RETURN and RETURN DISTINCT cannot be combined")

        for clause in self._clauses:
            for name in clause.parameter_names:
                if name not in self._parameters:
                    raise MissingParameterError(
                        f"Unresolved query parameter: ${name}", parameter=name
                    )

        ordered = self._ordered_clauses()
        lines = [self._render_group(group) for group in self._group(ordered)]

        return Statement(
            query="\n".join(lines),
            parameters=self._parameters,
            clauses=tuple(ordered),
        )

    def _ordered_clauses(self) -> List[Clause]:
        """Move WHERE clauses issued before the first pattern clause right after it."""
        deferred: List[Clause] = []
        ordered: List[Clause] = []
        seen_pattern = False
        for clause in self._clauses:
            if not seen_pattern and clause.kind is ClauseKind.WHERE:
                deferred.append(clause)
                continue
            ordered.append(clause)
            if not seen_pattern and clause.kind in PATTERN_KINDS:
                seen_pattern = True
                ordered.extend(deferred)
                deferred = []
        return ordered + deferred

    @staticmethod
    def _group(clauses: Iterable[Clause]) -> List[List[Clause]]:
        groups: List[List[Clause]] = []
        for clause in clauses:
            foldable = clause.kind is ClauseKind.WHERE or clause.kind in LIST_KINDS
            if groups and foldable and groups[-1][0].kind is clause.kind:
                groups[-1].append(clause)
            else:
                groups.append([clause])
        return groups

    @staticmethod
    def _render_group(group: List[Clause]) -> str:
        kind = group[0].kind
        if kind is ClauseKind.WHERE:
            parts = [group[0].text]
            parts.extend(f"{c.connector.value} {c.text}" for c in group[1:])
            return f"WHERE {' '.join(parts)}"
        return f"{kind.value} {', '.join(c.text for c in group)}"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _append(
        self,
        kind: ClauseKind,
        text: str,
        connector: Connector = Connector.AND,
        staged: Optional[Dict[str, Any]] = None,
    ) -> "StatementBuilder":
        """Add a clause and commit its staged bindings together."""
        clause = Clause(
            kind=kind,
            text=text,
            parameter_names=tuple(referenced_parameters(text)),
            connector=connector,
        )
        if staged is not None:
            self._parameters = staged
        self._clauses.append(clause)
        logger.debug("clause_added", kind=kind.name, params=list(clause.parameter_names))
        return self

    def _stage(self, bindings: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Merge bindings into a copy of the current parameters.

        Raises:
            InvalidClauseError: On a bad name or a conflicting value; the
                builder is left untouched
        """
        staged = dict(self._parameters)
        if bindings is None:
            return staged
        if not isinstance(bindings, dict):
            raise InvalidClauseError("Bindings must be a dict")
        for name, value in bindings.items():
            _bind(staged, name, value)
        return staged

    @staticmethod
    def _require_text(text: Any, what: str) -> str:
        if not isinstance(text, str) or not text.strip():
            raise InvalidClauseError(f"{what} must be a non-empty string")
        return text.strip()

    @staticmethod
    def _field_list(fields: Union[str, Sequence[str]]) -> List[str]:
        items = [fields] if isinstance(fields, str) else list(fields or [])
        if not items or not all(isinstance(f, str) and f.strip() for f in items):
            raise InvalidClauseError("Return fields must be non-empty strings")
        return [f.strip() for f in items]


def _bind(parameters: Dict[str, Any], name: str, value: Any) -> None:
    if not isinstance(name, str) or not PARAMETER_NAME.match(name):
        raise InvalidClauseError(f"Invalid parameter name: {name!r}")
    if name in parameters and parameters[name] != value:
        raise InvalidClauseError(f"Parameter {name} is already bound to a different value")
    parameters[name] = value


def _fresh_parameter_name(parameters: Dict[str, Any], base: str, value: Any) -> str:
    name, index = base, 1
    while name in parameters and parameters[name] != value:
        name = f"{base}_{index}"
        index += 1
    return name
