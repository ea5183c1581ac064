"""
Data models for codegraph_db module.

Defines the value objects that flow through the query pipeline:
Clause, Statement and QueryResult, plus the enums that tag them.

License: MIT
"""

import copy
import re
import types
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from codegraph_db.exceptions import MissingParameterError

# Parameter names bound into a statement
PARAMETER_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# `$name` tokens referenced inside query text
PARAMETER_TOKEN = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)")


class ClauseKind(str, Enum):
    """Tag of a single statement fragment."""

    MATCH = "MATCH"
    OPTIONAL_MATCH = "OPTIONAL MATCH"
    WHERE = "WHERE"
    CREATE = "CREATE"
    SET = "SET"
    RETURN = "RETURN"
    RETURN_DISTINCT = "RETURN DISTINCT"
    ORDER_BY = "ORDER BY"
    LIMIT = "LIMIT"


class Connector(str, Enum):
    """Boolean connector joining accumulated WHERE predicates."""

    AND = "AND"
    OR = "OR"


class OperationKind(str, Enum):
    """What a template does to the graph."""

    READ = "READ"
    WRITE = "WRITE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


def referenced_parameters(text: str) -> List[str]:
    """Return the distinct `$name` tokens of a query, in order of first use."""
    seen: Dict[str, None] = {}
    for match in PARAMETER_TOKEN.finditer(text):
        seen.setdefault(match.group(1), None)
    return list(seen)


@dataclass(frozen=True)
class Clause:
    """One fragment (MATCH, WHERE, RETURN, ...) of a statement."""

    kind: ClauseKind
    text: str
    parameter_names: Tuple[str, ...] = ()
    connector: Connector = Connector.AND


@dataclass(frozen=True)
class Statement:
    """
    A compiled, ready-to-run query: text plus parameter map.

    Statements are immutable: the parameter map is deep-copied on
    construction and exposed read-only.
    A Statement is itself buildable, so it can be handed to anything that
    accepts a builder.
    """

    query: str
    parameters: Mapping[str, Any] = field(default_factory=dict)
    clauses: Tuple[Clause, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "parameters", types.MappingProxyType(copy.deepcopy(dict(self.parameters)))
        )
        object.__setattr__(self, "clauses", tuple(self.clauses))

    @classmethod
    def from_text(cls, text: str, parameters: Optional[Dict[str, Any]] = None) -> "Statement":
        """
        Build a statement from raw parameterized query text.

        Only parameters referenced by the text are kept.

        Raises:
            MissingParameterError: If a `$token` has no binding
        """
        parameters = parameters or {}
        names = referenced_parameters(text)
        for name in names:
            if name not in parameters:
                raise MissingParameterError(
                    f"Unresolved query parameter: ${name}", parameter=name
                )
        return cls(query=text, parameters={name: parameters[name] for name in names})

    def build(self) -> "Statement":
        return self

    @property
    def parameter_keys(self) -> List[str]:
        return list(self.parameters)

    def to_dict(self) -> Dict[str, Any]:
        return {"query": self.query, "parameters": copy.deepcopy(dict(self.parameters))}


@dataclass
class QueryResult:
    """Result from statement execution."""

    rows: List[Dict[str, Any]]
    row_count: int
    execution_time_ms: float
    query_name: Optional[str] = None
    optimized: bool = False
    estimated_improvement: float = 0.0
