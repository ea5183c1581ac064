"""
Helpers for templates: dummy parameters for registration dry runs, and
complexity / operation-kind inference for ad-hoc query strings.

License: MIT
"""

import re
from typing import Any, Callable, Dict, List

from codegraph_core.templates.models import MAX_COMPLEXITY, OPTIONAL_MARKER
from codegraph_db.models import OperationKind, Statement

_MATCH = re.compile(r"MATCH", re.IGNORECASE)
_RELATIONSHIP = re.compile(r"-\[.*?\]-")
_VARIABLE_LENGTH = re.compile(r"\*\d*\.\.\d*")

# Checked in order; first keyword group present wins
_OPERATION_KEYWORDS = [
    (OperationKind.WRITE, re.compile(r"\b(CREATE|MERGE)\b", re.IGNORECASE)),
    (OperationKind.DELETE, re.compile(r"\b(DELETE|REMOVE)\b", re.IGNORECASE)),
    (OperationKind.UPDATE, re.compile(r"\bSET\b", re.IGNORECASE)),
]


def dummy_value(name: str) -> Any:
    """Plausible stand-in value for a parameter, guessed from its name."""
    if "Id" in name:
        return "dummy-id-123"
    if "Type" in name:
        return "function"
    if "Name" in name:
        return "dummyName"
    if "Path" in name:
        return "/dummy/path.js"
    if "limit" in name or "Limit" in name:
        return 10
    if "confidence" in name or "Confidence" in name:
        return 0.8
    if "depth" in name or "Depth" in name:
        return 3
    if "properties" in name or "Properties" in name:
        return {}
    return "dummy-value"


def generate_dummy_parameters(parameters: List[str]) -> Dict[str, Any]:
    """Dummy values for every declared parameter, optional ones included."""
    dummies = {}
    for param in parameters:
        name = param[: -len(OPTIONAL_MARKER)] if param.endswith(OPTIONAL_MARKER) else param
        dummies[name] = dummy_value(name)
    return dummies


def estimate_query_complexity(query: str) -> int:
    """1 + MATCHes + 2 per relationship + 5 per variable-length path, capped at 10."""
    complexity = 1
    complexity += len(_MATCH.findall(query))
    complexity += 2 * len(_RELATIONSHIP.findall(query))
    complexity += 5 * len(_VARIABLE_LENGTH.findall(query))
    return min(complexity, MAX_COMPLEXITY)


def detect_operation_kind(query: str) -> OperationKind:
    for kind, pattern in _OPERATION_KEYWORDS:
        if pattern.search(query):
            return kind
    return OperationKind.READ


def raw_query_builder(query: str) -> Callable[[Dict[str, Any]], Statement]:
    """Template builder that binds parameters into a fixed query string."""

    def build(params: Dict[str, Any]) -> Statement:
        return Statement.from_text(query, params)

    return build
