"""
codegraph_db - Query pipeline for the codegraph knowledge graph.

Provides statement composition, parameter binding and execution against an
external graph store.

License: MIT
"""

from codegraph_db.exceptions import (
    CodeGraphError,
    ConnectionError,
    DatabaseError,
    EmptyStatementError,
    InvalidClauseError,
    MissingParameterError,
    ParameterSerializationError,
    QueryError,
    QueryExecutionError,
    TemplateNotFoundError,
    TemplateValidationError,
    UnknownParameterWarning,
    UnsupportedScopeError,
    ValidationError,
)
from codegraph_db.executor import DEFAULT_IMPROVEMENT_THRESHOLD, QueryExecutor
from codegraph_db.graph_store import GraphStore, OptimizationResult, QueryOptimizer
from codegraph_db.models import (
    Clause,
    ClauseKind,
    Connector,
    OperationKind,
    QueryResult,
    Statement,
)
from codegraph_db.parameter_binder import ParameterBinder, format_literal
from codegraph_db.statement_builder import StatementBuilder

__all__ = [
    "StatementBuilder",
    "ParameterBinder",
    "format_literal",
    "QueryExecutor",
    "DEFAULT_IMPROVEMENT_THRESHOLD",
    "GraphStore",
    "QueryOptimizer",
    "OptimizationResult",
    "Clause",
    "ClauseKind",
    "Connector",
    "OperationKind",
    "Statement",
    "QueryResult",
    "CodeGraphError",
    "ValidationError",
    "MissingParameterError",
    "InvalidClauseError",
    "EmptyStatementError",
    "ParameterSerializationError",
    "UnsupportedScopeError",
    "TemplateValidationError",
    "TemplateNotFoundError",
    "DatabaseError",
    "ConnectionError",
    "QueryError",
    "QueryExecutionError",
    "UnknownParameterWarning",
]
