"""
Exception hierarchy for the codegraph query layer.

Every error carries an error code, a details dict and a correlation ID so it
can be logged and surfaced without leaking raw query text.

License: MIT
"""

import uuid
from typing import Any, Dict, List, Optional


class CodeGraphError(Exception):
    """
    Base exception for all codegraph errors.

    Attributes:
        message: Human-readable error message
        error_code: Programmatic error code (e.g., "VAL_001")
        details: Additional context (dict)
        correlation_id: UUID for tracing across layers
        original_exception: Wrapped exception (if any)
        is_transient: Whether error is transient (retryable)
    """

    def __init__(
        self,
        message: str,
        error_code: str = "ERR_UNKNOWN",
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        original_exception: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.original_exception = original_exception
        self.is_transient = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "correlation_id": self.correlation_id,
            "original_error": str(self.original_exception) if self.original_exception else None,
        }


# === Validation Exceptions ===


class ValidationError(CodeGraphError):
    """
    Raised when input validation fails.

    Error Codes:
        VAL_000: Generic validation failure (see details["errors"])

    Not transient (user input errors should not be retried).
    """

    def __init__(self, message: str, error_code: str = "VAL_000", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)


class MissingParameterError(ValidationError):
    """
    Raised when a required input is absent.

    Always raised before any I/O happens.
    """

    def __init__(
        self,
        message: str,
        parameter: Optional[str] = None,
        missing: Optional[List[str]] = None,
        **kwargs,
    ):
        super().__init__(message=message, error_code="VAL_001", **kwargs)
        self.parameter = parameter
        self.missing = list(missing) if missing else ([parameter] if parameter else [])
        self.details.setdefault("missing", self.missing)


class InvalidClauseError(ValidationError):
    """Raised when a StatementBuilder method is called with invalid input."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_code="VAL_002", **kwargs)


class EmptyStatementError(ValidationError):
    """Raised when compiling a statement with no MATCH or CREATE clause."""

    def __init__(self, message: str = "Statement has no MATCH or CREATE clause", **kwargs):
        super().__init__(message=message, error_code="VAL_003", **kwargs)


class ParameterSerializationError(ValidationError):
    """Raised when a parameter value cannot be rendered as a query literal."""

    def __init__(self, message: str, parameter: Optional[str] = None, **kwargs):
        super().__init__(message=message, error_code="VAL_004", **kwargs)
        self.parameter = parameter


class UnsupportedScopeError(ValidationError):
    """Raised when a factory discriminant (scope, query kind) is not recognized."""

    def __init__(self, message: str, scope: Any = None, **kwargs):
        super().__init__(message=message, error_code="VAL_005", **kwargs)
        self.scope = scope


# === Template Exceptions ===


class TemplateValidationError(ValidationError):
    """Raised when a template fails its registration-time dry run."""

    def __init__(self, message: str, template_name: Optional[str] = None, **kwargs):
        super().__init__(message=message, error_code="TPL_001", **kwargs)
        self.template_name = template_name


class TemplateNotFoundError(CodeGraphError):
    """Raised when a template name is not registered."""

    def __init__(self, template_name: str, **kwargs):
        super().__init__(
            message=f"Template not found: {template_name}",
            error_code="TPL_002",
            details={"template": template_name},
            **kwargs,
        )
        self.template_name = template_name


# === Database Exceptions ===


class DatabaseError(CodeGraphError):
    """Base exception for graph store operations."""

    def __init__(self, message: str, error_code: str = "DB_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)


class ConnectionError(DatabaseError):
    """
    Raised when the graph store cannot be reached.

    Transient (network issues are retryable).
    """

    def __init__(self, message: str, error_code: str = "CONN_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)
        self.is_transient = True


class QueryError(DatabaseError):
    """Raised when the graph store rejects a query."""

    def __init__(self, message: str, error_code: str = "QUERY_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)


class QueryExecutionError(DatabaseError):
    """
    Wraps a graph store failure with execution context.

    The query text is only attached when the caller asked for it, since it may
    contain sensitive literals.
    """

    def __init__(
        self,
        message: str,
        query_name: Optional[str] = None,
        elapsed_ms: float = 0.0,
        parameter_keys: Optional[List[str]] = None,
        query_text: Optional[str] = None,
        **kwargs,
    ):
        details = {
            "query_name": query_name,
            "elapsed_ms": round(elapsed_ms, 3),
            "parameter_keys": list(parameter_keys or []),
        }
        if query_text is not None:
            details["query_text"] = query_text
        super().__init__(message=message, error_code="QUERY_005", details=details, **kwargs)
        self.query_name = query_name
        self.elapsed_ms = elapsed_ms
        self.parameter_keys = list(parameter_keys or [])
        self.query_text = query_text
        original = kwargs.get("original_exception")
        self.is_transient = bool(getattr(original, "is_transient", False))


# === Warnings ===


class UnknownParameterWarning(UserWarning):
    """Non-fatal: a binding was supplied that the query never references."""
