"""
Shared pieces of the domain query factories.

License: MIT
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from codegraph_db.exceptions import MissingParameterError, ValidationError
from codegraph_db.models import Statement


@dataclass
class ValidationResult:
    """Outcome of a factory's validate(): every problem found, not just the first."""

    is_valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"is_valid": self.is_valid, "errors": list(self.errors)}


class BaseQueryFactory:
    """
    Base class for factories that turn typed requests into Statements.

    Subclasses expose fluent ``with_*`` setters, ``validate()`` and
    ``build()``. A factory never talks to the store.
    """

    query_type: str = "base"
    description: str = ""

    def validate(self) -> ValidationResult:
        errors = self._collect_errors()
        return ValidationResult(is_valid=not errors, errors=errors)

    def build(self) -> Statement:
        raise NotImplementedError

    def _collect_errors(self) -> List[str]:
        return []

    def _missing_inputs(self) -> List[str]:
        """Names of required inputs that are absent."""
        return []

    def _ensure_valid(self) -> None:
        """
        Raise before building when inputs are unusable.

        Raises:
            MissingParameterError: If required inputs are absent
            ValidationError: For any other validation failure
        """
        result = self.validate()
        if result.is_valid:
            return
        message = f"{self.query_type} query validation failed: " + "; ".join(result.errors)
        missing = self._missing_inputs()
        if missing:
            raise MissingParameterError(
                message, missing=missing, details={"errors": result.errors}
            )
        raise ValidationError(message, details={"errors": result.errors})

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
