"""
Template registry data: definitions, usage statistics and execution results.

License: MIT
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from codegraph_db.models import OperationKind

# Suffix marking a declared template parameter as optional
OPTIONAL_MARKER = "?"

MIN_COMPLEXITY = 1
MAX_COMPLEXITY = 10


def split_parameters(parameters: List[str]) -> tuple:
    """Split declared names into (required, optional), stripping the ``?`` marker."""
    required = [p for p in parameters if not p.endswith(OPTIONAL_MARKER)]
    optional = [p[: -len(OPTIONAL_MARKER)] for p in parameters if p.endswith(OPTIONAL_MARKER)]
    return required, optional


@dataclass
class TemplateDefinition:
    """A named, reusable statement factory."""

    name: str
    builder: Callable[[Dict[str, Any]], Any]
    description: str = ""
    parameters: List[str] = field(default_factory=list)
    category: str = "custom"
    operation_kind: OperationKind = OperationKind.READ
    complexity: int = 1
    customizable: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def required_parameters(self) -> List[str]:
        return split_parameters(self.parameters)[0]

    @property
    def optional_parameters(self) -> List[str]:
        return split_parameters(self.parameters)[1]

    def summary(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "parameters": list(self.parameters),
            "required_parameters": self.required_parameters,
            "optional_parameters": self.optional_parameters,
            "complexity": self.complexity,
            "operation_kind": self.operation_kind.value,
        }


@dataclass
class UsageStatistics:
    """
    Per-template telemetry.

    Failed invocations count towards invocation_count and error_count but
    add nothing to total_execution_time_ms, so the average is taken over
    successful invocations only.
    """

    invocation_count: int = 0
    total_execution_time_ms: float = 0.0
    average_execution_time_ms: float = 0.0
    error_count: int = 0
    last_invoked_at: Optional[datetime] = None

    def record_success(self, execution_time_ms: float) -> None:
        self.invocation_count += 1
        self.last_invoked_at = datetime.now(timezone.utc)
        self.total_execution_time_ms += execution_time_ms
        self._refresh_average()

    def record_failure(self) -> None:
        self.invocation_count += 1
        self.error_count += 1
        self.last_invoked_at = datetime.now(timezone.utc)
        self._refresh_average()

    def _refresh_average(self) -> None:
        successes = self.invocation_count - self.error_count
        self.average_execution_time_ms = (
            self.total_execution_time_ms / successes if successes > 0 else 0.0
        )

    @property
    def success_rate(self) -> float:
        """Percentage of invocations that succeeded (0 when never invoked)."""
        if self.invocation_count == 0:
            return 0.0
        return (self.invocation_count - self.error_count) / self.invocation_count * 100

    def reset(self) -> None:
        self.invocation_count = 0
        self.total_execution_time_ms = 0.0
        self.average_execution_time_ms = 0.0
        self.error_count = 0
        self.last_invoked_at = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "invocation_count": self.invocation_count,
            "total_execution_time_ms": self.total_execution_time_ms,
            "average_execution_time_ms": self.average_execution_time_ms,
            "error_count": self.error_count,
            "last_invoked_at": self.last_invoked_at.isoformat() if self.last_invoked_at else None,
            "success_rate": self.success_rate,
        }


@dataclass
class TemplateExecutionResult:
    """What execute_template hands back to tool handlers."""

    rows: List[Dict[str, Any]]
    template: str
    execution_time_ms: float
    optimized: bool = False
    estimated_improvement: float = 0.0

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": self.rows,
            "template": self.template,
            "execution_time_ms": self.execution_time_ms,
            "optimized": self.optimized,
            "estimated_improvement": self.estimated_improvement,
            "row_count": self.row_count,
        }
