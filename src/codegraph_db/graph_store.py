"""
Collaborator interfaces consumed by the query layer.

The graph store and the optional query optimizer are external; only these
narrow protocols are relied upon.

License: MIT
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence, runtime_checkable


@runtime_checkable
class GraphStore(Protocol):
    """
    Anything that executes query text against a property graph.

    ``supports_native_parameters`` is optional; stores that lack it are
    treated as supporting bind parameters.
    """

    async def query(
        self, text: str, parameters: Dict[str, Any]
    ) -> Sequence[Mapping[str, Any]]:
        ...


@dataclass
class OptimizationResult:
    """Alternative plan proposed by an optimizer."""

    optimized_query: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    estimated_improvement: float = 0.0  # percent
    hints: Optional[list] = None


@runtime_checkable
class QueryOptimizer(Protocol):
    """Optional collaborator offering rewritten query plans."""

    async def optimize_query(
        self, text: str, parameters: Dict[str, Any], metadata: Dict[str, Any]
    ) -> OptimizationResult:
        ...
