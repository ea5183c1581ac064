"""
TechnicalDebtFactory - Technical debt analysis queries.

Discriminated by scope:
    module   - entities whose file path contains ``target``
    project  - every debt item of the requested types, grouped by type
    specific - one entity by exact name, with dependency counts and a risk rating

License: MIT
"""

from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Union

from codegraph_core.queries.base import BaseQueryFactory
from codegraph_db.exceptions import UnsupportedScopeError
from codegraph_db.models import Statement


class DebtScope(str, Enum):
    MODULE = "module"
    PROJECT = "project"
    SPECIFIC = "specific"


# Scopes that need a target
TARGETED_SCOPES = frozenset({DebtScope.MODULE, DebtScope.SPECIFIC})

MODULE_DEBT_QUERY = """\
MATCH (e:CodeEntity)
WHERE e.filePath CONTAINS $target
OPTIONAL MATCH (e)-[:HAS_ISSUE]->(debt:TechnicalDebt)
WHERE debt.type IN $debtTypes
RETURN $target AS module,
       collect(DISTINCT {name: e.name, type: e.type, complexity: e.complexity}) AS entities,
       collect(DISTINCT {type: debt.type, severity: debt.severity, description: debt.description,
                         entity: e.name, impact: debt.impact}) AS debts"""

PROJECT_DEBT_QUERY = """\
MATCH (debt:TechnicalDebt)
WHERE debt.type IN $debtTypes
OPTIONAL MATCH (e:CodeEntity)-[:HAS_ISSUE]->(debt)
WITH debt, e,
     CASE debt.severity WHEN 'high' THEN 3 WHEN 'medium' THEN 2 WHEN 'low' THEN 1 ELSE 0 END AS severityScore
RETURN debt.type AS type,
       count(DISTINCT debt) AS debtCount,
       count(DISTINCT e) AS affectedEntities,
       collect(DISTINCT e.filePath) AS files,
       avg(severityScore) AS avgSeverity,
       max(severityScore) AS worstSeverity
ORDER BY debtCount DESC"""

SPECIFIC_DEBT_QUERY = """\
MATCH (e:CodeEntity {name: $target})
OPTIONAL MATCH (e)-[:HAS_ISSUE]->(debt:TechnicalDebt)
WHERE debt.type IN $debtTypes
WITH e, collect(DISTINCT debt) AS debtNodes
OPTIONAL MATCH (e)-[:DEPENDS_ON]->(dep:CodeEntity)
WITH e, debtNodes, count(DISTINCT dep) AS dependencies
OPTIONAL MATCH (dependent:CodeEntity)-[:DEPENDS_ON]->(e)
WITH e, debtNodes, dependencies, count(DISTINCT dependent) AS dependents
RETURN e.name AS name, e.type AS type, e.filePath AS filePath, e.complexity AS complexity,
       dependencies, dependents,
       [d IN debtNodes | {type: d.type, severity: d.severity, description: d.description,
                          impact: d.impact, estimatedEffort: d.estimatedEffort}] AS debts,
       size(debtNodes) AS debtCount,
       CASE WHEN size(debtNodes) = 0 THEN 'low'
            WHEN size(debtNodes) <= 2 THEN 'medium'
            ELSE 'high' END AS riskAssessment"""


def classify_risk(debt_count: int) -> str:
    """0 debts -> low, 1-2 -> medium, 3 or more -> high."""
    if debt_count < 0:
        raise ValueError(f"debt_count cannot be negative, got {debt_count}")
    if debt_count == 0:
        return "low"
    if debt_count <= 2:
        return "medium"
    return "high"


class TechnicalDebtFactory(BaseQueryFactory):
    """
    Builds technical debt queries for a module, the whole project or one entity.

    Example:
        ```python
        factory = (
            TechnicalDebtFactory()
            .with_scope("module")
            .with_target("src/handlers")
            .with_debt_types(["complexity", "duplication"])
        )
        if factory.validate().is_valid:
            statement = factory.build()
        ```
    """

    query_type = "technical-debt"
    description = "Technical debt detection and analysis"

    def __init__(self) -> None:
        self.scope: Optional[Union[str, DebtScope]] = None
        self.target: Optional[str] = None
        self.debt_types: List[str] = []

    def with_scope(self, scope: Union[str, DebtScope]) -> "TechnicalDebtFactory":
        self.scope = scope
        return self

    def with_target(self, target: Optional[str]) -> "TechnicalDebtFactory":
        self.target = target
        return self

    def with_debt_types(self, debt_types: Union[str, Sequence[str]]) -> "TechnicalDebtFactory":
        if isinstance(debt_types, str):
            debt_types = [debt_types]
        self.debt_types = list(debt_types or [])
        return self

    def _resolved_scope(self) -> Optional[DebtScope]:
        try:
            return DebtScope(getattr(self.scope, "value", self.scope))
        except ValueError:
            return None

    def _collect_errors(self) -> List[str]:
        errors = []
        scope = self._resolved_scope()

        if self.scope is None:
            errors.append("Scope is required for technical debt analysis")
        elif scope is None:
            errors.append(f"Unknown debt analysis scope: {self.scope}")

        if scope in TARGETED_SCOPES and not self._has_target():
            errors.append(f"Target is required for {scope.value} scope")

        if not self.debt_types:
            errors.append("At least one debt type must be specified")
        elif not all(isinstance(t, str) and t.strip() for t in self.debt_types):
            errors.append("Debt types must be non-empty strings")

        return errors

    def _missing_inputs(self) -> List[str]:
        missing = []
        if self._resolved_scope() in TARGETED_SCOPES and not self._has_target():
            missing.append("target")
        if not self.debt_types:
            missing.append("debt_types")
        return missing

    def _has_target(self) -> bool:
        return isinstance(self.target, str) and bool(self.target.strip())

    def build(self) -> Statement:
        """
        Raises:
            UnsupportedScopeError: If the scope is missing or not recognized
            MissingParameterError: If target or debt types are missing for the scope
        """
        scope = self._resolved_scope()
        if scope is None:
            raise UnsupportedScopeError(
                f"Unknown debt analysis scope: {self.scope}", scope=self.scope
            )
        self._ensure_valid()
        return self._builders()[scope]()

    def _builders(self) -> Dict[DebtScope, Callable[[], Statement]]:
        return {
            DebtScope.MODULE: lambda: Statement.from_text(
                MODULE_DEBT_QUERY, {"target": self.target, "debtTypes": self.debt_types}
            ),
            # project scope ignores target
            DebtScope.PROJECT: lambda: Statement.from_text(
                PROJECT_DEBT_QUERY, {"debtTypes": self.debt_types}
            ),
            DebtScope.SPECIFIC: lambda: Statement.from_text(
                SPECIFIC_DEBT_QUERY, {"target": self.target, "debtTypes": self.debt_types}
            ),
        }
