"""
QueryExecutor - Runs compiled statements against a graph store.

Pipeline per call: build() -> optional optimizer -> parameter binding ->
store query -> row normalization. Store failures are wrapped into
QueryExecutionError with context and re-raised, never swallowed.

License: MIT
"""

import inspect
import time
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog

from codegraph_db.exceptions import QueryExecutionError, ValidationError
from codegraph_db.graph_store import GraphStore, QueryOptimizer
from codegraph_db.models import QueryResult, Statement
from codegraph_db.parameter_binder import ParameterBinder
from codegraph_db.statement_builder import statement_complexity

logger = structlog.get_logger(__name__)

# Percent improvement an optimizer must promise before its plan is adopted
DEFAULT_IMPROVEMENT_THRESHOLD = 10.0


class QueryExecutor:
    """
    Executes anything exposing ``build() -> Statement``.

    Example:
        ```python
        executor = QueryExecutor(store)
        rows = await executor.execute(
            StatementBuilder().match("(e:CodeEntity)").return_("count(e) AS total"),
            query_name="count_entities",
        )
        ```
    """

    def __init__(
        self,
        store: GraphStore,
        binder: Optional[ParameterBinder] = None,
        optimizer: Optional[QueryOptimizer] = None,
        improvement_threshold: float = DEFAULT_IMPROVEMENT_THRESHOLD,
        include_query_text_in_errors: bool = False,
    ) -> None:
        if store is None:
            raise ValidationError("store cannot be None")

        self.store = store
        self.binder = binder or ParameterBinder(
            native_parameters=getattr(store, "supports_native_parameters", True)
        )
        self.optimizer = optimizer
        self.improvement_threshold = improvement_threshold
        self.include_query_text_in_errors = include_query_text_in_errors

        self._total_queries = 0
        self._total_errors = 0
        self._optimized_queries = 0

    async def execute(
        self,
        buildable: Any,
        query_name: Optional[str] = None,
        skip_optimization: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Execute and return normalized rows only."""
        result = await self.run(
            buildable,
            query_name=query_name,
            skip_optimization=skip_optimization,
            metadata=metadata,
        )
        return result.rows

    async def run(
        self,
        buildable: Any,
        query_name: Optional[str] = None,
        skip_optimization: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> QueryResult:
        """
        Execute a statement and return rows with execution metadata.

        Args:
            buildable: Statement, StatementBuilder, query factory or template output
            query_name: Template name or query type, used for logs and errors
            skip_optimization: Bypass the optimizer for this call
            metadata: Extra context handed to the optimizer

        Returns:
            QueryResult with rows in store column order

        Raises:
            ValidationError: If the statement cannot be compiled (no store call made)
            QueryExecutionError: If the store fails
        """
        start = time.perf_counter()
        statement = self._compile(buildable, query_name)

        text, parameters = statement.query, statement.parameters
        optimized, improvement = False, 0.0
        if self.optimizer is not None and not skip_optimization:
            text, parameters, optimized, improvement = await self._optimize(
                statement, query_name, metadata or {}
            )

        rendered_text, rendered_params = self.binder.render(text, parameters)

        self._total_queries += 1
        try:
            raw = await self.store.query(rendered_text, rendered_params)
            rows = self._normalize(raw)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self._total_errors += 1
            logger.error(
                "query_execution_failed",
                query_name=query_name,
                error=str(e),
                elapsed_ms=round(elapsed_ms, 3),
                parameter_keys=list(parameters),
            )
            raise QueryExecutionError(
                f"Query {query_name or 'statement'} failed: {e}",
                query_name=query_name,
                elapsed_ms=elapsed_ms,
                parameter_keys=list(parameters),
                query_text=text if self.include_query_text_in_errors else None,
                original_exception=e,
            ) from e

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            "query_executed",
            query_name=query_name,
            row_count=len(rows),
            elapsed_ms=round(elapsed_ms, 3),
            optimized=optimized,
        )

        return QueryResult(
            rows=rows,
            row_count=len(rows),
            execution_time_ms=elapsed_ms,
            query_name=query_name,
            optimized=optimized,
            estimated_improvement=improvement,
        )

    def get_stats(self) -> Dict[str, Any]:
        return {
            "total_queries": self._total_queries,
            "total_errors": self._total_errors,
            "optimized_queries": self._optimized_queries,
            "native_parameters": self.binder.native_parameters,
        }

    @staticmethod
    def _compile(buildable: Any, query_name: Optional[str]) -> Statement:
        build = getattr(buildable, "build", None)
        if not callable(build):
            raise ValidationError(
                f"{query_name or type(buildable).__name__} does not expose build()"
            )
        statement = build()
        if not isinstance(statement, Statement):
            raise ValidationError(
                f"{query_name or type(buildable).__name__}.build() did not return a Statement"
            )
        return statement

    async def _optimize(
        self, statement: Statement, query_name: Optional[str], metadata: Dict[str, Any]
    ) -> Tuple[str, Dict[str, Any], bool, float]:
        """Ask the optimizer for a better plan; keep the original unless it clears the threshold."""
        context = {
            "query_name": query_name,
            "estimated_complexity": statement_complexity(statement.clauses),
            **metadata,
        }
        try:
            result = self.optimizer.optimize_query(
                statement.query, dict(statement.parameters), context
            )
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.warning("optimizer_failed", query_name=query_name, error=str(e))
            return statement.query, statement.parameters, False, 0.0

        improvement = float(_field(result, "estimated_improvement", 0.0) or 0.0)
        optimized_query = _field(result, "optimized_query", None)
        if improvement > self.improvement_threshold and optimized_query:
            self._optimized_queries += 1
            logger.debug(
                "optimized_plan_adopted", query_name=query_name, estimated_improvement=improvement
            )
            parameters = _field(result, "parameters", None)
            return optimized_query, dict(parameters if parameters is not None else statement.parameters), True, improvement

        return statement.query, statement.parameters, False, improvement

    @staticmethod
    def _normalize(raw: Any) -> List[Dict[str, Any]]:
        """Convert store rows into plain dicts, keeping column order."""
        if raw is None:
            return []
        if isinstance(raw, QueryResult):
            raw = raw.rows

        rows = []
        for row in raw:
            if isinstance(row, Mapping):
                rows.append(dict(row))
            elif hasattr(row, "_asdict"):
                rows.append(dict(row._asdict()))
            else:
                raise TypeError(f"Unsupported row type from store: {type(row).__name__}")
        return rows


def _field(result: Any, name: str, default: Any) -> Any:
    if isinstance(result, Mapping):
        return result.get(name, default)
    return getattr(result, name, default)
