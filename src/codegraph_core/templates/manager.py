"""
TemplateManager - Registry and execution of named query templates.

Templates are self-validating: registration performs a dry-run build with
synthesized parameters, and nothing is stored unless it succeeds. Every
execution updates per-template usage statistics, on success and on failure.

License: MIT
"""

import asyncio
import time
import warnings
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Union

import structlog

from codegraph_core.logging_service import LoggingService
from codegraph_core.templates.custom import (
    detect_operation_kind,
    estimate_query_complexity,
    generate_dummy_parameters,
    raw_query_builder,
)
from codegraph_core.templates.models import (
    MAX_COMPLEXITY,
    MIN_COMPLEXITY,
    TemplateDefinition,
    TemplateExecutionResult,
    UsageStatistics,
    split_parameters,
)
from codegraph_db.exceptions import (
    MissingParameterError,
    TemplateNotFoundError,
    TemplateValidationError,
    UnknownParameterWarning,
    ValidationError,
)
from codegraph_db.executor import QueryExecutor
from codegraph_db.models import PARAMETER_NAME, OperationKind, Statement

logger = structlog.get_logger(__name__)

DEFAULT_MAX_QUERY_LENGTH = 100_000


class TemplateManager:
    """
    Owns template definitions and their usage statistics (always 1:1).

    Construct one per process and pass it where needed.

    Example:
        ```python
        manager = TemplateManager(QueryExecutor(store))
        result = await manager.execute_template("findEntityById", {"entityId": "e-1"})
        print(result.rows)
        print(manager.get_template_statistics("findEntityById"))
        ```
    """

    def __init__(
        self,
        executor: QueryExecutor,
        load_builtins: bool = True,
        max_query_length: int = DEFAULT_MAX_QUERY_LENGTH,
    ) -> None:
        if executor is None:
            raise ValidationError("executor cannot be None")

        self.executor = executor
        self.max_query_length = max_query_length
        self._templates: Dict[str, TemplateDefinition] = {}
        self._statistics: Dict[str, UsageStatistics] = {}
        # Calls whose caller was cancelled; held until the store responds
        self._abandoned: Set[asyncio.Future] = set()

        if load_builtins:
            from codegraph_core.templates.builtin import register_builtin_templates

            register_builtin_templates(self)

        logger.info("template_manager_initialized", templates=len(self._templates))

    def __len__(self) -> int:
        return len(self._templates)

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_template(
        self,
        name: str,
        builder: Callable[[Dict[str, Any]], Any],
        description: str = "",
        parameters: Sequence[str] = (),
        category: str = "custom",
        complexity: int = 1,
        operation_kind: Union[str, OperationKind] = OperationKind.READ,
        customizable: bool = True,
        replace: bool = False,
    ) -> TemplateDefinition:
        """
        Register a template after a successful dry run.

        Parameter names ending in ``?`` are optional. The builder receives a
        dict of parameters and must return something whose ``build()`` yields
        a Statement.

        Raises:
            TemplateValidationError: On invalid definition, duplicate name
                (unless replace=True) or failing dry run. The registry is
                left unchanged.
        """
        if not isinstance(name, str) or not name.strip():
            raise TemplateValidationError("Template name must be a non-empty string")

        if name in self._templates and not replace:
            raise TemplateValidationError(f"Template already registered: {name}", template_name=name)

        if not callable(builder):
            raise TemplateValidationError("Template must have a builder function", template_name=name)

        parameters = list(parameters)
        required, optional = split_parameters(parameters)
        for param in required + optional:
            if not PARAMETER_NAME.match(param):
                raise TemplateValidationError(
                    f"Invalid parameter name in template {name}: {param!r}", template_name=name
                )

        if isinstance(complexity, bool) or not isinstance(complexity, int) or not (
            MIN_COMPLEXITY <= complexity <= MAX_COMPLEXITY
        ):
            raise TemplateValidationError(
                f"Complexity must be an integer in [{MIN_COMPLEXITY}, {MAX_COMPLEXITY}], got {complexity!r}",
                template_name=name,
            )

        try:
            operation_kind = OperationKind(getattr(operation_kind, "value", operation_kind))
        except ValueError:
            raise TemplateValidationError(
                f"Unknown operation kind: {operation_kind}", template_name=name
            )

        self._dry_run(name, builder, parameters)

        template = TemplateDefinition(
            name=name,
            builder=builder,
            description=description,
            parameters=parameters,
            category=category,
            operation_kind=operation_kind,
            complexity=complexity,
            customizable=customizable,
        )
        self._templates[name] = template
        self._statistics[name] = UsageStatistics()

        logger.debug(
            "template_registered", name=name, category=category, complexity=complexity
        )
        return template

    def create_custom_template(
        self,
        name: str,
        query: str,
        parameters: Sequence[str] = (),
        description: Optional[str] = None,
        category: str = "custom",
        complexity: Optional[int] = None,
        operation_kind: Optional[Union[str, OperationKind]] = None,
    ) -> TemplateDefinition:
        """
        Register a template straight from a parameterized query string.

        Complexity and operation kind are inferred from the text unless given.
        """
        if not isinstance(query, str) or not query.strip():
            raise TemplateValidationError("Custom query must be a non-empty string", template_name=name)

        if len(query) > self.max_query_length:
            raise TemplateValidationError(
                f"Custom query exceeds max length ({self.max_query_length:,} chars)",
                template_name=name,
            )

        return self.register_template(
            name,
            builder=raw_query_builder(query),
            description=description or f"Custom template: {name}",
            parameters=parameters,
            category=category,
            complexity=complexity if complexity is not None else estimate_query_complexity(query),
            operation_kind=operation_kind or detect_operation_kind(query),
        )

    def remove_template(self, name: str) -> bool:
        removed = self._templates.pop(name, None) is not None
        self._statistics.pop(name, None)
        if removed:
            logger.debug("template_removed", name=name)
        return removed

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_template(
        self,
        name: str,
        parameters: Optional[Dict[str, Any]] = None,
        skip_optimization: bool = False,
    ) -> TemplateExecutionResult:
        """
        Validate parameters, build and execute a template.

        If the caller is cancelled while the store call is in flight, the
        call still completes in the background so statistics stay accurate;
        its result is discarded.

        Raises:
            TemplateNotFoundError: If the template is not registered
            MissingParameterError: If a required parameter is absent or None
                (no store call is made)
            QueryExecutionError: If the store fails
        """
        template = self._get(name)
        task = asyncio.ensure_future(
            self._execute(template, dict(parameters or {}), skip_optimization)
        )
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.done():
                self._abandoned.add(task)
                task.add_done_callback(self._abandoned.discard)
                task.add_done_callback(_discard_outcome)
            raise

    def get_template(self, name: str, parameters: Optional[Dict[str, Any]] = None) -> Statement:
        """Validate and build a template's Statement without executing it."""
        template = self._get(name)
        parameters = dict(parameters or {})
        self._validate_parameters(template, parameters)
        return self._build(template, parameters)

    async def _execute(
        self, template: TemplateDefinition, parameters: Dict[str, Any], skip_optimization: bool
    ) -> TemplateExecutionResult:
        start = time.perf_counter()
        try:
            self._validate_parameters(template, parameters)
            statement = self._build(template, parameters)
            result = await self.executor.run(
                statement,
                query_name=template.name,
                skip_optimization=skip_optimization,
                metadata={
                    "template": template.name,
                    "category": template.category,
                    "complexity": template.complexity,
                    "operation_kind": template.operation_kind.value,
                },
            )
        except Exception as e:
            stats = self._statistics.get(template.name)
            if stats is not None:
                stats.record_failure()
            LoggingService.log_failure(
                "template_execution_failed",
                e,
                logger_name=__name__,
                template=template.name,
                parameter_keys=sorted(parameters),
            )
            raise

        execution_time_ms = (time.perf_counter() - start) * 1000
        stats = self._statistics.get(template.name)
        if stats is not None:
            stats.record_success(execution_time_ms)

        LoggingService.log_timing(
            "template_executed",
            execution_time_ms,
            logger_name=__name__,
            template=template.name,
            row_count=len(result.rows),
            optimized=result.optimized,
        )

        return TemplateExecutionResult(
            rows=result.rows,
            template=template.name,
            execution_time_ms=execution_time_ms,
            optimized=result.optimized,
            estimated_improvement=result.estimated_improvement,
        )

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def list_templates(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            template.summary()
            for template in self._templates.values()
            if category is None or template.category == category
        ]

    def get_template_categories(self) -> List[str]:
        return list(dict.fromkeys(t.category for t in self._templates.values()))

    def get_template_statistics(self, name: Optional[str] = None) -> Dict[str, Any]:
        """
        Statistics for one template, or a name-keyed dict of all of them.

        Raises:
            TemplateNotFoundError: If name is given but not registered
        """
        if name is not None:
            stats = self._statistics.get(name)
            if stats is None:
                raise TemplateNotFoundError(name)
            return {"template": name, **stats.to_dict()}

        return {name: stats.to_dict() for name, stats in self._statistics.items()}

    def clear_statistics(self, name: Optional[str] = None) -> None:
        if name is not None:
            stats = self._statistics.get(name)
            if stats is not None:
                stats.reset()
        else:
            for stats in self._statistics.values():
                stats.reset()
        logger.debug("template_statistics_cleared", name=name)

    def export_templates(self, category: Optional[str] = None) -> Dict[str, Any]:
        """Template summaries with their statistics, for reporting."""
        statistics = self.get_template_statistics()
        return {
            "templates": [
                {**summary, "statistics": statistics.get(summary["name"])}
                for summary in self.list_templates(category)
            ],
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "category": category,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get(self, name: str) -> TemplateDefinition:
        template = self._templates.get(name)
        if template is None:
            raise TemplateNotFoundError(name)
        return template

    def _dry_run(self, name: str, builder: Callable, parameters: List[str]) -> None:
        dummies = generate_dummy_parameters(parameters)
        try:
            produced = builder(dummies)
            build = getattr(produced, "build", None)
            if not callable(build):
                raise TypeError("builder must return an object exposing build()")
            if not isinstance(build(), Statement):
                raise TypeError("build() must return a Statement")
        except Exception as e:
            logger.warning("template_validation_failed", name=name, error=str(e))
            raise TemplateValidationError(
                f"Template validation failed: {e}", template_name=name, original_exception=e
            ) from e

    @staticmethod
    def _validate_parameters(template: TemplateDefinition, parameters: Dict[str, Any]) -> None:
        missing = [p for p in template.required_parameters if parameters.get(p) is None]
        if missing:
            raise MissingParameterError(
                f"Required parameter missing for template {template.name}: {missing[0]}",
                parameter=missing[0],
                missing=missing,
                details={"template": template.name, "parameter_keys": sorted(parameters)},
            )

        known = set(template.required_parameters) | set(template.optional_parameters)
        unknown = [key for key in parameters if key not in known]
        if unknown:
            warnings.warn(
                f"Unknown parameters for template {template.name}: {', '.join(unknown)}",
                UnknownParameterWarning,
                stacklevel=4,
            )
            logger.warning("unknown_template_parameters", template=template.name, keys=unknown)

    @staticmethod
    def _build(template: TemplateDefinition, parameters: Dict[str, Any]) -> Statement:
        produced = template.builder(parameters)
        build = getattr(produced, "build", None)
        statement = build() if callable(build) else None
        if not isinstance(statement, Statement):
            raise ValidationError(f"Template {template.name} did not produce a Statement")
        return statement


def _discard_outcome(task: "asyncio.Future") -> None:
    # Marks the exception of an abandoned call as retrieved
    if not task.cancelled():
        task.exception()
