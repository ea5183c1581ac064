"""
QueryFactory - Creates, validates and executes domain query factories by kind.

License: MIT
"""

import time
from typing import Any, Dict, List, Type

import structlog

from codegraph_core.logging_service import LoggingService
from codegraph_core.queries.base import BaseQueryFactory, ValidationResult
from codegraph_core.queries.context import ContextQueryFactory
from codegraph_core.queries.pattern_detection import PatternDetectionFactory
from codegraph_core.queries.statistics import StatisticsFactory
from codegraph_core.queries.technical_debt import TechnicalDebtFactory
from codegraph_db.exceptions import UnsupportedScopeError, ValidationError
from codegraph_db.executor import QueryExecutor

logger = structlog.get_logger(__name__)

FACTORIES: Dict[str, Type[BaseQueryFactory]] = {
    StatisticsFactory.query_type: StatisticsFactory,
    TechnicalDebtFactory.query_type: TechnicalDebtFactory,
    PatternDetectionFactory.query_type: PatternDetectionFactory,
    ContextQueryFactory.query_type: ContextQueryFactory,
}


class QueryFactory:
    """Entry point used by tool handlers to obtain and run domain queries."""

    @staticmethod
    def create(kind: str, **options: Any) -> BaseQueryFactory:
        """
        Create a factory and apply options through its ``with_<option>`` setters.

        Example:
            ```python
            factory = QueryFactory.create(
                "technical-debt", scope="project", debt_types=["complexity"]
            )
            ```

        Raises:
            UnsupportedScopeError: If kind is not a known query type
            ValidationError: If an option has no matching setter
        """
        factory_cls = FACTORIES.get(kind)
        if factory_cls is None:
            raise UnsupportedScopeError(f"Unknown query type: {kind}", scope=kind)

        factory = factory_cls()
        for key, value in options.items():
            setter = getattr(factory, f"with_{key}", None)
            if not callable(setter):
                raise ValidationError(
                    f"Unknown option for {kind}: {key}", details={"option": key}
                )
            setter(value)
        return factory

    @staticmethod
    def validate(factory: Any) -> ValidationResult:
        if not isinstance(factory, BaseQueryFactory):
            return ValidationResult(is_valid=False, errors=["Invalid query factory"])
        return factory.validate()

    @staticmethod
    def get_available_types() -> List[Dict[str, str]]:
        return [
            {"type": kind, "description": cls.description, "factory": cls.__name__}
            for kind, cls in FACTORIES.items()
        ]

    @classmethod
    async def execute(cls, factory: BaseQueryFactory, executor: QueryExecutor) -> List[Dict[str, Any]]:
        """
        Validate, build and execute a factory's statement.

        Raises:
            ValidationError: If validation fails (no store call is made)
            QueryExecutionError: If the store fails
        """
        validation = cls.validate(factory)
        if not validation.is_valid:
            raise ValidationError(
                f"Query validation failed: {', '.join(validation.errors)}",
                details={"errors": validation.errors},
            )

        query_type = getattr(factory, "query_type", type(factory).__name__)
        statement = factory.build()
        logger.debug(
            "executing_domain_query",
            query_type=query_type,
            parameter_keys=statement.parameter_keys,
        )
        start = time.perf_counter()
        try:
            rows = await executor.execute(statement, query_name=query_type)
        except Exception as e:
            LoggingService.log_failure(
                "domain_query_failed",
                e,
                logger_name=__name__,
                query_type=query_type,
                parameter_keys=statement.parameter_keys,
            )
            raise

        LoggingService.log_timing(
            "domain_query_executed",
            (time.perf_counter() - start) * 1000,
            logger_name=__name__,
            query_type=query_type,
            row_count=len(rows),
        )
        return rows
