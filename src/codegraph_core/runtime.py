"""
Runtime assembly: settings -> logging -> graph store -> executor -> templates.

The tool-handler layer creates one QueryRuntime at process start and passes
it by reference; nothing here is a module-level singleton.

License: MIT
"""

import time
from dataclasses import dataclass
from typing import Any, Optional

from codegraph_core.config import CodeGraphSettings, get_config_summary
from codegraph_core.logging_service import LoggingService
from codegraph_core.templates.manager import TemplateManager
from codegraph_db.executor import QueryExecutor
from codegraph_db.graph_store import GraphStore, QueryOptimizer
from codegraph_db.parameter_binder import ParameterBinder


@dataclass
class QueryRuntime:
    """Everything the tool-handler layer needs to run queries."""

    settings: CodeGraphSettings
    store: GraphStore
    executor: QueryExecutor
    templates: TemplateManager

    async def close(self) -> None:
        close = getattr(self.store, "close", None)
        if close is not None:
            await close()


async def create_runtime(
    settings: Optional[CodeGraphSettings] = None,
    store: Optional[GraphStore] = None,
    optimizer: Optional[QueryOptimizer] = None,
) -> QueryRuntime:
    """
    Wire up the query layer.

    Args:
        settings: Loaded from the environment when omitted
        store: Graph store to use; a FalkorDBStore is created and connected
            from settings when omitted
        optimizer: Optional query optimizer collaborator

    Raises:
        ConnectionError: If the default FalkorDB store cannot connect
    """
    start = time.perf_counter()
    settings = settings or CodeGraphSettings()

    if not LoggingService.is_configured():
        LoggingService.configure_logging(level=settings.log_level, format=settings.log_format)
    logger = LoggingService.get_logger(__name__)
    logger.info("runtime_initializing", config=get_config_summary(settings))

    if store is None:
        from codegraph_db.falkordb_store import FalkorDBStore

        store = FalkorDBStore.from_settings(settings)
        await store.init_async()

    native = settings.native_query_parameters and getattr(store, "supports_native_parameters", True)
    executor = QueryExecutor(
        store,
        binder=ParameterBinder(native_parameters=native),
        optimizer=optimizer,
        improvement_threshold=settings.optimizer_improvement_threshold,
        include_query_text_in_errors=settings.include_query_text_in_errors,
    )

    templates = TemplateManager(
        executor,
        load_builtins=settings.load_builtin_templates,
        max_query_length=settings.max_query_length,
    )

    LoggingService.log_timing(
        "runtime_initialized",
        (time.perf_counter() - start) * 1000,
        logger_name=__name__,
        level="info",
        native_parameters=native,
        optimizer=optimizer is not None,
        templates=len(templates),
    )
    return QueryRuntime(settings=settings, store=store, executor=executor, templates=templates)
