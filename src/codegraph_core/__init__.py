"""
codegraph Core Layer.

Domain layer on top of codegraph_db. Contains:
- Configuration management
- Logging service
- Query factories (statistics, technical debt, patterns, context)
- Template registry and execution

License: MIT
"""

from .config import CodeGraphSettings, get_config_summary
from .logging_service import LoggingConfig, LoggingService


def __getattr__(name):
    """Lazy import for components that pull in the query pipeline."""
    if name == "TemplateManager":
        from .templates import TemplateManager

        return TemplateManager
    elif name == "QueryFactory":
        from .queries import QueryFactory

        return QueryFactory
    elif name in ("QueryRuntime", "create_runtime"):
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "CodeGraphSettings",
    "get_config_summary",
    "LoggingConfig",
    "LoggingService",
    "TemplateManager",
    "QueryFactory",
    "QueryRuntime",
    "create_runtime",
]
