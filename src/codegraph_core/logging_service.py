"""
LoggingService - Centralized structured logging for codegraph.

Provides consistent, context-enriched, machine-readable logging across all
modules using structlog.

License: MIT
"""

import logging
import sys
import traceback
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import structlog
from structlog.types import Processor

VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class LoggingConfig:
    """
    Configuration for LoggingService.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format ("json" or "console" for dev)
        output_stream: Output destination (default: sys.stderr)
        sensitive_keys: Keys whose values are redacted in logged metadata
    """

    level: str = "INFO"
    format: str = "json"
    output_stream: Any = sys.stderr
    sensitive_keys: set[str] = field(
        default_factory=lambda: {
            "password",
            "passwd",
            "api_key",
            "token",
            "access_token",
            "secret",
            "auth",
            "authorization",
        }
    )


class LoggingService:
    """
    Centralized structured logging service using structlog.

    Outputs JSON logs to stderr so stdout stays free for tool protocols.

    Example:
        LoggingService.configure_logging(level="INFO", format="json")
        logger = LoggingService.get_logger("codegraph.templates")
        logger.info("template_executed", template="findEntityById", duration_ms=12)
    """

    _configured: bool = False
    _config: Optional[LoggingConfig] = None
    _loggers: dict[str, Any] = {}
    _sensitive_keys: set[str] = set()

    @classmethod
    def configure_logging(
        cls, level: str = "INFO", format: str = "json", config: Optional[LoggingConfig] = None
    ) -> None:
        """
        Configure global structured logging. Call once at startup.

        Raises:
            ValueError: If level or format is invalid
            RuntimeError: If called after logging already configured
        """
        if cls._configured:
            raise RuntimeError("Logging already configured")

        if config is None:
            level_upper = level.upper()
            if level_upper not in VALID_LEVELS:
                raise ValueError(
                    f"Invalid log level: {level}. Must be one of: {', '.join(VALID_LEVELS)}"
                )

            format_lower = format.lower()
            if format_lower not in ["json", "console"]:
                raise ValueError(f"Invalid format: {format}. Must be 'json' or 'console'")

            config = LoggingConfig(level=level_upper, format=format_lower)

        cls._config = config
        cls._sensitive_keys = config.sensitive_keys

        structlog.configure(
            processors=cls._setup_processors(),
            wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, config.level)),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(file=config.output_stream),
            cache_logger_on_first_use=False,
        )

        cls._configured = True

    @classmethod
    def reset(cls) -> None:
        """Forget configuration so configure_logging() can run again."""
        cls._configured = False
        cls._config = None
        cls._loggers = {}
        cls._sensitive_keys = set()
        structlog.reset_defaults()

    @classmethod
    def is_configured(cls) -> bool:
        return cls._configured

    @classmethod
    def get_logger(cls, name: str) -> Any:
        """
        Get a cached, module-specific logger.

        Raises:
            RuntimeError: If logging not configured yet
            ValueError: If name is empty
        """
        if not cls._configured:
            raise RuntimeError("Logging not configured. Call configure_logging() first.")

        if not name:
            raise ValueError("Logger name cannot be empty")

        if name not in cls._loggers:
            cls._loggers[name] = structlog.get_logger(name)
        return cls._loggers[name]

    @classmethod
    def log_failure(
        cls,
        event: str,
        error: Exception,
        logger_name: str = "codegraph",
        include_stack_trace: bool = False,
        **context: Any,
    ) -> None:
        """
        Log a failed operation at error level.

        Error code, correlation ID and details are taken from CodeGraphError
        instances; context and details are redacted. Parameter values should
        never be passed as context, only their keys.

        Example:
            LoggingService.log_failure(
                "template_execution_failed", e,
                template="findEntityById", parameter_keys=["entityId"],
            )
        """
        if not event:
            raise ValueError("event cannot be empty")

        fields: Dict[str, Any] = {
            "error_type": type(error).__name__,
            "error": str(error),
        }
        for attr in ("error_code", "correlation_id"):
            value = getattr(error, attr, None)
            if value:
                fields[attr] = value

        details = getattr(error, "details", None)
        if isinstance(details, dict) and details:
            fields["details"] = cls._redact(details)

        fields.update(cls._redact(context))

        if include_stack_trace:
            fields["stack_trace"] = traceback.format_exc()

        cls._logger_for(logger_name).error(event, **fields)

    @classmethod
    def log_timing(
        cls,
        event: str,
        duration_ms: float,
        logger_name: str = "codegraph",
        level: str = "debug",
        **context: Any,
    ) -> None:
        """
        Log a completed operation with its duration in milliseconds.

        Raises:
            ValueError: If event is empty, duration_ms < 0 or level is unknown
        """
        if not event:
            raise ValueError("event cannot be empty")

        if duration_ms < 0:
            raise ValueError("duration_ms cannot be negative")

        if level.upper() not in VALID_LEVELS:
            raise ValueError(f"Invalid log level: {level}")

        log = getattr(cls._logger_for(logger_name), level.lower())
        log(event, duration_ms=round(duration_ms, 3), **cls._redact(context))

    @classmethod
    def _logger_for(cls, name: str) -> Any:
        # Unconfigured callers (library use) fall back to structlog defaults
        if cls._configured:
            return cls.get_logger(name)
        return structlog.get_logger(name)

    @classmethod
    def _redact(cls, value: Any) -> Any:
        """Replace values of sensitive keys with "[REDACTED]", through nested dicts and lists."""
        if isinstance(value, dict):
            return {
                key: "[REDACTED]" if str(key).lower() in cls._sensitive_keys else cls._redact(item)
                for key, item in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [cls._redact(item) for item in value]
        return value

    @classmethod
    def _setup_processors(cls) -> list[Processor]:
        processors: list[Processor] = [
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
        ]

        if cls._config and cls._config.format == "console":
            processors.append(structlog.dev.ConsoleRenderer(colors=True))
        else:
            processors.append(structlog.processors.JSONRenderer())

        return processors
