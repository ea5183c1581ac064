"""
Configuration Management for codegraph.

Provides centralized, type-safe configuration loading using Pydantic Settings.
Supports environment variables, .env files, and sensible defaults for
zero-config operation.

License: MIT
"""

from typing import Any, Dict, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings


class CodeGraphSettings(BaseSettings):
    """
    Centralized configuration for the codegraph query layer.

    Configuration is loaded with the following priority (highest to lowest):
    1. System environment variables
    2. .env file in the working directory
    3. Hardcoded default values

    Example:
        ```python
        from codegraph_core.config import CodeGraphSettings

        settings = CodeGraphSettings()
        print(settings.falkordb_host)  # 'localhost'
        print(settings.optimizer_improvement_threshold)  # 10.0
        ```
    """

    # ========================================
    # FALKORDB CONFIGURATION
    # ========================================

    falkordb_host: str = Field(
        default="localhost", description="FalkorDB server hostname or IP address"
    )

    falkordb_port: int = Field(
        default=6381, ge=1, le=65535, description="FalkorDB server port"
    )

    falkordb_password: Optional[SecretStr] = Field(
        default=None, description="FalkorDB authentication password (if required)"
    )

    graph_name: str = Field(default="codegraph", description="Name of the graph")

    falkordb_pool_max_size: int = Field(
        default=20, ge=1, le=200, description="Maximum connections allowed in pool"
    )

    falkordb_pool_timeout: float = Field(
        default=10.0, ge=1.0, le=60.0, description="Seconds to wait for a pooled connection"
    )

    falkordb_socket_timeout: float = Field(
        default=30.0, ge=5.0, le=120.0, description="Socket timeout for query execution"
    )

    # ========================================
    # RETRY CONFIGURATION
    # ========================================

    falkordb_max_retries: int = Field(
        default=3, ge=0, le=10, description="Maximum retry attempts for transient errors"
    )

    falkordb_retry_initial_delay: float = Field(
        default=0.1, ge=0.01, le=1.0, description="Initial delay for retry backoff in seconds"
    )

    falkordb_retry_max_delay: float = Field(
        default=2.0, ge=0.1, le=30.0, description="Maximum delay for retry backoff in seconds"
    )

    # ========================================
    # QUERY LAYER CONFIGURATION
    # ========================================

    native_query_parameters: bool = Field(
        default=True,
        description="Send bind parameters to the store; False inlines escaped literals",
    )

    optimizer_improvement_threshold: float = Field(
        default=10.0,
        ge=0.0,
        le=100.0,
        description="Percent improvement required before an optimized plan is adopted",
    )

    include_query_text_in_errors: bool = Field(
        default=False, description="Attach query text to execution errors (may leak literals)"
    )

    load_builtin_templates: bool = Field(
        default=True, description="Register the built-in template library at startup"
    )

    max_query_length: int = Field(
        default=100_000, ge=100, le=1_000_000, description="Maximum custom template query length"
    )

    # ========================================
    # LOGGING CONFIGURATION
    # ========================================

    log_level: str = Field(default="INFO", description="Logging level")

    log_format: str = Field(default="json", description="Log output format (json or console)")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in ("json", "console"):
            raise ValueError(f"Invalid log format: {v}. Must be 'json' or 'console'")
        return v_lower

    @property
    def falkordb_connection_string(self) -> str:
        """Connection string in format: redis://[password@]host:port"""
        if self.falkordb_password:
            password = self.falkordb_password.get_secret_value()
            return f"redis://:{password}@{self.falkordb_host}:{self.falkordb_port}"
        return f"redis://{self.falkordb_host}:{self.falkordb_port}"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "validate_assignment": True,
        "extra": "ignore",
    }


def get_config_summary(settings: CodeGraphSettings) -> Dict[str, Any]:
    """
    Summarize configuration without secrets, for diagnostics.

    Args:
        settings: CodeGraphSettings instance

    Returns:
        Nested dict of non-sensitive settings
    """
    return {
        "falkordb": {
            "host": settings.falkordb_host,
            "port": settings.falkordb_port,
            "graph_name": settings.graph_name,
            "pool_max_size": settings.falkordb_pool_max_size,
            "max_retries": settings.falkordb_max_retries,
            "password_set": settings.falkordb_password is not None,
        },
        "query": {
            "native_parameters": settings.native_query_parameters,
            "optimizer_improvement_threshold": settings.optimizer_improvement_threshold,
            "include_query_text_in_errors": settings.include_query_text_in_errors,
            "load_builtin_templates": settings.load_builtin_templates,
        },
        "logging": {
            "level": settings.log_level,
            "format": settings.log_format,
        },
    }
