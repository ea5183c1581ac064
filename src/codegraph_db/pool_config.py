"""
Connection pool and retry configuration for the FalkorDB graph store.

License: MIT
"""

from dataclasses import dataclass
from typing import Any

from codegraph_db.exceptions import ValidationError


@dataclass
class PoolConfig:
    """
    Connection pool configuration.

    Attributes:
        max_size: Maximum connections allowed in pool (default: 20)
        timeout: Seconds to wait for an available connection (default: 10.0)
        socket_timeout: Socket timeout for query execution in seconds (default: 30.0)
        socket_connect_timeout: Timeout for initial connection in seconds (default: 5.0)
    """

    max_size: int = 20
    timeout: float = 10.0
    socket_timeout: float = 30.0
    socket_connect_timeout: float = 5.0

    def __post_init__(self) -> None:
        if self.max_size < 1 or self.max_size > 200:
            raise ValidationError(f"max_size must be in range 1-200, got {self.max_size}")

        for name in ("timeout", "socket_timeout", "socket_connect_timeout"):
            if getattr(self, name) <= 0:
                raise ValidationError(f"{name} must be > 0, got {getattr(self, name)}")

    @classmethod
    def from_settings(cls, settings: Any) -> "PoolConfig":
        return cls(
            max_size=settings.falkordb_pool_max_size,
            timeout=settings.falkordb_pool_timeout,
            socket_timeout=settings.falkordb_socket_timeout,
        )


@dataclass
class RetryConfig:
    """
    Retry configuration for transient store errors.

    Backoff: attempt 1 immediately, then wait initial_delay, then
    initial_delay * exponential_base, ... capped at max_delay.
    """

    max_retries: int = 3
    initial_delay: float = 0.1
    max_delay: float = 2.0
    exponential_base: float = 2.0

    def __post_init__(self) -> None:
        if self.max_retries < 0 or self.max_retries > 10:
            raise ValidationError(f"max_retries must be in range 0-10, got {self.max_retries}")

        if self.initial_delay <= 0:
            raise ValidationError(f"initial_delay must be > 0, got {self.initial_delay}")

        if self.max_delay < self.initial_delay:
            raise ValidationError(
                f"max_delay ({self.max_delay}) must be >= initial_delay ({self.initial_delay})"
            )

        if self.exponential_base < 1.0:
            raise ValidationError(f"exponential_base must be >= 1.0, got {self.exponential_base}")

    @classmethod
    def from_settings(cls, settings: Any) -> "RetryConfig":
        return cls(
            max_retries=settings.falkordb_max_retries,
            initial_delay=settings.falkordb_retry_initial_delay,
            max_delay=settings.falkordb_retry_max_delay,
        )

    def delays(self):
        """Yield the sleep before each retry."""
        delay = self.initial_delay
        for _ in range(self.max_retries):
            yield delay
            delay = min(delay * self.exponential_base, self.max_delay)
