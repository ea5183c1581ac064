"""
FalkorDBStore - Async graph store adapter for FalkorDB.

Implements the GraphStore protocol on top of the native async FalkorDB
client with a BlockingConnectionPool. FalkorDB binds parameters natively,
so statements are sent with their parameter map untouched.

License: MIT
"""

import asyncio
from typing import Any, Dict, List, Optional

import redis
import structlog
from falkordb.asyncio import FalkorDB as AsyncFalkorDB
from redis.asyncio import BlockingConnectionPool

from codegraph_db.exceptions import ConnectionError, QueryError, ValidationError
from codegraph_db.pool_config import PoolConfig, RetryConfig

logger = structlog.get_logger(__name__)


class FalkorDBStore:
    """
    Async FalkorDB store with connection pooling and retry.

    Note: Does NOT connect on construction. Call init_async() first.
    """

    supports_native_parameters = True

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6381,
        graph_name: str = "codegraph",
        password: Optional[str] = None,
        pool_config: Optional[PoolConfig] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        if not host or not host.strip():
            raise ValidationError("host cannot be empty")

        if port <= 0 or port > 65535:
            raise ValidationError(f"port must be in range 1-65535, got {port}")

        if not graph_name or not graph_name.strip():
            raise ValidationError("graph_name cannot be empty")

        self.host = host
        self.port = port
        self.graph_name = graph_name
        self.password = password
        self.pool_config = pool_config or PoolConfig()
        self.retry_config = retry_config or RetryConfig()

        self._pool: Optional[BlockingConnectionPool] = None
        self._db: Optional[AsyncFalkorDB] = None
        self.graph: Any = None
        self._initialized = False
        self._closed = False
        self._total_retries = 0

        self._logger = logger.bind(host=host, port=port, graph=graph_name)

    @classmethod
    def from_settings(cls, settings: Any) -> "FalkorDBStore":
        password = settings.falkordb_password
        return cls(
            host=settings.falkordb_host,
            port=settings.falkordb_port,
            graph_name=settings.graph_name,
            password=password.get_secret_value() if password else None,
            pool_config=PoolConfig.from_settings(settings),
            retry_config=RetryConfig.from_settings(settings),
        )

    async def init_async(self) -> None:
        """
        Create the connection pool and probe the graph.

        Raises:
            ConnectionError: If connection cannot be established
        """
        if self._initialized:
            return

        if self._closed:
            raise ConnectionError("Store has been closed. Create new instance.")

        try:
            self._pool = BlockingConnectionPool(
                host=self.host,
                port=self.port,
                password=self.password,
                max_connections=self.pool_config.max_size,
                timeout=int(self.pool_config.timeout),
                socket_timeout=self.pool_config.socket_timeout,
                socket_connect_timeout=self.pool_config.socket_connect_timeout,
                decode_responses=True,
            )
            self._db = AsyncFalkorDB(connection_pool=self._pool)
            self.graph = self._db.select_graph(self.graph_name)

            await self.graph.query("RETURN 1")
            self._initialized = True
            self._logger.info("store_initialized", pool_max=self.pool_config.max_size)

        except Exception as e:
            self._logger.error("init_failed", error=str(e))
            if self._pool is not None:
                await self._pool.disconnect()
                self._pool = None
            raise ConnectionError(f"Failed to initialize FalkorDB store: {e}", original_exception=e)

    async def query(self, text: str, parameters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Execute query text with exponential backoff on transient errors.

        Raises:
            ConnectionError: If not initialized, or retries are exhausted
            QueryError: If the store rejects the query
        """
        if not self._initialized or self._closed:
            raise ConnectionError("Store not initialized. Call init_async() first.")

        delays = self.retry_config.delays()
        attempt = 0
        while True:
            attempt += 1
            try:
                result = await self.graph.query(text, parameters or {})
                return self._convert_result(result)

            except (redis.ConnectionError, redis.BusyLoadingError, OSError) as e:
                delay = next(delays, None)
                if delay is None:
                    self._logger.error("query_failed_after_retries", attempts=attempt, error=str(e))
                    raise ConnectionError(
                        f"Query failed after {attempt} attempts: {e}", original_exception=e
                    )
                self._total_retries += 1
                self._logger.warning("query_retry", attempt=attempt, delay=delay, error=str(e))
                await asyncio.sleep(delay)

            except Exception as e:
                self._logger.error("query_error", error=str(e))
                self._logger.debug("query_error_text", query=text[:100])
                raise QueryError(f"Query failed: {e}", original_exception=e)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._initialized = False
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None
        self._logger.info("store_closed", total_retries=self._total_retries)

    @classmethod
    def _convert_result(cls, result: Any) -> List[Dict[str, Any]]:
        """Convert a FalkorDB result set into dicts keyed by header column."""
        rows = []
        header = result.header or []
        for record in result.result_set or []:
            row = {}
            for i, col_header in enumerate(header):
                col_name = col_header[1] if len(col_header) > 1 else f"col_{i}"
                row[col_name] = cls._convert_value(record[i] if i < len(record) else None)
            rows.append(row)
        return rows

    @classmethod
    def _convert_value(cls, value: Any) -> Any:
        # Nodes and edges become their property dicts
        if hasattr(value, "properties") and isinstance(value.properties, dict):
            return dict(value.properties)
        if isinstance(value, list):
            return [cls._convert_value(item) for item in value]
        if isinstance(value, dict):
            return {key: cls._convert_value(item) for key, item in value.items()}
        return value
