"""
Pytest configuration and fixtures for all tests.

Provides shared setup/teardown for logging and stub graph stores.

License: MIT
"""

import asyncio
import random
from typing import Any, Dict, List, Optional

import pytest

from codegraph_core.logging_service import LoggingService


def pytest_configure(config):
    """Configure logging before any tests are collected."""
    LoggingService.configure_logging(level="DEBUG", format="json")


@pytest.fixture(autouse=True)
def reset_logging_service():
    """Reset LoggingService state before each test."""
    LoggingService.reset()
    LoggingService.configure_logging(level="DEBUG", format="json")

    yield

    LoggingService._configured = False
    LoggingService._loggers = {}


class StubGraphStore:
    """
    In-memory graph store that records every call.

    rows: returned for every query
    fail_when: predicate on the call index; matching calls raise RuntimeError
    max_delay: upper bound of a random per-call delay in seconds
    """

    def __init__(
        self,
        rows: Optional[List[Dict[str, Any]]] = None,
        supports_native_parameters: bool = True,
        fail_when=None,
        max_delay: float = 0.0,
    ):
        self.rows = rows if rows is not None else []
        self.supports_native_parameters = supports_native_parameters
        self.fail_when = fail_when
        self.max_delay = max_delay
        self.calls: List[tuple] = []
        self.failures = 0

    async def query(self, text: str, parameters: Dict[str, Any]) -> List[Dict[str, Any]]:
        index = len(self.calls)
        self.calls.append((text, dict(parameters)))
        if self.max_delay:
            await asyncio.sleep(random.uniform(0, self.max_delay))
        if self.fail_when is not None and self.fail_when(index):
            self.failures += 1
            raise RuntimeError(f"stub failure on call {index}")
        return [dict(row) for row in self.rows]


@pytest.fixture
def stub_store():
    """Stub store returning no rows."""
    return StubGraphStore()


@pytest.fixture
def make_store():
    """Factory for configured stub stores."""
    return StubGraphStore
