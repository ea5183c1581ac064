"""
Unit test fixtures.

Isolates unit tests from environment variables (.env file)
to ensure tests verify actual default values.

License: MIT
"""

import os

import pytest


# Environment variables that affect CodeGraphSettings defaults
CONFIG_ENV_VARS = [
    "FALKORDB_HOST",
    "FALKORDB_PORT",
    "FALKORDB_PASSWORD",
    "GRAPH_NAME",
    "FALKORDB_POOL_MAX_SIZE",
    "FALKORDB_POOL_TIMEOUT",
    "FALKORDB_SOCKET_TIMEOUT",
    "FALKORDB_MAX_RETRIES",
    "FALKORDB_RETRY_INITIAL_DELAY",
    "FALKORDB_RETRY_MAX_DELAY",
    "NATIVE_QUERY_PARAMETERS",
    "OPTIMIZER_IMPROVEMENT_THRESHOLD",
    "INCLUDE_QUERY_TEXT_IN_ERRORS",
    "LOAD_BUILTIN_TEMPLATES",
    "MAX_QUERY_LENGTH",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env_for_unit_tests(monkeypatch, tmp_path):
    """
    Remove all config-related environment variables and change working
    directory to avoid loading .env file.
    """
    for var in CONFIG_ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    original_dir = os.getcwd()
    os.chdir(tmp_path)

    yield

    os.chdir(original_dir)
