"""
Unit tests for runtime assembly.
"""

import pytest

from codegraph_core.config import CodeGraphSettings
from codegraph_core.runtime import create_runtime


class TestCreateRuntime:
    """Test wiring of store, executor and templates."""

    @pytest.mark.asyncio
    async def test_uses_given_store(self, stub_store):
        """Test a provided store is used without connecting to FalkorDB."""
        runtime = await create_runtime(CodeGraphSettings(), store=stub_store)

        assert runtime.store is stub_store
        assert runtime.executor.binder.native_parameters is True
        assert len(runtime.templates) == 24

    @pytest.mark.asyncio
    async def test_settings_select_text_substitution(self, stub_store):
        """Test native parameters can be disabled from settings."""
        settings = CodeGraphSettings(native_query_parameters=False, load_builtin_templates=False)

        runtime = await create_runtime(settings, store=stub_store)

        assert runtime.executor.binder.native_parameters is False
        assert len(runtime.templates) == 0

    @pytest.mark.asyncio
    async def test_store_capability_wins(self, make_store):
        """Test stores without bind parameters force text substitution."""
        runtime = await create_runtime(
            CodeGraphSettings(), store=make_store(supports_native_parameters=False)
        )

        assert runtime.executor.binder.native_parameters is False

    @pytest.mark.asyncio
    async def test_threshold_from_settings(self, stub_store):
        """Test optimizer threshold and error text flags are applied."""
        settings = CodeGraphSettings(
            optimizer_improvement_threshold=20.0, include_query_text_in_errors=True
        )

        runtime = await create_runtime(settings, store=stub_store)

        assert runtime.executor.improvement_threshold == 20.0
        assert runtime.executor.include_query_text_in_errors is True

    @pytest.mark.asyncio
    async def test_default_store_connects(self, mocker):
        """Test a FalkorDBStore is created and initialized from settings."""
        init = mocker.patch("codegraph_db.falkordb_store.FalkorDBStore.init_async")

        runtime = await create_runtime(CodeGraphSettings(graph_name="kg"))

        init.assert_awaited_once()
        assert runtime.store.graph_name == "kg"

    @pytest.mark.asyncio
    async def test_close_closes_store(self, mocker, stub_store):
        """Test closing the runtime closes the store."""
        stub_store.close = mocker.AsyncMock()
        runtime = await create_runtime(CodeGraphSettings(), store=stub_store)

        await runtime.close()

        stub_store.close.assert_awaited_once()
