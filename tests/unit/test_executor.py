"""
Unit tests for QueryExecutor.

Covers compilation, optimizer adoption, parameter rendering per store
capability, row normalization and error wrapping.
"""

from collections import OrderedDict, namedtuple
from unittest.mock import AsyncMock, Mock

import pytest

from codegraph_db.exceptions import QueryExecutionError, ValidationError
from codegraph_db.executor import DEFAULT_IMPROVEMENT_THRESHOLD, QueryExecutor
from codegraph_db.graph_store import OptimizationResult
from codegraph_db.models import QueryResult, Statement
from codegraph_db.parameter_binder import ParameterBinder
from codegraph_db.statement_builder import StatementBuilder


def entity_lookup():
    return (
        StatementBuilder()
        .match("(e:CodeEntity)")
        .where("e.name = $name", {"name": "O'Brien"})
        .return_("e.id")
    )


class TestQueryExecutorInit:
    """Test executor construction."""

    def test_store_required(self):
        """Test a store is mandatory."""
        with pytest.raises(ValidationError, match="store"):
            QueryExecutor(None)

    def test_binder_follows_store_capability(self, make_store):
        """Test text substitution is selected for stores without bind parameters."""
        native = QueryExecutor(make_store())
        text = QueryExecutor(make_store(supports_native_parameters=False))

        assert native.binder.native_parameters is True
        assert text.binder.native_parameters is False

    def test_store_without_capability_attribute_defaults_native(self):
        """Test stores that do not declare capability get native binding."""
        store = Mock(spec=["query"])

        assert QueryExecutor(store).binder.native_parameters is True

    def test_default_threshold(self, stub_store):
        """Test the optimizer threshold default."""
        assert QueryExecutor(stub_store).improvement_threshold == DEFAULT_IMPROVEMENT_THRESHOLD == 10.0


class TestQueryExecutorExecute:
    """Test the execution pipeline."""

    @pytest.mark.asyncio
    async def test_native_parameters_passed_to_store(self, make_store):
        """Test native stores receive text and parameters untouched."""
        store = make_store(rows=[{"e.id": "e-1"}])
        executor = QueryExecutor(store)

        rows = await executor.execute(entity_lookup(), query_name="lookup")

        assert rows == [{"e.id": "e-1"}]
        text, params = store.calls[0]
        assert "$name" in text
        assert params == {"name": "O'Brien"}

    @pytest.mark.asyncio
    async def test_text_mode_inlines_literals(self, make_store):
        """Test text-substitution stores receive escaped literals."""
        store = make_store(supports_native_parameters=False)
        executor = QueryExecutor(store)

        await executor.execute(entity_lookup())

        text, params = store.calls[0]
        assert "e.name = 'O\\'Brien'" in text
        assert params == {}

    @pytest.mark.asyncio
    async def test_accepts_statement_directly(self, stub_store):
        """Test a prebuilt Statement is executable."""
        executor = QueryExecutor(stub_store)

        await executor.execute(Statement.from_text("RETURN 1"))

        assert stub_store.calls == [("RETURN 1", {})]

    @pytest.mark.asyncio
    async def test_non_buildable_raises_without_store_call(self, stub_store):
        """Test objects without build() are rejected before I/O."""
        executor = QueryExecutor(stub_store)

        with pytest.raises(ValidationError, match="build"):
            await executor.execute("MATCH (n) RETURN n")

        assert stub_store.calls == []

    @pytest.mark.asyncio
    async def test_build_failure_propagates_without_store_call(self, stub_store):
        """Test builder errors surface unchanged."""
        executor = QueryExecutor(stub_store)

        with pytest.raises(ValidationError):
            await executor.execute(StatementBuilder())

        assert stub_store.calls == []

    @pytest.mark.asyncio
    async def test_run_returns_query_result(self, make_store):
        """Test run() exposes execution metadata."""
        executor = QueryExecutor(make_store(rows=[{"a": 1}, {"a": 2}]))

        result = await executor.run(entity_lookup(), query_name="lookup")

        assert isinstance(result, QueryResult)
        assert result.row_count == 2
        assert result.query_name == "lookup"
        assert result.optimized is False
        assert result.execution_time_ms >= 0

    @pytest.mark.asyncio
    async def test_stats_tracked(self, make_store):
        """Test query and error counters."""
        store = make_store(fail_when=lambda i: i == 1)
        executor = QueryExecutor(store)

        await executor.execute(entity_lookup())
        with pytest.raises(QueryExecutionError):
            await executor.execute(entity_lookup())

        stats = executor.get_stats()
        assert stats["total_queries"] == 2
        assert stats["total_errors"] == 1
        assert stats["native_parameters"] is True


class TestRowNormalization:
    """Test conversion of store rows."""

    @pytest.mark.asyncio
    async def test_column_order_preserved(self):
        """Test dict rows keep the store's column order."""
        store = AsyncMock()
        store.query.return_value = [OrderedDict([("z", 1), ("a", 2)])]

        rows = await QueryExecutor(store).execute(Statement.from_text("RETURN 1"))

        assert list(rows[0]) == ["z", "a"]
        assert type(rows[0]) is dict

    @pytest.mark.asyncio
    async def test_named_tuple_rows(self):
        """Test record-like rows become dicts."""
        Row = namedtuple("Row", ["id", "name"])
        store = AsyncMock()
        store.query.return_value = [Row("e-1", "main")]

        rows = await QueryExecutor(store).execute(Statement.from_text("RETURN 1"))

        assert rows == [{"id": "e-1", "name": "main"}]

    @pytest.mark.asyncio
    async def test_none_result_is_empty(self):
        """Test a store returning None yields no rows."""
        store = AsyncMock()
        store.query.return_value = None

        assert await QueryExecutor(store).execute(Statement.from_text("RETURN 1")) == []

    @pytest.mark.asyncio
    async def test_unsupported_row_type_is_wrapped(self):
        """Test rows that cannot be converted fail as execution errors."""
        store = AsyncMock()
        store.query.return_value = [42]

        with pytest.raises(QueryExecutionError, match="Unsupported row type"):
            await QueryExecutor(store).execute(Statement.from_text("RETURN 1"))


class TestErrorWrapping:
    """Test QueryExecutionError context."""

    @pytest.mark.asyncio
    async def test_store_error_wrapped_with_context(self):
        """Test the wrapped error carries name, keys and elapsed time."""
        store = AsyncMock()
        original = RuntimeError("syntax error near MATCH")
        store.query.side_effect = original

        with pytest.raises(QueryExecutionError) as exc_info:
            await QueryExecutor(store).execute(entity_lookup(), query_name="findByName")

        error = exc_info.value
        assert error.query_name == "findByName"
        assert error.parameter_keys == ["name"]
        assert error.elapsed_ms >= 0
        assert error.original_exception is original
        assert error.__cause__ is original
        assert error.error_code == "QUERY_005"

    @pytest.mark.asyncio
    async def test_query_text_excluded_by_default(self):
        """Test query text is not attached unless requested."""
        store = AsyncMock()
        store.query.side_effect = RuntimeError("boom")

        with pytest.raises(QueryExecutionError) as exc_info:
            await QueryExecutor(store).execute(entity_lookup())

        assert exc_info.value.query_text is None
        assert "query_text" not in exc_info.value.details

    @pytest.mark.asyncio
    async def test_query_text_included_when_requested(self):
        """Test include_query_text_in_errors attaches the text."""
        store = AsyncMock()
        store.query.side_effect = RuntimeError("boom")
        executor = QueryExecutor(store, include_query_text_in_errors=True)

        with pytest.raises(QueryExecutionError) as exc_info:
            await executor.execute(entity_lookup())

        assert exc_info.value.query_text.startswith("MATCH (e:CodeEntity)")


class TestOptimizer:
    """Test the optional optimizer hook."""

    @pytest.mark.asyncio
    async def test_improvement_above_threshold_adopted(self, stub_store):
        """Test an optimized plan promising more than 10% is used."""
        optimizer = AsyncMock()
        optimizer.optimize_query.return_value = OptimizationResult(
            optimized_query="MATCH (e:CodeEntity {name: $name}) RETURN e.id",
            parameters={"name": "O'Brien"},
            estimated_improvement=25.0,
        )
        executor = QueryExecutor(stub_store, optimizer=optimizer)

        result = await executor.run(entity_lookup(), query_name="lookup")

        assert stub_store.calls[0][0] == "MATCH (e:CodeEntity {name: $name}) RETURN e.id"
        assert result.optimized is True
        assert result.estimated_improvement == 25.0
        assert executor.get_stats()["optimized_queries"] == 1

    @pytest.mark.asyncio
    async def test_improvement_at_threshold_rejected(self, stub_store):
        """Test exactly 10% is not enough."""
        optimizer = AsyncMock()
        optimizer.optimize_query.return_value = {
            "optimized_query": "MATCH (x) RETURN x",
            "parameters": {},
            "estimated_improvement": 10.0,
        }
        executor = QueryExecutor(stub_store, optimizer=optimizer)

        result = await executor.run(entity_lookup())

        assert stub_store.calls[0][0].startswith("MATCH (e:CodeEntity)")
        assert result.optimized is False

    @pytest.mark.asyncio
    async def test_custom_threshold(self, stub_store):
        """Test the adoption threshold is configurable."""
        optimizer = AsyncMock()
        optimizer.optimize_query.return_value = OptimizationResult(
            optimized_query="RETURN 2", parameters={}, estimated_improvement=6.0
        )
        executor = QueryExecutor(stub_store, optimizer=optimizer, improvement_threshold=5.0)

        await executor.execute(Statement.from_text("RETURN 1"))

        assert stub_store.calls[0][0] == "RETURN 2"

    @pytest.mark.asyncio
    async def test_skip_optimization(self, stub_store):
        """Test skip_optimization bypasses the optimizer."""
        optimizer = AsyncMock()
        executor = QueryExecutor(stub_store, optimizer=optimizer)

        await executor.execute(entity_lookup(), skip_optimization=True)

        optimizer.optimize_query.assert_not_called()

    @pytest.mark.asyncio
    async def test_optimizer_receives_metadata(self, stub_store):
        """Test the optimizer sees text, parameters and context."""
        optimizer = AsyncMock()
        optimizer.optimize_query.return_value = None
        executor = QueryExecutor(stub_store, optimizer=optimizer)

        await executor.execute(entity_lookup(), query_name="lookup", metadata={"complexity": 2})

        text, params, metadata = optimizer.optimize_query.call_args.args
        assert text.startswith("MATCH (e:CodeEntity)")
        assert params == {"name": "O'Brien"}
        assert metadata == {"query_name": "lookup", "estimated_complexity": 2, "complexity": 2}

    @pytest.mark.asyncio
    async def test_optimizer_failure_keeps_original(self, stub_store):
        """Test a failing optimizer does not fail the query."""
        optimizer = AsyncMock()
        optimizer.optimize_query.side_effect = RuntimeError("optimizer down")
        executor = QueryExecutor(stub_store, optimizer=optimizer)

        result = await executor.run(entity_lookup())

        assert result.optimized is False
        assert len(stub_store.calls) == 1

    @pytest.mark.asyncio
    async def test_sync_optimizer_supported(self, stub_store):
        """Test optimizers may be synchronous."""
        optimizer = Mock()
        optimizer.optimize_query.return_value = OptimizationResult(
            optimized_query="RETURN 2", parameters={}, estimated_improvement=50.0
        )

        await QueryExecutor(stub_store, optimizer=optimizer).execute(Statement.from_text("RETURN 1"))

        assert stub_store.calls[0][0] == "RETURN 2"

    @pytest.mark.asyncio
    async def test_optimized_plan_rendered_in_text_mode(self, make_store):
        """Test optimized parameters go through the binder."""
        store = make_store(supports_native_parameters=False)
        optimizer = AsyncMock()
        optimizer.optimize_query.return_value = OptimizationResult(
            optimized_query="MATCH (e {name: $name}) RETURN e",
            parameters={"name": "x"},
            estimated_improvement=20.0,
        )
        executor = QueryExecutor(store, binder=ParameterBinder(False), optimizer=optimizer)

        await executor.execute(entity_lookup())

        assert store.calls[0] == ("MATCH (e {name: 'x'}) RETURN e", {})


class TestOptimizerComplexity:
    """Test pattern complexity handed to the optimizer."""

    @pytest.mark.asyncio
    async def test_variable_length_pattern_complexity(self, stub_store):
        """Test relationships and variable-length paths raise the estimate."""
        optimizer = AsyncMock()
        optimizer.optimize_query.return_value = None
        statement = (
            StatementBuilder()
            .match("(a:CodeEntity)-[:DEPENDS_ON*1..3]->(b:CodeEntity)")
            .optional_match("(b)")
            .return_("b.id")
        )

        await QueryExecutor(stub_store, optimizer=optimizer).execute(statement)

        metadata = optimizer.optimize_query.call_args.args[2]
        assert metadata["estimated_complexity"] == (1 + 2 + 5 + 2) + 2

    @pytest.mark.asyncio
    async def test_raw_text_statement_has_zero_complexity(self, stub_store):
        """Test statements without clause structure report zero."""
        optimizer = AsyncMock()
        optimizer.optimize_query.return_value = None

        await QueryExecutor(stub_store, optimizer=optimizer).execute(
            Statement.from_text("MATCH (e) RETURN e")
        )

        assert optimizer.optimize_query.call_args.args[2]["estimated_complexity"] == 0

    @pytest.mark.asyncio
    async def test_caller_metadata_wins(self, stub_store):
        """Test caller metadata may override the computed estimate."""
        optimizer = AsyncMock()
        optimizer.optimize_query.return_value = None

        await QueryExecutor(stub_store, optimizer=optimizer).execute(
            entity_lookup(), metadata={"estimated_complexity": 7}
        )

        assert optimizer.optimize_query.call_args.args[2]["estimated_complexity"] == 7
