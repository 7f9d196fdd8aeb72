"""Property-based tests for the database store.

**Feature: trade-journal**
"""

import tempfile
from datetime import datetime
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tradejournal.db.store import DataStore, DuplicateRecordError, RecordNotFoundError


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        yield DataStore(db_path)


@pytest.fixture
def chart_db(temp_db: DataStore):
    """A store with two tickers and a handful of tagged charts."""
    temp_db.insert("tickers", {"symbol": "AAPL", "name": "Apple"})
    temp_db.insert("tickers", {"symbol": "MSFT", "name": "Microsoft"})
    rows = [(1, [1, 2], 0), (1, [2], 1), (2, [], 2), (2, [3], None)]
    for day, (ticker, tags, nav) in enumerate(rows, start=1):
        temp_db.insert(
            "charts",
            {
                "ticker": ticker,
                "timestamp": datetime(2024, 1, day),
                "tags": tags,
                "nav_index": nav,
            },
        )
    return temp_db


class TestDatabaseSchemaCompleteness:
    """
    **Feature: trade-journal, Property: Database Schema Completeness**

    *For any* fresh database, all required tables (tickers, tags, charts,
    trades, users) should exist.
    """

    def test_schema_completeness(self, temp_db: DataStore):
        tables = temp_db.get_tables()

        for table in DataStore.REQUIRED_TABLES:
            assert table in tables, f"Required table '{table}' is missing"

    @given(st.integers(min_value=1, max_value=5))
    @settings(max_examples=10)
    def test_schema_completeness_multiple_instances(self, num_instances: int):
        with tempfile.TemporaryDirectory() as tmpdir:
            for i in range(num_instances):
                store = DataStore(Path(tmpdir) / f"test_{i}.db")
                tables = store.get_tables()

                for table in DataStore.REQUIRED_TABLES:
                    assert table in tables, f"Required table '{table}' missing in instance {i}"

    def test_reopen_keeps_data(self, temp_db: DataStore):
        temp_db.insert("tags", {"name": "breakout"})
        reopened = DataStore(temp_db.db_path)
        assert reopened.count("tags") == 1


class TestRecordRoundTrip:
    """
    **Feature: trade-journal, Property: Records read back as written**
    """

    @given(
        symbol=st.text(
            alphabet=st.characters(whitelist_categories=("Lu", "Nd")),
            min_size=1,
            max_size=10,
        ),
        tags=st.lists(st.integers(min_value=1, max_value=1000), max_size=10),
    )
    @settings(max_examples=50)
    def test_json_columns_round_trip(self, symbol: str, tags: list[int]):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = DataStore(Path(tmpdir) / "test.db")
            created = store.insert("tickers", {"symbol": symbol, "name": "Test", "tags": tags})

            fetched = store.find_by_id("tickers", created["id"])
            assert fetched["symbol"] == symbol
            assert fetched["tags"] == tags
            assert fetched["charts_count"] == 0

    def test_unknown_keys_are_ignored(self, temp_db: DataStore):
        created = temp_db.insert("tags", {"name": "gap", "id": 99, "bogus": 1})
        assert created["id"] == 1
        assert "bogus" not in created

    def test_unknown_collection_raises(self, temp_db: DataStore):
        with pytest.raises(ValueError):
            temp_db.find("positions")

    def test_unknown_collection_raises_for_every_operation(self, temp_db: DataStore):
        with pytest.raises(ValueError, match="Unknown collection"):
            temp_db.count("positions")
        with pytest.raises(ValueError, match="Unknown collection"):
            temp_db.find("positions", limit=0)
        with pytest.raises(ValueError, match="Unknown collection"):
            temp_db.find_by_id("positions", 1)
        with pytest.raises(ValueError, match="Unknown collection"):
            temp_db.insert("positions", {"symbol": "AAPL"})
        with pytest.raises(ValueError, match="Unknown collection"):
            temp_db.delete("positions", 1)


class TestUniqueness:
    """Symbols, tag names and emails are unique."""

    def test_duplicate_symbol(self, temp_db: DataStore):
        temp_db.insert("tickers", {"symbol": "AAPL", "name": "Apple"})
        with pytest.raises(DuplicateRecordError):
            temp_db.insert("tickers", {"symbol": "AAPL", "name": "Apple again"})

    def test_duplicate_on_update(self, temp_db: DataStore):
        temp_db.insert("tags", {"name": "a"})
        second = temp_db.insert("tags", {"name": "b"})
        with pytest.raises(DuplicateRecordError):
            temp_db.update("tags", second["id"], {"name": "a"})


class TestUpdateDelete:
    """Partial updates and deletes."""

    def test_update_only_touches_given_fields(self, temp_db: DataStore):
        created = temp_db.insert("tickers", {"symbol": "AAPL", "name": "Apple", "sector": "Tech"})
        updated = temp_db.update("tickers", created["id"], {"charts_count": 3})
        assert updated["charts_count"] == 3
        assert updated["sector"] == "Tech"

    def test_update_missing_record(self, temp_db: DataStore):
        with pytest.raises(RecordNotFoundError) as exc_info:
            temp_db.update("tickers", 42, {"charts_count": 1})
        assert exc_info.value.record_id == 42

    def test_delete_returns_record(self, temp_db: DataStore):
        created = temp_db.insert("tags", {"name": "gap"})
        deleted = temp_db.delete("tags", created["id"])
        assert deleted["name"] == "gap"
        assert temp_db.find_by_id("tags", created["id"]) is None
        assert temp_db.delete("tags", created["id"]) is None


class TestQueries:
    """
    **Feature: trade-journal, Property: Where conditions filter records**
    """

    def test_equals(self, chart_db: DataStore):
        assert chart_db.count("charts", {"ticker": 1}) == 2

    def test_in(self, chart_db: DataStore):
        result = chart_db.find("charts", {"nav_index": {"in": [0, 2]}})
        assert [doc["nav_index"] for doc in result.docs] == [0, 2]
        assert chart_db.count("charts", {"nav_index": {"in": []}}) == 0

    def test_contains(self, chart_db: DataStore):
        assert chart_db.count("charts", {"tags": {"contains": 2}}) == 2
        assert chart_db.count("charts", {"tags": {"contains": 3}}) == 1
        assert chart_db.count("charts", {"tags": {"contains": 7}}) == 0

    def test_exists(self, chart_db: DataStore):
        assert chart_db.count("charts", {"nav_index": {"exists": True}}) == 3
        assert chart_db.count("charts", {"nav_index": {"exists": False}}) == 1

    def test_comparisons(self, chart_db: DataStore):
        assert chart_db.count("charts", {"nav_index": {"greater_than": 0}}) == 2
        assert chart_db.count("charts", {"nav_index": {"greater_than_equal": 0}}) == 3
        assert chart_db.count("charts", {"nav_index": {"less_than": 2}}) == 2
        assert chart_db.count("charts", {"nav_index": {"less_than_equal": 2}}) == 3
        assert chart_db.count("charts", {"ticker": {"not_equals": 1}}) == 2

    def test_datetime_range(self, chart_db: DataStore):
        where = {
            "timestamp": {
                "greater_than_equal": datetime(2024, 1, 1),
                "less_than": datetime(2024, 1, 3),
            }
        }
        assert chart_db.count("charts", where) == 2

    def test_limit_zero_counts_only(self, chart_db: DataStore):
        result = chart_db.find("charts", {"ticker": 2}, limit=0)
        assert result.docs == []
        assert result.total_docs == 2

    def test_pagination_and_sort(self, chart_db: DataStore):
        first = chart_db.find("charts", limit=2, page=1, sort="-id")
        second = chart_db.find("charts", limit=2, page=2, sort="-id")

        assert [doc["id"] for doc in first.docs] == [4, 3]
        assert [doc["id"] for doc in second.docs] == [2, 1]
        assert first.total_docs == second.total_docs == 4

    def test_unsupported_operator(self, chart_db: DataStore):
        with pytest.raises(ValueError):
            chart_db.find("charts", {"ticker": {"like": "A%"}})

    def test_unknown_field(self, chart_db: DataStore):
        with pytest.raises(ValueError):
            chart_db.find("charts", {"ticker; DROP TABLE charts": 1})

    def test_get_stats(self, chart_db: DataStore):
        stats = chart_db.get_stats()
        assert stats["charts"] == 4
        assert stats["tickers"] == 2
        assert stats["trades"] == 0
