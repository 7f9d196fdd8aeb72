"""Tests for record references and the async store repository."""

import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tradejournal.db import DataStore, StoreRepository, as_id
from tradejournal.models import Tag


@pytest.fixture
def repository():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield StoreRepository(DataStore(Path(tmpdir) / "test.db"))


class TestAsId:
    """
    **Feature: trade-journal, Property: References resolve to IDs**

    *For any* ID, the bare value, its string form, a populated record and a
    model instance all resolve to the same integer.
    """

    @given(st.integers(min_value=1, max_value=2**31))
    @settings(max_examples=100)
    def test_reference_forms_agree(self, record_id: int):
        assert as_id(record_id) == record_id
        assert as_id(str(record_id)) == record_id
        assert as_id({"id": record_id, "name": "x"}) == record_id
        assert as_id(Tag(id=record_id, name="x")) == record_id

    @pytest.mark.parametrize("value", [True, None, "abc", {"name": "x"}, 1.5, [1]])
    def test_invalid_references(self, value):
        with pytest.raises(ValueError):
            as_id(value)


class TestStoreRepository:
    """The async repository delegates to the store."""

    @pytest.mark.asyncio
    async def test_crud(self, repository: StoreRepository):
        created = await repository.insert("tags", {"name": "breakout"})
        assert created["id"] == 1

        assert (await repository.find_by_id("tags", 1))["name"] == "breakout"

        updated = await repository.update("tags", 1, {"charts_count": 4})
        assert updated["charts_count"] == 4

        result = await repository.find("tags", {"name": "breakout"})
        assert result.total_docs == 1

        assert await repository.count("tags") == 1
        assert (await repository.delete("tags", 1))["name"] == "breakout"
        assert await repository.count("tags") == 0

    @pytest.mark.asyncio
    async def test_count_with_filter(self, repository: StoreRepository):
        for name in ("a", "b", "c"):
            await repository.insert("tags", {"name": name})
        assert await repository.count("tags", {"name": {"in": ["a", "c"]}}) == 2
