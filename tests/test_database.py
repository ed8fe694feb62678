"""
Tests for database.py.

Covers:
  - DB path defaults to data/ subdirectory
  - Schema creation (init_db is idempotent)
  - Catalog: upsert, fetch order, update in place, delete, count, bad tags
  - API key CRUD: set, get, overwrite, delete
"""
from __future__ import annotations

from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio

import database as db
from matching import CatalogProduct


@pytest_asyncio.fixture(autouse=True)
async def init(tmp_data_dir):
    """Initialise the DB schema before every test."""
    await db.init_db()


# ── DB path ────────────────────────────────────────────────────────────────────

class TestDbPath:
    def test_db_path_inside_data_dir(self, tmp_data_dir):
        assert Path(db.DB_PATH).parent == tmp_data_dir


# ── init_db ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestInitDb:
    async def test_idempotent(self):
        """Calling init_db twice must not raise."""
        await db.init_db()
        await db.init_db()

    async def test_db_file_created(self):
        assert Path(db.DB_PATH).exists()


# ── Catalog ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestCatalog:
    async def test_empty_initially(self):
        assert await db.fetch_catalog() == []
        assert await db.get_product_count() == 0

    async def test_upsert_returns_product(self):
        p = await db.upsert_product(
            "p1", "Calm Down Girl Candle", "calm-down-girl-candle",
            product_type="Candle", tags=["calm down girl", "", "calm down girl"],
        )
        assert isinstance(p, CatalogProduct)
        assert p.tags == frozenset({"calm down girl"})

    async def test_fetch_round_trips_fields(self):
        await db.upsert_product(
            "p1", "Lavender Body Butter", "lavender-body-butter",
            product_type="Body Butter", tags=["lavender", "purple"],
            description="Whipped shea butter",
        )
        [p] = await db.fetch_catalog()
        assert p == CatalogProduct(
            id="p1",
            title="Lavender Body Butter",
            handle="lavender-body-butter",
            product_type="Body Butter",
            tags=frozenset({"lavender", "purple"}),
            description="Whipped shea butter",
        )

    async def test_optional_fields_stay_none(self):
        await db.upsert_product("p1", "Mystery", "mystery")
        [p] = await db.fetch_catalog()
        assert p.product_type is None
        assert p.description is None
        assert p.tags == frozenset()

    async def test_fetch_keeps_insertion_order(self):
        for pid in ["c", "a", "b"]:
            await db.upsert_product(pid, f"Product {pid}", f"product-{pid}")
        assert [p.id for p in await db.fetch_catalog()] == ["c", "a", "b"]

    async def test_update_keeps_position(self):
        await db.upsert_product("a", "First", "first")
        await db.upsert_product("b", "Second", "second")
        await db.upsert_product("a", "First (renamed)", "first")
        catalog = await db.fetch_catalog()
        assert [p.id for p in catalog] == ["a", "b"]
        assert catalog[0].title == "First (renamed)"
        assert await db.get_product_count() == 2

    async def test_get_product(self):
        await db.upsert_product("p1", "Rose Candle", "rose-candle")
        assert (await db.get_product("p1")).title == "Rose Candle"
        assert await db.get_product("missing") is None

    async def test_delete_product(self):
        await db.upsert_product("p1", "Rose Candle", "rose-candle")
        assert await db.delete_product("p1") is True
        assert await db.delete_product("p1") is False
        assert await db.fetch_catalog() == []

    async def test_malformed_tags_read_as_empty(self):
        await db.upsert_product("p1", "Rose Candle", "rose-candle", tags=["pink"])
        async with aiosqlite.connect(db.DB_PATH) as conn:
            await conn.execute("UPDATE products SET tags = 'not json' WHERE id = 'p1'")
            await conn.commit()
        [p] = await db.fetch_catalog()
        assert p.tags == frozenset()


# ── API keys ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestApiKeys:
    async def test_missing_key_is_none(self):
        assert await db.get_api_key("anthropic_api_key") is None

    async def test_set_and_get(self):
        await db.set_api_key("anthropic_api_key", "sk-ant-1")
        assert await db.get_api_key("anthropic_api_key") == "sk-ant-1"

    async def test_overwrite(self):
        await db.set_api_key("anthropic_api_key", "old")
        await db.set_api_key("anthropic_api_key", "new")
        assert await db.get_api_key("anthropic_api_key") == "new"

    async def test_delete(self):
        await db.set_api_key("openai_api_key", "sk-1")
        await db.delete_api_key("openai_api_key")
        assert await db.get_api_key("openai_api_key") is None
