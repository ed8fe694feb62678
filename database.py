"""
database.py — async SQLite persistence via aiosqlite.

Tables:
  products  — the product catalog photos are matched against
  api_keys  — API keys that override .env values (see key_store.py)

The pipeline only ever reads the catalog (fetch_catalog); the write
helpers exist for seeding and tests. The DB file is created automatically
on first run.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

import aiosqlite

from matching import CatalogProduct

logger = logging.getLogger(__name__)

# Store the DB in a dedicated data/ directory so Docker volume mounts work
# correctly (mount ./data:/app/data) and the file survives container restarts.
_DATA_DIR = Path(os.getenv("DATA_DIR", "data"))
_DATA_DIR.mkdir(parents=True, exist_ok=True)

DB_PATH = str(_DATA_DIR / "catalog.db")
_lock = asyncio.Lock()          # serialise schema creation


# ── Schema ────────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS products (
    id           TEXT PRIMARY KEY,
    title        TEXT NOT NULL,
    handle       TEXT NOT NULL UNIQUE,
    product_type TEXT,
    tags         TEXT NOT NULL DEFAULT '[]',   -- JSON array of strings
    description  TEXT,
    updated_at   TEXT NOT NULL
);

-- API keys (override .env values)
CREATE TABLE IF NOT EXISTS api_keys (
    key_name   TEXT PRIMARY KEY,
    key_value  TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


async def init_db() -> None:
    """Create tables if they don't exist. Safe to call multiple times."""
    async with _lock:
        async with aiosqlite.connect(DB_PATH) as db:
            await db.executescript(_SCHEMA)
            await db.commit()
    logger.info("Database initialised at %s", DB_PATH)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_product(row: aiosqlite.Row) -> CatalogProduct:
    try:
        tags = json.loads(row["tags"] or "[]")
    except json.JSONDecodeError:
        logger.warning("Product %s has malformed tags: %r", row["id"], row["tags"])
        tags = []
    return CatalogProduct(
        id=row["id"],
        title=row["title"],
        handle=row["handle"],
        product_type=row["product_type"],
        tags=frozenset(t for t in tags if isinstance(t, str)),
        description=row["description"],
    )


# ── Catalog ───────────────────────────────────────────────────────────────────

async def fetch_catalog() -> list[CatalogProduct]:
    """
    Return every catalog product, oldest first.
    The order is stable between calls, which is what ranking ties rely on.
    """
    async with aiosqlite.connect(DB_PATH) as db:
        db.row_factory = aiosqlite.Row
        async with db.execute(
            "SELECT id, title, handle, product_type, tags, description "
            "FROM products ORDER BY rowid"
        ) as cur:
            rows = await cur.fetchall()
    return [_row_to_product(r) for r in rows]


async def get_product(product_id: str) -> Optional[CatalogProduct]:
    async with aiosqlite.connect(DB_PATH) as db:
        db.row_factory = aiosqlite.Row
        async with db.execute(
            "SELECT id, title, handle, product_type, tags, description "
            "FROM products WHERE id = ?",
            (product_id,),
        ) as cur:
            row = await cur.fetchone()
    return _row_to_product(row) if row else None


async def upsert_product(
    product_id: str,
    title: str,
    handle: str,
    product_type: Optional[str] = None,
    tags: Iterable[str] = (),
    description: Optional[str] = None,
) -> CatalogProduct:
    """Insert a product or update it in place (keeps its catalog position)."""
    tag_list = sorted({t for t in tags if t})
    async with aiosqlite.connect(DB_PATH) as db:
        await db.execute(
            """
            INSERT INTO products (id, title, handle, product_type, tags, description, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                title        = excluded.title,
                handle       = excluded.handle,
                product_type = excluded.product_type,
                tags         = excluded.tags,
                description  = excluded.description,
                updated_at   = excluded.updated_at
            """,
            (product_id, title, handle, product_type, json.dumps(tag_list), description, _now()),
        )
        await db.commit()
    return CatalogProduct(
        id=product_id,
        title=title,
        handle=handle,
        product_type=product_type,
        tags=frozenset(tag_list),
        description=description,
    )


async def delete_product(product_id: str) -> bool:
    async with aiosqlite.connect(DB_PATH) as db:
        cur = await db.execute("DELETE FROM products WHERE id = ?", (product_id,))
        await db.commit()
        return cur.rowcount > 0


async def get_product_count() -> int:
    async with aiosqlite.connect(DB_PATH) as db:
        async with db.execute("SELECT COUNT(*) FROM products") as cur:
            row = await cur.fetchone()
    return row[0] if row else 0


# ── API keys ──────────────────────────────────────────────────────────────────

async def get_api_key(key_name: str) -> Optional[str]:
    async with aiosqlite.connect(DB_PATH) as db:
        async with db.execute(
            "SELECT key_value FROM api_keys WHERE key_name = ?", (key_name,)
        ) as cur:
            row = await cur.fetchone()
    return row[0] if row else None


async def set_api_key(key_name: str, value: str) -> None:
    async with aiosqlite.connect(DB_PATH) as db:
        await db.execute(
            """
            INSERT INTO api_keys (key_name, key_value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key_name) DO UPDATE SET
                key_value  = excluded.key_value,
                updated_at = excluded.updated_at
            """,
            (key_name, value, _now()),
        )
        await db.commit()


async def delete_api_key(key_name: str) -> None:
    async with aiosqlite.connect(DB_PATH) as db:
        await db.execute("DELETE FROM api_keys WHERE key_name = ?", (key_name,))
        await db.commit()
