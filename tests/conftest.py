"""
Shared pytest fixtures.

Every test gets a clean temporary DATA_DIR via the `tmp_data_dir` fixture
so tests are fully isolated from each other and from the real catalog.db.
"""
from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# ── Make the project root importable without installing the package ────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from matching import CatalogProduct  # noqa: E402
from providers.base import VisionProvider  # noqa: E402


@pytest.fixture(autouse=True)
def tmp_data_dir(tmp_path, monkeypatch):
    """
    Redirect DATA_DIR to a fresh tmp directory for every test.
    This gives each test a clean SQLite file and prevents cross-test pollution.
    """
    data = tmp_path / "data"
    data.mkdir()
    monkeypatch.setenv("DATA_DIR", str(data))

    # Patch the module-level DB_PATH that was already computed at import time
    import database
    monkeypatch.setattr(database, "DB_PATH", str(data / "catalog.db"))
    monkeypatch.setattr(database, "_DATA_DIR", data)

    # Also reset the internal lock so tests don't share state
    import asyncio
    monkeypatch.setattr(database, "_lock", asyncio.Lock())

    yield data


@pytest.fixture(autouse=True)
def reset_vision_client():
    """Each test starts with no cached vision client."""
    import providers.manager as manager_mod
    manager_mod.reset()
    yield
    manager_mod.reset()


# ── Builders shared by several test modules ───────────────────────────────────

def make_product(pid: str, title: str, **kwargs) -> CatalogProduct:
    kwargs.setdefault("handle", title.lower().replace(" ", "-"))
    return CatalogProduct(id=pid, title=title, **kwargs)


def make_vision_client(reply: str = "{}") -> VisionProvider:
    client = MagicMock(spec=VisionProvider)
    client.name = "fake"
    client.model_id = "vision-1"
    client.full_name = "fake/vision-1"
    client.describe = AsyncMock(return_value=reply)
    return client


@pytest.fixture
def candle_catalog() -> list[CatalogProduct]:
    return [
        make_product(
            "p1", "Calm Down Girl Candle",
            product_type="Candle",
            tags={"eucalyptus spearmint", "calm down girl"},
        ),
        make_product(
            "p2", "Lavender Body Butter",
            product_type="Body Butter",
            tags={"lavender"},
            description="Whipped shea body butter in a purple tin",
        ),
        make_product(
            "p3", "Citrus Room Spray",
            product_type="Room Spray",
            tags={"citrus", "orange"},
            description="Bright orange room spray in a glass bottle",
        ),
    ]
