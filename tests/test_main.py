"""
Tests for the command-line entry point in main.py.

Covers:
  - seed: loads a JSON file into the catalog; bad / missing file → exit 1
  - set-key / keys / delete-key: DB-stored keys, masked output, env fallback
  - unknown key names rejected by argparse
"""
from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

import database as db
import key_store
from main import dispatch

FIXTURE = Path(__file__).parent / "fixtures" / "catalog.json"


class TestSeedCommand:
    def test_seed_fills_catalog(self, capsys):
        assert dispatch(["seed", str(FIXTURE)]) == 0
        assert "Loaded 3 product(s)" in capsys.readouterr().out

        catalog = asyncio.run(db.fetch_catalog())
        assert [p.id for p in catalog] == [
            "calm-down-girl-candle", "purple-love-candle", "gid-7001",
        ]

    def test_missing_file(self, tmp_path):
        assert dispatch(["seed", str(tmp_path / "nope.json")]) == 1

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('{"products": "none"}', encoding="utf-8")
        assert dispatch(["seed", str(path)]) == 1


class TestKeyCommands:
    def test_set_key_then_list(self, capsys, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert dispatch(["set-key", "anthropic_api_key", "sk-ant-1234567890"]) == 0
        assert asyncio.run(key_store.get("anthropic_api_key")) == "sk-ant-1234567890"

        capsys.readouterr()
        assert dispatch(["keys"]) == 0
        out = capsys.readouterr().out
        assert "anthropic_api_key: sk-a" in out
        assert "1234567890" not in out
        assert "openai_api_key: not set" in out

    def test_empty_value_rejected(self):
        assert dispatch(["set-key", "openai_api_key", "   "]) == 1

    def test_delete_key_falls_back_to_env(self, capsys, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env-abcdefgh")
        dispatch(["set-key", "openai_api_key", "sk-db-12345678"])
        assert dispatch(["delete-key", "openai_api_key"]) == 0
        assert asyncio.run(key_store.get("openai_api_key")) == "sk-env-abcdefgh"

    def test_unknown_key_name(self):
        with pytest.raises(SystemExit):
            dispatch(["set-key", "gemini_api_key", "x"])
