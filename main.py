"""
main.py — Single entry point.

  photo-matcher [serve]              run the HTTP API (default)
  photo-matcher seed catalog.json    load / update products from a JSON file
  photo-matcher keys                 show which API keys are configured
  photo-matcher set-key NAME VALUE   store an API key in the DB
  photo-matcher delete-key NAME      remove a stored key (falls back to .env)

Architecture:
  asyncio event loop
    └── aiohttp web server
          POST /api/admin/ai/analyze-product-image
              └── batch.run_batch → image_analyzer.analyze_image (≤3 at once)
                                     └── matching.match_products
"""
import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

import config

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    # Log file lives in the same data/ directory as the database so that a
    # single Docker volume mount (./data:/app/data) captures both.
    data_dir = Path(config.DATA_DIR)
    data_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        level=logging.INFO,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(str(data_dir / "service.log"), encoding="utf-8"),
        ],
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


# ── serve ─────────────────────────────────────────────────────────────────────

async def run() -> None:
    import database as _db
    try:
        await _db.init_db()
        total = await _db.get_product_count()
        logger.info("Database ready at %s (%d products)", _db.DB_PATH, total)
        if not total:
            logger.warning("Catalog is empty. Load products with: photo-matcher seed <file.json>")
    except Exception as exc:
        logger.critical("FATAL: database init failed: %s", exc, exc_info=True)
        raise

    from server import start_server
    web_runner = await start_server()

    stop_event = asyncio.Event()

    def _stop(*_):
        logger.info("Shutdown signal received.")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _stop)
        except (NotImplementedError, RuntimeError):
            # Windows doesn't support add_signal_handler for all signals
            pass

    logger.info("Service is running. Press Ctrl+C to stop.")
    try:
        await stop_event.wait()
    except (KeyboardInterrupt, SystemExit):
        pass

    logger.info("Shutting down…")
    await web_runner.cleanup()
    logger.info("Goodbye.")


# ── catalog / key commands ────────────────────────────────────────────────────

async def seed(path: str) -> int:
    from seeding import CatalogFileError, seed_catalog
    try:
        count = await seed_catalog(path)
    except (OSError, CatalogFileError) as exc:
        logger.error("Seeding failed: %s", exc)
        return 1
    print(f"Loaded {count} product(s) from {path}")
    return 0


async def show_keys() -> int:
    import database as _db
    import key_store
    await _db.init_db()
    for name, value in (await key_store.get_all_keys()).items():
        print(f"{name}: {key_store.mask(value)}")
    return 0


async def set_key(name: str, value: str) -> int:
    import database as _db
    import key_store
    if not value.strip():
        logger.error("Refusing to store an empty value for %s", name)
        return 1
    await _db.init_db()
    await key_store.set(name, value.strip())
    print(f"{name} saved ({key_store.mask(value.strip())})")
    return 0


async def delete_key(name: str) -> int:
    import database as _db
    import key_store
    await _db.init_db()
    await key_store.delete(name)
    print(f"{name} removed from database; now {key_store.mask(await key_store.get(name))}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    from key_store import KEY_NAMES

    parser = argparse.ArgumentParser(
        prog="photo-matcher",
        description="Identify product photos and match them against the store catalog.",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Run the HTTP API (default)")

    p_seed = sub.add_parser("seed", help="Load products from a JSON file into the catalog")
    p_seed.add_argument("file", help="JSON list of products, or {\"products\": [...]}")

    sub.add_parser("keys", help="Show configured API keys (masked)")

    p_set = sub.add_parser("set-key", help="Store an API key in the database")
    p_set.add_argument("name", choices=KEY_NAMES)
    p_set.add_argument("value")

    p_del = sub.add_parser("delete-key", help="Remove a stored API key")
    p_del.add_argument("name", choices=KEY_NAMES)

    return parser


def dispatch(argv: Optional[Sequence[str]] = None) -> int:
    ns = build_parser().parse_args(argv)
    if ns.command == "seed":
        return asyncio.run(seed(ns.file))
    if ns.command == "keys":
        return asyncio.run(show_keys())
    if ns.command == "set-key":
        return asyncio.run(set_key(ns.name, ns.value))
    if ns.command == "delete-key":
        return asyncio.run(delete_key(ns.name))

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
    return 0


def main() -> None:
    _configure_logging()
    sys.exit(dispatch())


if __name__ == "__main__":
    main()
