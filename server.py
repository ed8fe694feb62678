"""
server.py — aiohttp web app exposing the photo identification pipeline.

Endpoints:
  POST /api/admin/ai/analyze-product-image   → JSON analyses for 1–10 photo URLs
  GET  /health                               → plain-text health check

Request:   {"imageUrls": ["https://…/a.jpg", …]}
Response:  {"success": true, "analyses": [...], "totalProducts": N}

Authentication is expected to be handled in front of this app (reverse
proxy / admin gateway). Results are not stored; the caller applies them.
"""
from __future__ import annotations

import json
import logging

from aiohttp import web

import config
import database as db
from batch import BatchValidationError, run_batch, validate_image_urls
from providers.manager import VisionNotConfiguredError, get_vision_client

logger = logging.getLogger(__name__)

ANALYZE_PATH = "/api/admin/ai/analyze-product-image"


def _error(status: int, error: str, message: str | None = None) -> web.Response:
    body = {"error": error}
    if message:
        body["message"] = message
    return web.json_response(body, status=status)


# ── Request handlers ───────────────────────────────────────────────────────────

async def handle_analyze(request: web.Request) -> web.Response:
    """
    Validate the request, load the catalog and run the batch.
    Request-level problems are reported with 4xx/5xx; per-image problems are
    reported inside the analyses list.
    """
    try:
        vision_client = await get_vision_client()
    except VisionNotConfiguredError as exc:
        return _error(500, str(exc), "Please add the API key to your .env file")
    except ValueError as exc:
        logger.error("Vision provider misconfigured: %s", exc)
        return _error(500, str(exc), "Set VISION_PROVIDER to anthropic or openai")

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error(400, "Request body must be JSON")
    if not isinstance(body, dict):
        return _error(400, "Request body must be a JSON object")

    try:
        image_urls = validate_image_urls(body.get("imageUrls"))
    except BatchValidationError as exc:
        return _error(400, str(exc))

    try:
        catalog = await db.fetch_catalog()
    except Exception as exc:
        logger.error("Error fetching products: %s", exc, exc_info=True)
        return _error(500, "Failed to fetch products from database")

    if not catalog:
        return _error(
            400,
            "No products in database",
            "Please add products before using the image analyzer",
        )

    try:
        analyses = await run_batch(image_urls, vision_client, catalog)
    except BatchValidationError as exc:
        return _error(400, str(exc))
    except Exception as exc:
        logger.error("Error in POST %s: %s", ANALYZE_PATH, exc, exc_info=True)
        return _error(500, str(exc) or "Internal server error")

    return web.json_response({
        "success": True,
        "analyses": [a.to_dict() for a in analyses],
        "totalProducts": len(catalog),
    })


async def handle_health(request: web.Request) -> web.Response:
    """Health check — returns 200 OK. Use with uptime monitors."""
    total = await db.get_product_count()
    return web.Response(
        text=f"OK — {total} products in catalog",
        content_type="text/plain",
    )


# ── App factory ────────────────────────────────────────────────────────────────

def build_web_app() -> web.Application:
    app = web.Application()
    app.router.add_post(ANALYZE_PATH, handle_analyze)
    app.router.add_get("/health",     handle_health)
    return app


async def start_server() -> web.AppRunner:
    """Start the web server. Returns runner so caller can shut it down cleanly."""
    app    = build_web_app()
    runner = web.AppRunner(app, access_log=logger)
    await runner.setup()
    site = web.TCPSite(runner, config.SERVER_HOST, config.SERVER_PORT)
    await site.start()
    logger.info(
        "Photo identification API listening on %s:%d",
        config.SERVER_HOST, config.SERVER_PORT,
    )
    return runner
