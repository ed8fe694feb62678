"""
Provider Manager — builds and caches the vision client the pipeline uses.

The provider is chosen by config.VISION_PROVIDER:
  anthropic  — Claude (default)
  openai     — GPT-4o family

Keys are read from key_store (DB → .env fallback) when the client is first
built. Call reset() after changing a key so the next request picks it up.
"""
from __future__ import annotations

import logging
from typing import Optional

import config
from providers.base import VisionProvider

logger = logging.getLogger(__name__)

# provider name → key_store key holding its API key
PROVIDER_KEYS: dict[str, str] = {
    "anthropic": "anthropic_api_key",
    "openai":    "openai_api_key",
}

# Module-level cache — cleared by reset()
_client: Optional[VisionProvider] = None


class VisionNotConfiguredError(RuntimeError):
    """No usable API key for the configured vision provider."""


def _build(provider_name: str, api_key: str) -> VisionProvider:
    if provider_name == "anthropic":
        from providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider(api_key, model=config.ANTHROPIC_MODEL)
    if provider_name == "openai":
        from providers.openai_provider import OpenAIProvider
        return OpenAIProvider(api_key, model=config.OPENAI_MODEL)
    raise ValueError(
        f"Unknown VISION_PROVIDER '{provider_name}'. Available: {', '.join(PROVIDER_KEYS)}"
    )


async def get_vision_client() -> VisionProvider:
    """Return the configured vision client, building it on first use."""
    global _client
    if _client is not None:
        return _client

    import key_store

    provider_name = config.VISION_PROVIDER.strip().lower()
    key_name = PROVIDER_KEYS.get(provider_name)
    if key_name is None:
        raise ValueError(
            f"Unknown VISION_PROVIDER '{provider_name}'. Available: {', '.join(PROVIDER_KEYS)}"
        )

    api_key = await key_store.get(key_name)
    if not api_key:
        raise VisionNotConfiguredError(
            f"{provider_name.capitalize()} API key not configured. "
            f"Set {key_name.upper()} in your .env file."
        )

    _client = _build(provider_name, api_key)
    logger.info("Loaded vision provider: %s", _client.full_name)
    return _client


def reset() -> None:
    """Drop the cached client (e.g. after an API key change)."""
    global _client
    _client = None
