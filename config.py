"""
Central configuration — reads from .env file.

API keys can also be stored in the database; key_store.py checks the DB
first and falls back to the values below.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# ── Storage ───────────────────────────────────────────────────────────────────
# SQLite catalog + API keys live here; mount it as a volume in Docker
DATA_DIR: str = os.getenv("DATA_DIR", "data")

# ── AI Vision provider ────────────────────────────────────────────────────────
# anthropic → Claude (default)
# openai    → GPT-4o family
VISION_PROVIDER: str = os.getenv("VISION_PROVIDER", "anthropic")

ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
OPENAI_API_KEY: str | None    = os.getenv("OPENAI_API_KEY")

ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
OPENAI_MODEL: str    = os.getenv("OPENAI_MODEL", "gpt-4o")

# Shown to the model in the extraction prompt
STORE_NAME: str = os.getenv("STORE_NAME", "My Kind Kandles & Boutique")

# Extra "Important" bullets for the extraction prompt, separated by "|"
_DEFAULT_PROMPT_HINTS = (
    'For candles, look for brand name "My Kind Kandles" or "Kind Kandles"'
    '|Common scent collections include "Calm Down Girl" (eucalyptus/spearmint)'
)
PROMPT_HINTS: list[str] = [
    h.strip() for h in os.getenv("PROMPT_HINTS", _DEFAULT_PROMPT_HINTS).split("|") if h.strip()
]

# ── Timeouts / limits (seconds, bytes) ────────────────────────────────────────
IMAGE_FETCH_TIMEOUT: float = float(os.getenv("IMAGE_FETCH_TIMEOUT", "15"))
VISION_TIMEOUT: float      = float(os.getenv("VISION_TIMEOUT", "60"))
MAX_IMAGE_BYTES: int       = int(os.getenv("MAX_IMAGE_BYTES", str(10 * 1024 * 1024)))

# ── HTTP server ───────────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8080"))
