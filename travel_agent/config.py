"""Centralized configuration for the travel agent.

Every value comes from the environment (or a local ``.env`` file).

Secrets are *not* read at import time: ``require_env`` is called when a
session or a Monde login actually needs them, so a missing model key fails
loudly at session creation instead of breaking every import.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

from travel_agent.errors import ConfigurationError

load_dotenv()


def require_env(name: str) -> str:
    """Return the value of *name*, or raise ``ConfigurationError``."""
    value = os.getenv(name)
    # Placeholders copied from .env templates count as missing
    if value and not value.startswith("your_"):
        return value
    raise ConfigurationError(
        f"Missing required configuration: {name}. Set it in the environment or in .env."
    )


def _env_flag(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


# ── LLM ─────────────────────────────────────────────────────────────
MODEL_NAME: str = os.getenv("MODEL_NAME", "claude-sonnet-4-5")
MODEL_TEMPERATURE: float = float(os.getenv("MODEL_TEMPERATURE", "0.5"))
MODEL_MAX_TOKENS: int = int(os.getenv("MODEL_MAX_TOKENS", "2048"))

# Upper bound on tool rounds per turn (one model step + one tool step each)
MAX_TOOL_ROUNDS: int = int(os.getenv("MAX_TOOL_ROUNDS", "25"))

# Server-side web search as an extra grounding source
WEB_SEARCH_ENABLED: bool = _env_flag("WEB_SEARCH_ENABLED")

# ── Monde back-office ───────────────────────────────────────────────
MONDE_BASE_URL: str = os.getenv("MONDE_BASE_URL", "https://web.monde.com.br/api/v2")
MONDE_TIMEOUT_SECONDS: float = float(os.getenv("MONDE_TIMEOUT_SECONDS", "20"))

# ── Sales ledger (spreadsheet web app) ──────────────────────────────
SALES_API_URL: str = os.getenv("SALES_API_URL", "")
SALES_TIMEOUT_SECONDS: float = float(os.getenv("SALES_TIMEOUT_SECONDS", "15"))

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
