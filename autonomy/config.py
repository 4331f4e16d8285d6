"""Autonomy engine configuration loaded from environment variables."""

import logging
import os
import sys

from pythonjsonlogger import jsonlogger


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes"}


# ---------------------------------------------------------------------------
# Shared store (Redis). Unset -> in-process MemoryStore.
# ---------------------------------------------------------------------------
REDIS_URL = os.environ.get("REDIS_URL", "")
REDIS_SOCKET_TIMEOUT = float(os.environ.get("REDIS_SOCKET_TIMEOUT", "5"))

# ---------------------------------------------------------------------------
# Polymarket API base URLs
# ---------------------------------------------------------------------------
CLOB_API_URL = os.environ.get("CLOB_API_URL", "https://clob.polymarket.com")
HTTP_TIMEOUT = float(os.environ.get("HTTP_TIMEOUT", "15"))  # httpx timeout in seconds

# ---------------------------------------------------------------------------
# Execution venue
# ---------------------------------------------------------------------------
EXECUTION_PRIVATE_KEY = os.environ.get("EXECUTION_PRIVATE_KEY", "")
EXECUTION_FUNDER_ADDRESS = os.environ.get("EXECUTION_FUNDER_ADDRESS", "")
EXECUTION_CHAIN_ID = int(os.environ.get("EXECUTION_CHAIN_ID", "137"))  # Polygon
EXECUTION_SIGNATURE_TYPE = int(os.environ.get("EXECUTION_SIGNATURE_TYPE", "2"))  # Safe proxy

# Simulation unless explicitly enabled
AUTONOMY_TRADING_ENABLED = _env_flag("AUTONOMY_TRADING_ENABLED")
ORDER_TTL_SECONDS = int(os.environ.get("ORDER_TTL_SECONDS", "300"))  # 5 minutes

# ---------------------------------------------------------------------------
# Readiness gate (operator Safe)
# ---------------------------------------------------------------------------
AUTONOMY_REQUIRE_SAFE = _env_flag("AUTONOMY_REQUIRE_SAFE", "true")
POLYMARKET_SAFE_ADDRESS = os.environ.get("POLYMARKET_SAFE_ADDRESS", "")

# ---------------------------------------------------------------------------
# Signal sources
# ---------------------------------------------------------------------------
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
OPENAI_BASE_URL = os.environ.get("OPENAI_BASE_URL") or None
AUTONOMY_AI_MODEL = os.environ.get("AUTONOMY_AI_MODEL", "gpt-4o-mini")

SPORTRADAR_API_KEY = os.environ.get("SPORTRADAR_API_KEY", "")
SPORTRADAR_INJURIES_URL = os.environ.get(
    "SPORTRADAR_INJURIES_URL",
    "https://api.sportradar.us/nba/trial/v8/en/league/injuries.json",
)

# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------
DUE_WINDOW_SECONDS = 60          # cron trigger fires once per minute
RUN_LOG_MAX_RUNS = 20
AUTONOMY_STRATEGIES_FILE = os.environ.get("AUTONOMY_STRATEGIES_FILE", "")

# ---------------------------------------------------------------------------
# Trigger endpoint / health check
# ---------------------------------------------------------------------------
CRON_SECRET = os.environ.get("CRON_SECRET", "")
HEALTH_CHECK_PORT = int(os.environ.get("HEALTH_CHECK_PORT", "8080"))

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


def setup_logging() -> None:
    """Configure structured JSON logging."""
    handler = logging.StreamHandler(sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(LOG_LEVEL)

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
