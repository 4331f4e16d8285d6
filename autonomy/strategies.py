"""Strategy registry.

The built-in table is what the engine runs unless AUTONOMY_STRATEGIES_FILE
points at a JSON array of definitions with the same fields.
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from autonomy.config import AUTONOMY_STRATEGIES_FILE
from autonomy.models import StrategyDefinition, StrategyMode, StrategySource

logger = logging.getLogger(__name__)

STATIC_STRATEGIES: list[StrategyDefinition] = [
    StrategyDefinition(
        id="ai-confidence-v1",
        name="AI Confidence Sniper",
        schedule="*/1 * * * *",
        source=StrategySource.AI_ENTRY,
        mode=StrategyMode.ENTRY,
        max_notional=50,
        daily_cap=200,
        params={
            "min_confidence": 0.75,
            "max_spread": 2,
            "min_liquidity": 20000,
            "market_limit": 8,
        },
    ),
    StrategyDefinition(
        id="sportradar-injury-v1",
        name="Sportradar Injury Pulse",
        schedule="*/1 * * * *",
        source=StrategySource.SPORTRADAR_ENTRY,
        mode=StrategyMode.ENTRY,
        max_notional=40,
        daily_cap=200,
        params={
            "injury_statuses": ["Out", "Doubtful"],
            "max_spread": 4,
            "cooldown_minutes": 10,
        },
    ),
    StrategyDefinition(
        id="maker-reversion-exit-v1",
        name="Maker Reversion Exit",
        schedule="*/1 * * * *",
        source=StrategySource.MAKER_EXIT,
        mode=StrategyMode.EXIT,
        max_notional=50,
        params={"spread_threshold": 1.5, "max_hold_minutes": 20},
    ),
    StrategyDefinition(
        id="ai-exit-v1",
        name="AI Exit Director",
        schedule="*/5 * * * *",
        source=StrategySource.AI_EXIT,
        mode=StrategyMode.EXIT,
        max_notional=50,
    ),
]


def list_strategies() -> list[StrategyDefinition]:
    """Return the active strategy table, in evaluation order."""
    if AUTONOMY_STRATEGIES_FILE:
        return load_strategies(AUTONOMY_STRATEGIES_FILE)
    return [s.model_copy() for s in STATIC_STRATEGIES]


def load_strategies(path: str | Path) -> list[StrategyDefinition]:
    """Load definitions from a JSON array.

    Raises ValueError on unreadable JSON, a non-array document, invalid
    definitions or duplicate ids.
    """
    with open(path) as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{path}: invalid JSON: {exc}") from exc

    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON array of strategies")

    try:
        strategies = [StrategyDefinition.model_validate(item) for item in raw]
    except ValidationError as exc:
        raise ValueError(f"{path}: invalid strategy definition: {exc}") from exc

    ids = [s.id for s in strategies]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ValueError(f"{path}: duplicate strategy ids {duplicates}")

    logger.info("strategies_loaded", extra={"path": str(path), "count": len(strategies)})
    return strategies
