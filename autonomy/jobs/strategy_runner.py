"""Job: strategy tick. Runs every due strategy once.

Wires the engine from configuration on first use and keeps the pieces as
module-level singletons so the scheduler job, the /run trigger and the
status endpoints all share one store, venue and run log.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from autonomy.api.ai_client import AiSignalClient
from autonomy.api.clob_client import ClobMarketData
from autonomy.api.sportradar_client import SportradarClient
from autonomy.config import (
    AUTONOMY_TRADING_ENABLED,
    CRON_SECRET,
    EXECUTION_PRIVATE_KEY,
    RUN_LOG_MAX_RUNS,
)
from autonomy.execution.engine import OrderExecutor
from autonomy.execution.position_manager import ManagedPositionRegistry
from autonomy.execution.risk_manager import RiskController
from autonomy.execution.venue import ClobVenue, ExecutionVenue
from autonomy.models import StrategyRunSummary
from autonomy.readiness import OperatorSafeGate
from autonomy.run_log import RunLog
from autonomy.signals import build_generator_table
from autonomy.store import SharedStore, build_store
from autonomy.strategies import list_strategies
from autonomy.strategy_engine import StrategyEngine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Module-level singletons (initialized on first use)
# ---------------------------------------------------------------------------

_store: Optional[SharedStore] = None
_gateway: Optional[ClobMarketData] = None
_engine: Optional[StrategyEngine] = None
_run_log: Optional[RunLog] = None


def _get_engine() -> StrategyEngine:
    """Lazy-initialize the strategy engine and its collaborators."""
    global _store, _gateway, _engine, _run_log

    if _engine is not None:
        return _engine

    _store = build_store()
    _gateway = ClobMarketData()
    _run_log = RunLog(_store, max_runs=RUN_LOG_MAX_RUNS)

    venue: Optional[ExecutionVenue] = None
    if EXECUTION_PRIVATE_KEY:
        venue = ClobVenue()
    else:
        logger.warning("venue_not_configured")

    registry = ManagedPositionRegistry(_store, venue)
    generators = build_generator_table(
        gateway=_gateway,
        registry=registry,
        ai_client=AiSignalClient(),
        sportradar=SportradarClient(),
    )
    _engine = StrategyEngine(
        strategies=list_strategies(),
        generators=generators,
        risk=RiskController(_store),
        executor=OrderExecutor(venue, registry, OperatorSafeGate()),
        run_log=_run_log,
    )
    logger.info(
        "strategy_engine_ready",
        extra={
            "strategies": len(_engine.strategies),
            "trading_enabled": AUTONOMY_TRADING_ENABLED,
            "venue": venue is not None,
        },
    )
    return _engine


async def run_strategy_tick(now: Optional[datetime] = None) -> StrategyRunSummary:
    """Evaluate all strategies for the current minute."""
    return await _get_engine().run_scheduled_strategies(now)


async def fetch_recent_runs(limit: int = 10) -> list[StrategyRunSummary]:
    _get_engine()
    return await _run_log.fetch_recent_strategy_runs(limit)


async def get_autonomy_status() -> dict:
    """Return strategy table, recent runs, daily usage and trading flags."""
    engine = _get_engine()
    runs = await fetch_recent_runs(10)
    return {
        "strategies": [s.model_dump(mode="json") for s in engine.list_strategies()],
        "runs": [r.model_dump(mode="json") for r in runs],
        "daily_usage": await engine.daily_usage(),
        "trading_enabled": AUTONOMY_TRADING_ENABLED,
        "cron_configured": bool(CRON_SECRET),
    }


async def close() -> None:
    """Release network resources held by the singletons."""
    global _store, _gateway, _engine, _run_log
    if _gateway is not None:
        await _gateway.close()
    if _store is not None:
        await _store.close()
    _store = _gateway = _engine = _run_log = None
