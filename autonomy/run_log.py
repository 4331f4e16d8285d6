"""Capped, newest-first history of strategy run summaries."""

from __future__ import annotations

import logging
from collections import deque

from pydantic import ValidationError

from autonomy.config import RUN_LOG_MAX_RUNS
from autonomy.errors import StoreError
from autonomy.models import StrategyRunSummary
from autonomy.store import SharedStore

logger = logging.getLogger(__name__)

RUN_LOG_KEY = "autonomy:runs"


class RunLog:
    """Append-only run history in the shared store.

    When the store is unavailable, summaries are kept in an in-process deque
    instead so a store outage never fails a tick.
    """

    def __init__(self, store: SharedStore, max_runs: int = RUN_LOG_MAX_RUNS) -> None:
        self._store = store
        self.max_runs = max_runs
        self._fallback: deque[StrategyRunSummary] = deque(maxlen=max_runs)

    async def record_strategy_run(self, summary: StrategyRunSummary) -> None:
        try:
            await self._store.list_push_trim(
                RUN_LOG_KEY, summary.model_dump_json(), self.max_runs
            )
            return
        except StoreError:
            logger.warning("run_log_write_failed", exc_info=True)
        self._fallback.appendleft(summary)

    async def fetch_recent_strategy_runs(self, limit: int = 10) -> list[StrategyRunSummary]:
        try:
            rows = await self._store.list_range(RUN_LOG_KEY, limit)
        except StoreError:
            logger.warning("run_log_read_failed", exc_info=True)
            return list(self._fallback)[:limit]

        runs: list[StrategyRunSummary] = []
        for row in rows:
            try:
                runs.append(StrategyRunSummary.model_validate_json(row))
            except ValidationError:
                logger.warning("run_log_entry_invalid")
        return runs
