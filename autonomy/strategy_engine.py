"""Strategy scheduler: evaluates every registered strategy once per tick.

For each strategy, in registry order:

1. Skip if disabled or its cron schedule has no fire time in the last minute
2. Dispatch to the signal generator registered for its source
3. Pass the signals through the risk controller
4. Hand the surviving intents to the order executor

One strategy failing never stops the others. The tick summary is appended
to the run log; a run log failure never fails the tick.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.triggers.cron import CronTrigger

from autonomy.config import DUE_WINDOW_SECONDS
from autonomy.errors import StoreError
from autonomy.execution.engine import OrderExecutor
from autonomy.execution.risk_manager import RiskController
from autonomy.models import (
    OrderStatus,
    RunStatus,
    StrategyDefinition,
    StrategyRunResult,
    StrategyRunSummary,
    StrategySource,
    ensure_utc,
    utcnow,
)
from autonomy.run_log import RunLog
from autonomy.signals.base import SignalGenerator

logger = logging.getLogger(__name__)

NO_SIGNALS_REASON = "no qualifying signals"
RISK_REJECTED_REASON = "risk filters rejected signals"


_CRON_WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat", "sun")


def crontab_trigger(schedule: str) -> CronTrigger:
    """Build a UTC trigger from a standard 5-field cron expression.

    Raises ValueError on a malformed expression.
    """
    values = schedule.split()
    if len(values) != 5:
        raise ValueError(f"Wrong number of fields; got {len(values)}, expected 5")
    return CronTrigger(
        minute=values[0],
        hour=values[1],
        day=values[2],
        month=values[3],
        day_of_week=_day_of_week_names(values[4]),
        timezone=timezone.utc,
    )


def _day_of_week_names(field: str) -> str:
    """Rewrite numeric cron weekdays as names.

    Cron counts 0 (and 7) as Sunday while APScheduler counts 0 as Monday,
    so numbers, ranges and steps are expanded to explicit day names.
    Named days and ``*`` pass through unchanged.
    """
    names: list[str] = []
    for part in field.split(","):
        base, _, step = part.partition("/")
        if base == "*" and not step:
            names.append(part)
            continue
        if base == "*":
            base = "0-6"
        first, _, last = base.partition("-")
        if not (first.isdigit() and (last.isdigit() or not last) and (step.isdigit() or not step)):
            names.append(part)
            continue

        start = int(first)
        end = int(last) if last else (6 if step else start)
        stride = int(step) if step else 1
        if start > end or end > 7 or stride == 0:
            raise ValueError(f"Invalid day of week: {part!r}")
        names.extend(_CRON_WEEKDAYS[day] for day in range(start, end + 1, stride))
    return ",".join(dict.fromkeys(names))


def is_due(schedule: str, now: datetime, window_seconds: int = DUE_WINDOW_SECONDS) -> bool:
    """True iff the cron expression fires at some t with now - window < t <= now.

    A malformed expression is logged and treated as not due.
    """
    now = ensure_utc(now)
    try:
        trigger = crontab_trigger(schedule)
    except ValueError as exc:
        logger.warning("schedule_invalid", extra={"schedule": schedule, "error": str(exc)})
        return False

    window_start = now - timedelta(seconds=window_seconds) + timedelta(microseconds=1)
    fire_time = trigger.get_next_fire_time(None, window_start)
    return fire_time is not None and fire_time <= now


class StrategyEngine:
    """Runs due strategies through generator, risk controller and executor."""

    def __init__(
        self,
        strategies: list[StrategyDefinition],
        generators: dict[StrategySource, SignalGenerator],
        risk: RiskController,
        executor: OrderExecutor,
        run_log: RunLog,
    ) -> None:
        self.strategies = list(strategies)
        self.generators = dict(generators)
        self.risk = risk
        self.executor = executor
        self.run_log = run_log

    def list_strategies(self) -> list[StrategyDefinition]:
        return [s.model_copy() for s in self.strategies]

    async def daily_usage(self, now: Optional[datetime] = None) -> dict[str, float]:
        """Notional reserved today per capped strategy; empty if the store is down."""
        now = ensure_utc(now or utcnow())
        try:
            return {
                s.id: await self.risk.daily_usage(s, now)
                for s in self.strategies
                if s.daily_cap > 0
            }
        except StoreError as exc:
            logger.warning("daily_usage_unavailable", extra={"error": str(exc)})
            return {}

    async def run_scheduled_strategies(self, now: Optional[datetime] = None) -> StrategyRunSummary:
        now = ensure_utc(now or utcnow())
        results = []
        for strategy in self.strategies:
            results.append(await self._run_one(strategy, now))

        summary = StrategyRunSummary(run_at=now, results=results)
        try:
            await self.run_log.record_strategy_run(summary)
        except Exception:
            logger.error("run_log_record_failed", exc_info=True)

        logger.info(
            "strategy_tick_complete",
            extra={
                "run_at": now.isoformat(),
                "queued": sum(1 for r in results if r.status == RunStatus.QUEUED),
                "errors": sum(1 for r in results if r.status == RunStatus.ERROR),
            },
        )
        return summary

    async def _run_one(self, strategy: StrategyDefinition, now: datetime) -> StrategyRunResult:
        start = time.perf_counter()

        def result(status: RunStatus, reason: Optional[str] = None, **kwargs) -> StrategyRunResult:
            return StrategyRunResult(
                strategy_id=strategy.id,
                status=status,
                reason=reason,
                duration_ms=(time.perf_counter() - start) * 1000,
                **kwargs,
            )

        if not strategy.enabled:
            return result(RunStatus.SKIPPED, "disabled")
        if not is_due(strategy.schedule, now):
            return result(RunStatus.SKIPPED, "not due this tick")

        generator = self.generators.get(strategy.source)
        if generator is None:
            logger.warning(
                "strategy_no_generator",
                extra={"strategy_id": strategy.id, "source": strategy.source.value},
            )
            return result(RunStatus.SKIPPED, f"no generator for source {strategy.source.value}")
        if generator.capability.mode != strategy.mode:
            logger.warning(
                "strategy_mode_mismatch",
                extra={
                    "strategy_id": strategy.id,
                    "source": strategy.source.value,
                    "mode": strategy.mode.value,
                },
            )
            return result(
                RunStatus.SKIPPED,
                f"{strategy.source.value} generator cannot run {strategy.mode.value} strategies",
            )

        signals_count = 0
        try:
            signals = await generator.generate(strategy, now)
            signals_count = len(signals)
            if not signals:
                return result(RunStatus.SKIPPED, NO_SIGNALS_REASON, signals=0)

            intents = await self.risk.apply_risk_controls(strategy, signals, now)
            if not intents:
                return result(RunStatus.SKIPPED, RISK_REJECTED_REASON, signals=signals_count)

            executions = await self.executor.execute_intents(intents, now)
        except Exception as exc:
            logger.error(
                "strategy_run_failed",
                extra={"strategy_id": strategy.id, "error": str(exc)},
                exc_info=True,
            )
            return result(RunStatus.ERROR, str(exc) or type(exc).__name__, signals=signals_count)

        submitted = sum(1 for e in executions if e.status == OrderStatus.SUBMITTED)
        if submitted:
            logger.info(
                "strategy_queued",
                extra={"strategy_id": strategy.id, "signals": signals_count, "trades_enqueued": submitted},
            )
            return result(
                RunStatus.QUEUED, signals=signals_count, trades_enqueued=submitted
            )

        reason = next((e.reason for e in executions if e.reason), NO_SIGNALS_REASON)
        return result(RunStatus.SKIPPED, reason, signals=signals_count)
