"""Risk controller: turns raw strategy signals into bounded execution intents.

Every signal passes through here before reaching the order executor:

1. Notional clamp (entries only) to the strategy's per-signal maximum
2. Limit price normalization from cents into [0.01, 0.99]
3. Share size conversion, dropping non-finite or non-positive sizes
4. Daily cap reservation (entries only) against the shared store

Exits are sized by the position being closed, so they are neither clamped
nor charged against the daily budget. Rejections are logged and dropped;
they never surface as strategy-level errors.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta

from autonomy.models import (
    ExecutionIntent,
    SignalIntent,
    StrategyDefinition,
    StrategySignal,
    ensure_utc,
)
from autonomy.store import SharedStore

logger = logging.getLogger(__name__)

MIN_PRICE = 0.01
MAX_PRICE = 0.99
SHARE_DECIMALS = 4
MIN_CAP_TTL_SECONDS = 60


class RiskController:
    """Pre-trade controls applied per strategy, per tick."""

    def __init__(self, store: SharedStore) -> None:
        self.store = store

    async def apply_risk_controls(
        self,
        strategy: StrategyDefinition,
        signals: list[StrategySignal],
        now: datetime,
    ) -> list[ExecutionIntent]:
        """Return intents for the signals that pass, in input order."""
        now = ensure_utc(now)
        intents: list[ExecutionIntent] = []

        for signal in signals:
            is_exit = signal.intent == SignalIntent.EXIT
            notional = signal.size_usd if is_exit else min(signal.size_usd, strategy.max_notional)
            price = clamp(signal.limit_price_cents / 100.0, MIN_PRICE, MAX_PRICE)
            size_shares = shares_for(notional, price)

            if not math.isfinite(size_shares) or size_shares <= 0:
                logger.warning(
                    "risk_invalid_size",
                    extra={
                        "strategy_id": strategy.id,
                        "market_id": signal.market_id,
                        "notional": notional,
                        "price": price,
                    },
                )
                continue

            if not is_exit and not await self.reserve_daily_notional(strategy, notional, now):
                logger.warning(
                    "risk_daily_cap",
                    extra={
                        "strategy_id": strategy.id,
                        "market_id": signal.market_id,
                        "reason": "dailyCap",
                        "notional": notional,
                        "daily_cap": strategy.daily_cap,
                    },
                )
                continue

            intents.append(
                ExecutionIntent(
                    **signal.model_dump(),
                    limit_price=price,
                    size_shares=size_shares,
                    notional_usd=notional,
                )
            )

        return intents

    async def reserve_daily_notional(
        self, strategy: StrategyDefinition, amount: float, now: datetime
    ) -> bool:
        """Atomically charge ``amount`` against today's budget for the strategy."""
        return await self.store.atomic_increment_with_cap(
            daily_key(strategy.id, now),
            amount,
            strategy.daily_cap,
            seconds_until_midnight(now),
        )

    async def daily_usage(self, strategy: StrategyDefinition, now: datetime) -> float:
        return await self.store.get_float(daily_key(strategy.id, ensure_utc(now)))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def shares_for(notional: float, price: float) -> float:
    try:
        return round(notional / price, SHARE_DECIMALS)
    except (ZeroDivisionError, OverflowError, ValueError):
        return math.nan


def daily_key(strategy_id: str, now: datetime) -> str:
    return f"autonomy:strategy:{strategy_id}:daily:{now.strftime('%Y-%m-%d')}"


def seconds_until_midnight(now: datetime) -> int:
    """Seconds until the next UTC midnight, never less than a minute."""
    now = ensure_utc(now)
    tomorrow = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return max(MIN_CAP_TTL_SECONDS, int((tomorrow - now).total_seconds()))
