"""Maker reversion exit: unwind managed positions once the book tightens
back up or the position has been held too long."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from autonomy.api.clob_client import MarketDataGateway
from autonomy.errors import StoreError, VenueError
from autonomy.execution.position_manager import ManagedPositionRegistry
from autonomy.models import (
    Side,
    SignalIntent,
    StrategyDefinition,
    StrategySignal,
    StrategySource,
)
from autonomy.signals.base import Capability, SignalGenerator, param_float

logger = logging.getLogger(__name__)

SIGNAL_TTL = timedelta(minutes=5)


class MakerReversionExit(SignalGenerator):
    source = StrategySource.MAKER_EXIT
    capability = Capability.EXIT

    def __init__(self, gateway: MarketDataGateway, registry: ManagedPositionRegistry) -> None:
        self.gateway = gateway
        self.registry = registry

    async def generate(self, strategy: StrategyDefinition, now: datetime) -> list[StrategySignal]:
        try:
            managed = await self.registry.get_managed_positions()
        except (StoreError, VenueError) as exc:
            logger.error(
                "maker_exit_positions_failed",
                extra={"strategy_id": strategy.id, "error": str(exc)},
            )
            return []
        if not managed:
            return []

        spread_threshold = param_float(strategy.params, "spread_threshold", 1.5)
        max_hold_minutes = param_float(strategy.params, "max_hold_minutes", 20)
        signals: list[StrategySignal] = []

        for position in managed:
            prices = await self.gateway.best_prices(position.token_id)
            spread = prices.spread_cents

            reasons = []
            if spread is not None and spread <= spread_threshold:
                reasons.append(f"Spread normalized to {spread:.2f}c")
            if position.held_minutes(now) >= max_hold_minutes:
                reasons.append(f"exceeded {max_hold_minutes:g}m hold")
            if not reasons:
                continue

            exit_side = position.side.opposite
            price = prices.best_bid_cents if exit_side == Side.SELL else prices.best_ask_cents
            if price is None:
                logger.warning(
                    "maker_exit_missing_price",
                    extra={
                        "strategy_id": strategy.id,
                        "market_id": position.market_id,
                        "token_id": position.token_id,
                    },
                )
                continue

            reason = "; ".join(reasons)
            signals.append(
                StrategySignal(
                    strategy_id=strategy.id,
                    source=strategy.source,
                    mode=strategy.mode,
                    market_id=position.market_id,
                    market_question=position.question or "Unknown market",
                    token_id=position.token_id,
                    outcome=position.outcome,
                    side=exit_side,
                    size_usd=round(position.entry_shares * price / 100.0, 2),
                    limit_price_cents=price,
                    confidence=0.65,
                    reason=reason[0].upper() + reason[1:],
                    expires_at=now + SIGNAL_TTL,
                    intent=SignalIntent.EXIT,
                )
            )

        return signals
