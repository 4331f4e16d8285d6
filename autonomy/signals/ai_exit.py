"""AI exit director: the chat model reviews managed positions with their
live spread and hold time and picks which to unwind now."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from openai import OpenAIError
from pydantic import BaseModel, Field, ValidationError

from autonomy.api.ai_client import AiSignalClient
from autonomy.api.clob_client import MarketDataGateway
from autonomy.errors import StoreError, VenueError
from autonomy.execution.position_manager import ManagedPositionRegistry
from autonomy.models import (
    BestPrices,
    ManagedPosition,
    Side,
    SignalIntent,
    StrategyDefinition,
    StrategySignal,
    StrategySource,
)
from autonomy.signals.base import Capability, SignalGenerator

logger = logging.getLogger(__name__)

SIGNAL_TTL = timedelta(minutes=5)


class AiExitDecision(BaseModel):
    market_id: str
    token_id: str
    limit_price_cents: float = Field(..., ge=1, le=99)
    reason: str = ""


class AiExitDecisions(BaseModel):
    exits: list[AiExitDecision] = Field(default_factory=list, max_length=3)


class AiExit(SignalGenerator):
    source = StrategySource.AI_EXIT
    capability = Capability.EXIT

    def __init__(
        self,
        gateway: MarketDataGateway,
        registry: ManagedPositionRegistry,
        ai_client: AiSignalClient,
    ) -> None:
        self.gateway = gateway
        self.registry = registry
        self.ai_client = ai_client

    async def generate(self, strategy: StrategyDefinition, now: datetime) -> list[StrategySignal]:
        if not self.ai_client.configured:
            logger.warning("ai_exit_disabled", extra={"strategy_id": strategy.id})
            return []

        try:
            managed = await self.registry.get_managed_positions()
        except (StoreError, VenueError) as exc:
            logger.error(
                "ai_exit_positions_failed",
                extra={"strategy_id": strategy.id, "error": str(exc)},
            )
            return []
        if not managed:
            return []

        contexts = [(p, await self.gateway.best_prices(p.token_id)) for p in managed]

        try:
            parsed = await self.ai_client.generate_object(build_prompt(contexts, now), AiExitDecisions)
        except (OpenAIError, ValidationError) as exc:
            logger.error(
                "ai_exit_prompt_failed",
                extra={"strategy_id": strategy.id, "error": str(exc)},
            )
            return []

        by_key = {(p.market_id, p.token_id): (p, prices) for p, prices in contexts}
        signals: list[StrategySignal] = []
        for decision in parsed.exits:
            match = by_key.get((decision.market_id, decision.token_id))
            if match is None:
                logger.warning(
                    "ai_exit_unknown_position",
                    extra={"strategy_id": strategy.id, "token_id": decision.token_id},
                )
                continue
            position, prices = match
            exit_side = position.side.opposite
            price = exit_price(decision.limit_price_cents, prices, exit_side)

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
                    confidence=0.75,
                    reason=decision.reason,
                    expires_at=now + SIGNAL_TTL,
                    intent=SignalIntent.EXIT,
                )
            )
        return signals


def exit_price(requested: float, prices: BestPrices, side: Side) -> float:
    """Never quote better than the touch: SELL at most the bid, BUY at least the ask."""
    if side == Side.SELL:
        reference: Optional[float] = prices.best_bid_cents
        return requested if reference is None else min(requested, reference)
    reference = prices.best_ask_cents
    return requested if reference is None else max(requested, reference)


def build_prompt(contexts: list[tuple[ManagedPosition, BestPrices]], now: datetime) -> str:
    blocks = []
    for idx, (position, prices) in enumerate(contexts, start=1):
        spread = prices.spread_cents
        blocks.append(
            f"{idx}. {position.question or 'Unknown market'} ({position.market_id})\n"
            f"   - token_id: {position.token_id}\n"
            f"   - exposure: ${position.exposure_usd:.2f} "
            f"({'Long' if position.side == Side.BUY else 'Short'})\n"
            f"   - spread: {f'{spread:.2f}' if spread is not None else 'n/a'}c\n"
            f"   - time held: {round(position.held_minutes(now))} minutes"
        )
    return "\n".join(
        [
            "You are an autonomous Polymarket exit director. Determine which existing positions "
            "should be closed now.",
            "Only reference the positions provided. Limit exits to situations where liquidity is "
            "adequate or the thesis is invalidated.",
            'Return JSON of the form {"exits": [{"market_id", "token_id", "limit_price_cents", "reason"}]} '
            "with at most 3 exits.",
            "",
            "Positions:",
            "\n\n".join(blocks),
        ]
    )
