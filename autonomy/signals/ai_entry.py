"""AI confidence entry: ask a chat model for high-conviction picks among
live market snapshots and keep only those that reference real markets."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

import httpx
from openai import OpenAIError
from pydantic import BaseModel, Field, ValidationError

from autonomy.api.ai_client import AiSignalClient
from autonomy.api.clob_client import MarketDataGateway
from autonomy.models import (
    Market,
    Side,
    SignalIntent,
    StrategyDefinition,
    StrategySignal,
    StrategySource,
)
from autonomy.signals.base import (
    Capability,
    SignalGenerator,
    clamp,
    match_outcome_to_token,
    param_float,
)

logger = logging.getLogger(__name__)

SIGNAL_TTL = timedelta(minutes=15)
MAX_PICKS = 3


class AiOpportunity(BaseModel):
    condition_id: str
    outcome: str
    side: Side
    confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    limit_price_cents: float = Field(..., ge=1, le=99)
    size_usd: float = Field(..., ge=5)
    rationale: str = ""


class AiOpportunities(BaseModel):
    opportunities: list[AiOpportunity] = Field(default_factory=list, max_length=MAX_PICKS)


class AiConfidenceEntry(SignalGenerator):
    source = StrategySource.AI_ENTRY
    capability = Capability.ENTRY

    def __init__(self, gateway: MarketDataGateway, ai_client: AiSignalClient) -> None:
        self.gateway = gateway
        self.ai_client = ai_client

    async def generate(self, strategy: StrategyDefinition, now: datetime) -> list[StrategySignal]:
        if not self.ai_client.configured:
            logger.warning("ai_entry_disabled", extra={"strategy_id": strategy.id})
            return []

        params = strategy.params
        try:
            markets = await self.gateway.market_snapshots(
                limit=int(param_float(params, "market_limit", 8))
            )
        except (httpx.HTTPError, ValueError):
            logger.error("ai_entry_markets_failed", extra={"strategy_id": strategy.id}, exc_info=True)
            return []

        markets = filter_markets(
            markets,
            max_spread=param_float(params, "max_spread", float("inf")),
            min_liquidity=param_float(params, "min_liquidity", 0.0),
        )
        if not markets:
            logger.warning("ai_entry_no_markets", extra={"strategy_id": strategy.id})
            return []

        try:
            parsed = await self.ai_client.generate_object(
                build_prompt(markets, strategy), AiOpportunities
            )
        except (OpenAIError, ValidationError) as exc:
            logger.error(
                "ai_entry_prompt_failed",
                extra={"strategy_id": strategy.id, "error": str(exc)},
            )
            return []

        min_confidence = param_float(params, "min_confidence", 0.0)
        by_id = {m.condition_id: m for m in markets}
        expires_at = now + SIGNAL_TTL
        signals: list[StrategySignal] = []

        for opp in parsed.opportunities:
            market = by_id.get(opp.condition_id)
            if market is None:
                logger.warning(
                    "ai_entry_unknown_market",
                    extra={"strategy_id": strategy.id, "condition_id": opp.condition_id},
                )
                continue
            token = match_outcome_to_token(market, opp.outcome)
            if token is None:
                logger.warning(
                    "ai_entry_unknown_outcome",
                    extra={
                        "strategy_id": strategy.id,
                        "condition_id": market.condition_id,
                        "outcome": opp.outcome,
                    },
                )
                continue
            if opp.confidence < min_confidence:
                continue

            token_id, outcome = token
            signals.append(
                StrategySignal(
                    strategy_id=strategy.id,
                    source=strategy.source,
                    mode=strategy.mode,
                    market_id=market.condition_id,
                    market_question=market.question,
                    token_id=token_id,
                    outcome=outcome,
                    side=opp.side,
                    size_usd=min(opp.size_usd, strategy.max_notional),
                    limit_price_cents=clamp(opp.limit_price_cents, 1, 99),
                    confidence=clamp(opp.confidence, 0.1, 1.0),
                    reason=opp.rationale,
                    expires_at=expires_at,
                    intent=SignalIntent.ENTER,
                    metadata={"response": opp.model_dump(mode="json")},
                )
            )

        logger.info(
            "ai_entry_signals",
            extra={"strategy_id": strategy.id, "proposed": len(parsed.opportunities), "kept": len(signals)},
        )
        return signals


def filter_markets(markets: list[Market], max_spread: float, min_liquidity: float) -> list[Market]:
    """Drop markets with a known spread or depth outside the guardrails."""
    kept = []
    for market in markets:
        if market.spread is not None and market.spread > max_spread:
            continue
        if market.liquidity is not None and market.liquidity < min_liquidity:
            continue
        kept.append(market)
    return kept


def build_prompt(markets: list[Market], strategy: StrategyDefinition) -> str:
    lines = []
    for idx, market in enumerate(markets, start=1):
        primary = (
            f"{market.primary_outcome} ({market.primary_token_id})"
            if market.primary_outcome
            else "Outcome A"
        )
        secondary = (
            f"{market.secondary_outcome} ({market.secondary_token_id})"
            if market.secondary_outcome
            else "Outcome B"
        )
        lines.append(
            f"{idx}. {market.question}\n"
            f"   - condition_id: {market.condition_id}\n"
            f"   - outcomes: {primary} vs {secondary}\n"
            f"   - bid {_fmt(market.best_bid)}c / ask {_fmt(market.best_ask)}c "
            f"liquidity {market.liquidity if market.liquidity is not None else 'n/a'}"
        )

    return "\n".join(
        [
            "You are an autonomous Polymarket sniping agent. Review the markets below "
            f"and output up to {MAX_PICKS} high-conviction trades.",
            "Only choose markets from the provided list. Use their exact condition_id and outcome strings.",
            f"Guardrails: max notional ${strategy.max_notional:.0f}, limit price between 1c and 99c, "
            "confidence between 0 and 1.",
            'Return JSON of the form {"opportunities": [{"condition_id", "outcome", "side" (BUY|SELL), '
            '"confidence", "limit_price_cents", "size_usd", "rationale"}]}.',
            "",
            "Markets:",
            "\n\n".join(lines),
            "",
            "Focus on spreads, liquidity gaps, or clear catalysts. Keep rationales concise and factual.",
        ]
    )


def _fmt(value) -> str:
    return f"{value:.2f}" if value is not None else "--"
