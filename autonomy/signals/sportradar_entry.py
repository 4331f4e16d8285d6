"""Sportradar injury entry.

Fresh Out/Doubtful injury updates are matched to live markets by team name
or alias, and the engine buys the opponent's outcome token. Confidence is
higher for a confirmed Out than for a Doubtful tag.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

import httpx

from autonomy.api.clob_client import MarketDataGateway
from autonomy.api.sportradar_client import SportradarClient
from autonomy.models import (
    Market,
    Side,
    SignalIntent,
    StrategyDefinition,
    StrategySignal,
    StrategySource,
    ensure_utc,
)
from autonomy.signals.base import (
    Capability,
    SignalGenerator,
    clamp,
    includes_normalized,
    normalize,
    param_float,
)

logger = logging.getLogger(__name__)

SIGNAL_TTL = timedelta(minutes=30)
MARKET_LIMIT = 20
DEFAULT_STATUSES = ("out", "doubtful")
DEFAULT_PRICE_CENTS = 52.0
MIN_SIZE_USD = 5.0


class SportradarInjuryEntry(SignalGenerator):
    source = StrategySource.SPORTRADAR_ENTRY
    capability = Capability.ENTRY

    def __init__(self, gateway: MarketDataGateway, sportradar: SportradarClient) -> None:
        self.gateway = gateway
        self.sportradar = sportradar

    async def generate(self, strategy: StrategyDefinition, now: datetime) -> list[StrategySignal]:
        if not self.sportradar.configured:
            logger.warning("sportradar_no_key", extra={"strategy_id": strategy.id})
            return []

        try:
            injuries = await self.sportradar.fetch_injuries()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "sportradar_fetch_failed",
                extra={"strategy_id": strategy.id, "error": str(exc)},
            )
            return []
        if not injuries:
            return []

        try:
            markets = await self.gateway.market_snapshots(limit=MARKET_LIMIT)
        except (httpx.HTTPError, ValueError):
            logger.error("sportradar_markets_failed", extra={"strategy_id": strategy.id}, exc_info=True)
            return []
        if not markets:
            return []

        params = strategy.params
        statuses = _statuses(params.get("injury_statuses"))
        cutoff = now - timedelta(minutes=param_float(params, "cooldown_minutes", 30))
        max_spread = param_float(params, "max_spread", float("inf"))
        if "max_notional" in params:
            per_signal_cap = min(param_float(params, "max_notional", strategy.max_notional), strategy.max_notional)
        else:
            per_signal_cap = strategy.max_notional * 0.5
        size_usd = max(MIN_SIZE_USD, min(per_signal_cap, strategy.max_notional))
        expires_at = now + SIGNAL_TTL

        signals: list[StrategySignal] = []
        seen_tokens: set[str] = set()

        for event in injuries:
            if event.status.lower() not in statuses:
                continue
            updated_at = _parse_timestamp(event.updated_at)
            if updated_at is not None and updated_at < cutoff:
                continue

            market = next((m for m in markets if is_market_about_team(m, event.team, event.alias)), None)
            if market is None:
                continue
            if market.spread is not None and market.spread > max_spread:
                logger.debug(
                    "sportradar_market_too_wide",
                    extra={"market_id": market.condition_id, "spread": market.spread},
                )
                continue

            opponent = resolve_opponent_token(market, event.team, event.alias)
            if opponent is None:
                continue
            token_id, outcome = opponent
            if token_id in seen_tokens:
                continue
            seen_tokens.add(token_id)

            price = market.best_ask if market.best_ask is not None else DEFAULT_PRICE_CENTS
            signals.append(
                StrategySignal(
                    strategy_id=strategy.id,
                    source=strategy.source,
                    mode=strategy.mode,
                    market_id=market.condition_id,
                    market_question=market.question,
                    token_id=token_id,
                    outcome=outcome,
                    side=Side.BUY,
                    size_usd=size_usd,
                    limit_price_cents=clamp(price, 5, 95),
                    confidence=0.8 if event.status.lower() == "out" else 0.65,
                    reason=f"{event.player or 'Key player'} {event.status}",
                    expires_at=expires_at,
                    intent=SignalIntent.ENTER,
                    metadata={
                        "player": event.player,
                        "status": event.status,
                        "comment": event.comment,
                    },
                )
            )

        logger.info(
            "sportradar_signals",
            extra={"strategy_id": strategy.id, "injuries": len(injuries), "signals": len(signals)},
        )
        return signals


def is_market_about_team(market: Market, team: str, alias: Optional[str] = None) -> bool:
    needles = [n for n in (normalize(team), normalize(alias)) if n]
    if any(includes_normalized(market.question, n) for n in needles):
        return True
    return _outcome_side(market, needles) is not None


def resolve_opponent_token(
    market: Market, team: str, alias: Optional[str] = None
) -> Optional[tuple[str, Optional[str]]]:
    """Return (token_id, outcome) of the side the injured team is NOT on."""
    needles = [n for n in (normalize(team), normalize(alias)) if n]
    side = _outcome_side(market, needles)
    if side == "primary":
        token_id = market.secondary_token_id or market.primary_token_id
        outcome = market.secondary_outcome or market.primary_outcome
    elif side == "secondary":
        token_id = market.primary_token_id or market.secondary_token_id
        outcome = market.primary_outcome or market.secondary_outcome
    else:
        return None
    if not token_id:
        return None
    return token_id, outcome


def _outcome_side(market: Market, needles: list[str]) -> Optional[str]:
    if any(includes_normalized(market.primary_outcome, n) for n in needles):
        return "primary"
    if any(includes_normalized(market.secondary_outcome, n) for n in needles):
        return "secondary"
    return None


def _statuses(raw) -> set[str]:
    if isinstance(raw, (list, tuple)) and raw:
        return {str(s).lower() for s in raw}
    return set(DEFAULT_STATUSES)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None

