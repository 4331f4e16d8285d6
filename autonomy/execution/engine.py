"""Order executor: submits risk-approved intents to the execution venue.

All autonomous orders flow through this executor so that:
- The account readiness gate is checked before any venue call
- Simulation mode can be toggled without changing upstream code
- Stale signals are dropped at the submission boundary
- The managed position registry tracks what the engine opened and closed

Each intent is handled independently: a venue failure is reported on that
intent and never blocks, retries or rolls back its siblings.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from autonomy.config import AUTONOMY_TRADING_ENABLED, ORDER_TTL_SECONDS
from autonomy.errors import StoreError, VenueError
from autonomy.execution.position_manager import ManagedPositionRegistry
from autonomy.execution.venue import ExecutionVenue
from autonomy.models import (
    ExecutionIntent,
    OrderExecutionResult,
    OrderStatus,
    SignalIntent,
    ensure_utc,
    utcnow,
)
from autonomy.readiness import ReadinessGate

logger = logging.getLogger(__name__)

SIMULATED_REASON = "autonomy trading disabled"
NO_VENUE_REASON = "clob client unavailable"
EXPIRED_REASON = "signal expired"


class OrderExecutor:
    """Gate, simulate or submit a batch of execution intents.

    Attributes:
        trading_enabled: If False, intents are logged as simulated orders
            and never reach the venue.
        order_ttl_seconds: Expiration applied to every submitted order.
    """

    def __init__(
        self,
        venue: Optional[ExecutionVenue],
        registry: ManagedPositionRegistry,
        readiness_gate: ReadinessGate,
        trading_enabled: bool = AUTONOMY_TRADING_ENABLED,
        order_ttl_seconds: int = ORDER_TTL_SECONDS,
    ) -> None:
        self.venue = venue
        self.registry = registry
        self.readiness_gate = readiness_gate
        self.trading_enabled = trading_enabled
        self.order_ttl_seconds = order_ttl_seconds

    async def execute_intents(
        self,
        intents: list[ExecutionIntent],
        now: Optional[datetime] = None,
    ) -> list[OrderExecutionResult]:
        if not intents:
            return []

        readiness = await self.readiness_gate.is_ready()
        if not readiness.ready:
            reason = readiness.reason or "account not ready"
            logger.warning(
                "order_batch_not_ready",
                extra={"reason": reason, "intents": len(intents)},
            )
            return [_result(i, OrderStatus.SKIPPED, reason) for i in intents]

        if not self.trading_enabled:
            for intent in intents:
                logger.info(
                    "order_simulated",
                    extra={
                        "strategy_id": intent.strategy_id,
                        "market_id": intent.market_id,
                        "token_id": intent.token_id,
                        "side": intent.side.value,
                        "price": intent.limit_price,
                        "size_shares": intent.size_shares,
                        "intent": intent.intent.value,
                    },
                )
            return [_result(i, OrderStatus.SKIPPED, SIMULATED_REASON) for i in intents]

        if self.venue is None:
            logger.error("order_batch_no_venue", extra={"intents": len(intents)})
            return [_result(i, OrderStatus.ERROR, NO_VENUE_REASON) for i in intents]

        now = ensure_utc(now or utcnow())
        results: list[OrderExecutionResult] = []
        for intent in intents:
            results.append(await self._submit(intent, now))
        return results

    async def _submit(self, intent: ExecutionIntent, now: datetime) -> OrderExecutionResult:
        if intent.is_expired(now):
            logger.warning(
                "order_signal_expired",
                extra={
                    "strategy_id": intent.strategy_id,
                    "market_id": intent.market_id,
                    "expires_at": intent.expires_at.isoformat(),
                },
            )
            return _result(intent, OrderStatus.SKIPPED, EXPIRED_REASON)

        try:
            order_id = await self.venue.submit_order(
                token_id=intent.token_id,
                side=intent.side,
                price=round(intent.limit_price, 4),
                size_shares=round(intent.size_shares, 4),
                expiration=now + timedelta(seconds=self.order_ttl_seconds),
            )
        except VenueError as exc:
            logger.error(
                "order_failed",
                extra={
                    "strategy_id": intent.strategy_id,
                    "market_id": intent.market_id,
                    "error": str(exc),
                },
            )
            return _result(intent, OrderStatus.ERROR, str(exc))

        logger.info(
            "order_submitted",
            extra={
                "strategy_id": intent.strategy_id,
                "order_id": order_id,
                "market_id": intent.market_id,
                "side": intent.side.value,
                "intent": intent.intent.value,
            },
        )

        try:
            if intent.intent == SignalIntent.ENTER:
                await self.registry.record_entry_intent(intent, now)
            else:
                await self.registry.clear_managed_position(intent.token_id)
        except StoreError:
            # The order is live at the venue. A lost entry record leaves the
            # position unmanaged; a stale record is deleted once exposure is zero.
            logger.error(
                "managed_position_update_failed",
                extra={"token_id": intent.token_id, "order_id": order_id},
                exc_info=True,
            )

        return OrderExecutionResult(intent=intent, status=OrderStatus.SUBMITTED, order_id=order_id)


def _result(intent: ExecutionIntent, status: OrderStatus, reason: str) -> OrderExecutionResult:
    return OrderExecutionResult(intent=intent, status=status, reason=reason)
