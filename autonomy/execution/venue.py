"""Execution venue wrapping py-clob-client.

The venue only knows how to submit a signed limit order and how to report
the account's net exposure per token. Gating, simulation and registry
updates belong to the order executor.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime
from typing import Any

from py_clob_client.client import ClobClient
from py_clob_client.clob_types import OrderArgs, OrderType

from autonomy.config import (
    CLOB_API_URL,
    EXECUTION_CHAIN_ID,
    EXECUTION_FUNDER_ADDRESS,
    EXECUTION_PRIVATE_KEY,
    EXECUTION_SIGNATURE_TYPE,
)
from autonomy.errors import VenueError
from autonomy.models import Side

logger = logging.getLogger(__name__)


class ExecutionVenue(ABC):
    @abstractmethod
    async def submit_order(
        self,
        token_id: str,
        side: Side,
        price: float,
        size_shares: float,
        expiration: datetime,
    ) -> str:
        """Submit a limit order and return the venue order id.

        Raises VenueError if the venue rejects the order or cannot be reached.
        """

    @abstractmethod
    async def aggregated_exposure(self) -> dict[str, float]:
        """Net USD exposure per token id, derived from account trade history."""


class ClobVenue(ExecutionVenue):
    """Signed order submission against the Polymarket CLOB.

    Attributes:
        _client: py-clob-client ClobClient instance (lazy-initialized).
    """

    def __init__(
        self,
        private_key: str = EXECUTION_PRIVATE_KEY,
        funder_address: str = EXECUTION_FUNDER_ADDRESS,
        host: str = CLOB_API_URL,
    ) -> None:
        self._private_key = private_key
        self._funder_address = funder_address
        self._host = host
        self._client: Any = None
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create the CLOB client and derive API credentials once."""
        async with self._init_lock:
            if self._client is not None:
                return
            try:
                client = ClobClient(
                    host=self._host,
                    key=self._private_key,
                    chain_id=EXECUTION_CHAIN_ID,
                    signature_type=EXECUTION_SIGNATURE_TYPE,
                    funder=self._funder_address or None,
                )
                creds = await asyncio.to_thread(client.create_or_derive_api_creds)
                client.set_api_creds(creds)
            except Exception as exc:
                logger.error("venue_init_failed", exc_info=True)
                raise VenueError(f"clob client init failed: {exc}") from exc
            self._client = client
            logger.info("venue_init", extra={"host": self._host})

    async def submit_order(
        self,
        token_id: str,
        side: Side,
        price: float,
        size_shares: float,
        expiration: datetime,
    ) -> str:
        await self.initialize()
        start = time.monotonic()
        order_args = OrderArgs(
            token_id=token_id,
            price=price,
            size=size_shares,
            side=side.value,
            expiration=int(expiration.timestamp()),
        )
        try:
            signed_order = await asyncio.to_thread(self._client.create_order, order_args)
            resp = await asyncio.to_thread(self._client.post_order, signed_order, OrderType.GTD)
        except Exception as exc:
            raise VenueError(str(exc)) from exc

        if not isinstance(resp, dict):
            raise VenueError(f"Unexpected response type: {type(resp)}")
        order_id = resp.get("orderID") or (resp.get("order") or {}).get("orderID")
        if not resp.get("success", bool(order_id)) or not order_id:
            raise VenueError(resp.get("errorMsg") or "order rejected")

        logger.info(
            "venue_order_posted",
            extra={
                "order_id": order_id,
                "status": resp.get("status", ""),
                "latency_ms": round((time.monotonic() - start) * 1000, 1),
            },
        )
        return order_id

    async def aggregated_exposure(self) -> dict[str, float]:
        await self.initialize()
        try:
            trades = await asyncio.to_thread(self._client.get_trades)
        except Exception as exc:
            raise VenueError(f"get_trades failed: {exc}") from exc
        return aggregate_exposure(trades if isinstance(trades, list) else [])


def aggregate_exposure(trades: list[dict]) -> dict[str, float]:
    """Sum signed trade notionals per asset; report absolute USD exposure."""
    net: dict[str, float] = defaultdict(float)
    for trade in trades:
        asset_id = trade.get("asset_id") or trade.get("assetId")
        if not asset_id:
            continue
        try:
            size = float(trade.get("size") or 0.0)
            price = float(trade.get("price") or 1.0)
        except (TypeError, ValueError):
            continue
        direction = 1.0 if str(trade.get("side", "")).upper() == Side.BUY.value else -1.0
        net[asset_id] += direction * size * price
    return {asset_id: round(abs(value), 2) for asset_id, value in net.items()}
