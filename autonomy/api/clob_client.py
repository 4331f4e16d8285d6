"""Market data gateway backed by the public Polymarket CLOB REST API."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from autonomy.config import CLOB_API_URL, HTTP_TIMEOUT
from autonomy.models import BestPrices, Market

logger = logging.getLogger(__name__)

_LIVE_GRACE = timedelta(hours=1)
_RECENT_WINDOW = timedelta(days=45)
_MAX_MARKET_PAGES = 5
_END_CURSOR = "LTE="
_DEPTH_LEVELS = 3


class MarketDataGateway(ABC):
    """What signal generators need from market data."""

    @abstractmethod
    async def best_prices(self, token_id: str) -> BestPrices:
        """Top of book in cents. Never raises; unknown sides are None."""

    @abstractmethod
    async def market_snapshots(self, limit: int = 12) -> list[Market]:
        """Live markets with top-of-book for their primary token.

        Raises httpx.HTTPError or ValueError when the market listing cannot be
        fetched or parsed.
        """


class ClobMarketData(MarketDataGateway):
    """Async client for CLOB markets and orderbook endpoints (L0 / public)."""

    def __init__(self, base_url: str = CLOB_API_URL, timeout: float = HTTP_TIMEOUT) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Orderbook
    # ------------------------------------------------------------------

    async def fetch_orderbook(self, token_id: str) -> dict[str, Any] | None:
        """GET /book for a single token."""
        try:
            resp = await self._client.get("/book", params={"token_id": token_id})
            resp.raise_for_status()
            book = resp.json()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return None
            logger.warning("fetch_orderbook_error", extra={"token_id": token_id}, exc_info=True)
            return None
        except (httpx.HTTPError, ValueError):
            logger.warning("fetch_orderbook_error", extra={"token_id": token_id}, exc_info=True)
            return None
        if not isinstance(book, dict):
            logger.warning("fetch_orderbook_unexpected_payload", extra={"token_id": token_id})
            return None
        return book

    async def best_prices(self, token_id: str) -> BestPrices:
        book = await self.fetch_orderbook(token_id)
        if not book:
            return BestPrices()
        bids, asks = _sorted_levels(book)
        return BestPrices(
            best_bid_cents=bids[0][0] * 100 if bids else None,
            best_ask_cents=asks[0][0] * 100 if asks else None,
        )

    # ------------------------------------------------------------------
    # Markets
    # ------------------------------------------------------------------

    async def fetch_markets(self, max_pages: int = _MAX_MARKET_PAGES) -> list[dict]:
        """Paginate GET /markets until the end cursor or ``max_pages``.

        Raises httpx.HTTPError on transport/status failures and ValueError on
        a body that is not a JSON object.
        """
        markets: list[dict] = []
        cursor = ""
        for _ in range(max_pages):
            params = {"next_cursor": cursor} if cursor else {}
            resp = await self._client.get("/markets", params=params)
            resp.raise_for_status()
            payload = resp.json()
            if not isinstance(payload, dict):
                raise ValueError(f"unexpected /markets payload: {type(payload).__name__}")
            markets.extend(payload.get("data") or [])
            cursor = payload.get("next_cursor") or _END_CURSOR
            if cursor == _END_CURSOR:
                break
        return markets

    async def market_snapshots(self, limit: int = 12) -> list[Market]:
        limit = max(1, min(limit, 50))
        raw = await self.fetch_markets()
        selected = select_markets(raw, limit, now=datetime.now(timezone.utc))
        return list(await asyncio.gather(*(self._snapshot(m) for m in selected)))

    async def _snapshot(self, market: dict) -> Market:
        tokens = market.get("tokens") or []
        primary = tokens[0] if tokens else {}
        secondary = tokens[1] if len(tokens) > 1 else {}

        best_bid: Optional[float] = None
        best_ask: Optional[float] = None
        liquidity: Optional[float] = None
        token_id = primary.get("token_id")
        if token_id:
            book = await self.fetch_orderbook(token_id)
            if book:
                bids, asks = _sorted_levels(book)
                best_bid = bids[0][0] * 100 if bids else None
                best_ask = asks[0][0] * 100 if asks else None
                depth = sum(size for _, size in bids[:_DEPTH_LEVELS]) + sum(
                    size for _, size in asks[:_DEPTH_LEVELS]
                )
                liquidity = round(depth, 2)

        return Market(
            condition_id=market["condition_id"],
            question=market.get("question") or "",
            slug=market.get("market_slug") or "",
            end_date=market.get("end_date_iso"),
            primary_token_id=token_id,
            secondary_token_id=secondary.get("token_id"),
            primary_outcome=primary.get("outcome"),
            secondary_outcome=secondary.get("outcome"),
            best_bid=best_bid,
            best_ask=best_ask,
            liquidity=liquidity,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def select_markets(raw: list[dict], limit: int, now: datetime) -> list[dict]:
    """Pick the markets worth showing to signal generators.

    Prefers markets that have not ended (soonest end first). If none are
    live, falls back to markets that ended within the recent window, then to
    every eligible market, latest end first.
    """
    eligible = [
        m
        for m in raw
        if m.get("condition_id")
        and m.get("active")
        and not m.get("archived")
        and not m.get("closed")
        and m.get("tokens")
    ]

    live = [m for m in eligible if _ends_after(m, now - _LIVE_GRACE)]
    if live:
        live.sort(key=lambda m: _end_ts(m) or datetime.max.replace(tzinfo=timezone.utc))
        return live[:limit]

    recent = [m for m in eligible if _ends_after(m, now - _RECENT_WINDOW)]
    pool = recent or eligible
    pool.sort(
        key=lambda m: _end_ts(m) or datetime.min.replace(tzinfo=timezone.utc),
        reverse=True,
    )
    return pool[:limit]


def _end_ts(market: dict) -> Optional[datetime]:
    value = market.get("end_date_iso")
    if not value:
        return None
    try:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _ends_after(market: dict, cutoff: datetime) -> bool:
    ts = _end_ts(market)
    return ts is None or ts >= cutoff


def _sorted_levels(book: dict) -> tuple[list[tuple[float, float]], list[tuple[float, float]]]:
    """Return (bids best-first, asks best-first) as (price, size) floats."""

    def parse(levels: Any) -> list[tuple[float, float]]:
        out = []
        for level in levels or []:
            try:
                out.append((float(level["price"]), float(level.get("size", 0.0))))
            except (AttributeError, KeyError, TypeError, ValueError):
                continue
        return out

    bids = sorted(parse(book.get("bids")), key=lambda lv: lv[0], reverse=True)
    asks = sorted(parse(book.get("asks")), key=lambda lv: lv[0])
    return bids, asks
