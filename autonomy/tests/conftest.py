"""In-memory stand-ins for the venue, market data, readiness gate and
signal sources, shared by the autonomy tests."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from autonomy.api.clob_client import MarketDataGateway
from autonomy.errors import VenueError
from autonomy.execution.position_manager import ManagedPositionRegistry
from autonomy.execution.venue import ExecutionVenue
from autonomy.models import (
    BestPrices,
    ExecutionIntent,
    Market,
    Side,
    SignalIntent,
    StrategyDefinition,
    StrategyMode,
    StrategySignal,
    StrategySource,
)
from autonomy.readiness import Readiness, ReadinessGate
from autonomy.store import MemoryStore

NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeVenue(ExecutionVenue):
    def __init__(self) -> None:
        self.orders: list[dict] = []
        self.exposure: dict[str, float] = {}
        self.fail_tokens: set[str] = set()
        self.exposure_error: Optional[Exception] = None

    async def submit_order(self, token_id, side, price, size_shares, expiration) -> str:
        if token_id in self.fail_tokens:
            raise VenueError(f"rejected {token_id}")
        self.orders.append(
            {
                "token_id": token_id,
                "side": side,
                "price": price,
                "size_shares": size_shares,
                "expiration": expiration,
            }
        )
        return f"order-{len(self.orders)}"

    async def aggregated_exposure(self) -> dict[str, float]:
        if self.exposure_error is not None:
            raise self.exposure_error
        return dict(self.exposure)


class FakeGateway(MarketDataGateway):
    def __init__(self) -> None:
        self.markets: list[Market] = []
        self.prices: dict[str, BestPrices] = {}
        self.snapshot_error: Optional[Exception] = None

    async def best_prices(self, token_id: str) -> BestPrices:
        return self.prices.get(token_id, BestPrices())

    async def market_snapshots(self, limit: int = 12) -> list[Market]:
        if self.snapshot_error is not None:
            raise self.snapshot_error
        return self.markets[:limit]


class FakeGate(ReadinessGate):
    def __init__(self, ready: bool = True, reason: Optional[str] = None) -> None:
        self.ready = ready
        self.reason = reason

    async def is_ready(self) -> Readiness:
        return Readiness(ready=self.ready, reason=self.reason)


class FakeAiClient:
    """Returns a canned JSON answer, validated the way the real client does."""

    def __init__(self, answer=None, configured: bool = True) -> None:
        self.answer = answer
        self.configured = configured
        self.prompts: list[str] = []

    async def generate_object(self, prompt, schema):
        self.prompts.append(prompt)
        if isinstance(self.answer, Exception):
            raise self.answer
        return schema.model_validate(self.answer or {})


class FakeSportradar:
    def __init__(self, events=None, configured: bool = True) -> None:
        self.events = events or []
        self.configured = configured

    async def fetch_injuries(self):
        if isinstance(self.events, Exception):
            raise self.events
        return list(self.events)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def venue():
    return FakeVenue()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def registry(store, venue):
    return ManagedPositionRegistry(store, venue)


@pytest.fixture
def make_strategy():
    def factory(**overrides) -> StrategyDefinition:
        fields = {
            "id": "test-strategy",
            "name": "Test Strategy",
            "schedule": "* * * * *",
            "source": StrategySource.AI_ENTRY,
            "mode": StrategyMode.ENTRY,
            "max_notional": 50,
            "daily_cap": 200,
        }
        fields.update(overrides)
        return StrategyDefinition(**fields)

    return factory


@pytest.fixture
def make_signal():
    def factory(**overrides) -> StrategySignal:
        fields = {
            "strategy_id": "test-strategy",
            "source": StrategySource.AI_ENTRY,
            "mode": StrategyMode.ENTRY,
            "market_id": "cond-1",
            "market_question": "Will the Lakers beat the Celtics?",
            "token_id": "tok-yes",
            "outcome": "Yes",
            "side": Side.BUY,
            "size_usd": 20.0,
            "limit_price_cents": 50.0,
            "confidence": 0.8,
            "reason": "test",
            "expires_at": NOW + timedelta(minutes=15),
            "intent": SignalIntent.ENTER,
        }
        fields.update(overrides)
        return StrategySignal(**fields)

    return factory


@pytest.fixture
def market():
    return Market(
        condition_id="cond-1",
        question="Will the Lakers beat the Celtics?",
        primary_token_id="tok-lakers",
        secondary_token_id="tok-celtics",
        primary_outcome="Los Angeles Lakers",
        secondary_outcome="Boston Celtics",
        best_bid=48.0,
        best_ask=50.0,
        liquidity=25000.0,
    )


@pytest.fixture
def gate():
    return FakeGate()


@pytest.fixture
def ai_client():
    return FakeAiClient()


@pytest.fixture
def sportradar():
    return FakeSportradar()


@pytest.fixture
def make_intent(make_signal):
    """Build an ExecutionIntent the way the risk controller would."""

    def factory(**overrides) -> ExecutionIntent:
        signal = make_signal(**overrides)
        price = signal.limit_price_cents / 100
        return ExecutionIntent(
            **signal.model_dump(),
            limit_price=price,
            size_shares=round(signal.size_usd / price, 4),
            notional_usd=signal.size_usd,
        )

    return factory
