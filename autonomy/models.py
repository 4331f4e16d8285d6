"""Data models shared by the scheduler, signal generators, risk and execution.

Strategy definitions are static configuration. Signals and intents live only
for the duration of one tick. Managed position records are persisted in the
shared store as JSON.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class StrategySource(str, Enum):
    """Which signal generator a strategy is wired to."""

    AI_ENTRY = "ai-entry"
    SPORTRADAR_ENTRY = "sportradar-entry"
    MAKER_EXIT = "maker-exit"
    AI_EXIT = "ai-exit"


class StrategyMode(str, Enum):
    ENTRY = "entry"
    EXIT = "exit"


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @property
    def opposite(self) -> "Side":
        return Side.SELL if self is Side.BUY else Side.BUY


class SignalIntent(str, Enum):
    ENTER = "enter"
    EXIT = "exit"


class RunStatus(str, Enum):
    """Per-strategy outcome of one tick."""

    SKIPPED = "skipped"
    QUEUED = "queued"
    ERROR = "error"


class OrderStatus(str, Enum):
    """Per-intent outcome of one executor batch."""

    SUBMITTED = "submitted"
    SKIPPED = "skipped"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Strategy configuration
# ---------------------------------------------------------------------------


class StrategyDefinition(BaseModel):
    """Static configuration for one autonomous strategy."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique strategy key.")
    name: str = Field(..., description="Human-readable name.")
    enabled: bool = Field(default=True)
    schedule: str = Field(default="*/1 * * * *", description="5-field cron expression (UTC).")
    source: StrategySource
    mode: StrategyMode = StrategyMode.ENTRY
    max_notional: float = Field(..., ge=0, description="USD cap per signal.")
    daily_cap: float = Field(default=0.0, ge=0, description="USD cap per UTC day; 0 disables.")
    params: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Market data
# ---------------------------------------------------------------------------


class Market(BaseModel):
    """Snapshot of a tradable binary market."""

    condition_id: str
    question: str
    slug: str = ""
    end_date: Optional[str] = None
    primary_token_id: Optional[str] = None
    secondary_token_id: Optional[str] = None
    primary_outcome: Optional[str] = None
    secondary_outcome: Optional[str] = None
    best_bid: Optional[float] = Field(default=None, description="Best bid in cents.")
    best_ask: Optional[float] = Field(default=None, description="Best ask in cents.")
    liquidity: Optional[float] = Field(default=None, description="Top-3 level depth (shares).")

    @property
    def spread(self) -> Optional[float]:
        if self.best_bid is None or self.best_ask is None:
            return None
        return self.best_ask - self.best_bid


class BestPrices(BaseModel):
    best_bid_cents: Optional[float] = None
    best_ask_cents: Optional[float] = None

    @property
    def spread_cents(self) -> Optional[float]:
        if self.best_bid_cents is None or self.best_ask_cents is None:
            return None
        return self.best_ask_cents - self.best_bid_cents


# ---------------------------------------------------------------------------
# Signal pipeline
# ---------------------------------------------------------------------------


class StrategySignal(BaseModel):
    """A candidate trade proposed by a generator, not yet risk-checked."""

    strategy_id: str
    source: StrategySource
    mode: StrategyMode
    market_id: str
    market_question: str
    token_id: str
    outcome: Optional[str] = None
    side: Side
    size_usd: float = Field(..., description="Requested notional in USD.")
    limit_price_cents: float = Field(..., description="Proposed limit price, 1-99 cents.")
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    reason: str = ""
    expires_at: datetime
    intent: SignalIntent = SignalIntent.ENTER
    metadata: dict[str, Any] = Field(default_factory=dict)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class ExecutionIntent(StrategySignal):
    """A signal after risk transformation, ready for submission."""

    limit_price: float = Field(..., ge=0.01, le=0.99, description="Normalized 0-1 price.")
    size_shares: float = Field(..., gt=0, description="Contracts = notional / price.")
    notional_usd: float = Field(..., description="Post-clamp notional.")


class OrderExecutionResult(BaseModel):
    intent: ExecutionIntent
    status: OrderStatus
    reason: Optional[str] = None
    order_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Managed positions
# ---------------------------------------------------------------------------


class ManagedPositionRecord(BaseModel):
    """A position the engine opened and is responsible for unwinding."""

    market_id: str
    token_id: str
    outcome: Optional[str] = None
    side: Side
    size_usd: float = Field(..., description="Entry notional in USD.")
    entry_price_cents: float
    entered_at: datetime
    question: Optional[str] = None
    strategy_id: Optional[str] = None


class ManagedPosition(ManagedPositionRecord):
    exposure_usd: float = Field(..., description="Live exposure from venue trade history.")

    @property
    def entry_shares(self) -> float:
        if self.entry_price_cents <= 0:
            return 0.0
        return self.size_usd / (self.entry_price_cents / 100.0)

    def held_minutes(self, now: datetime) -> float:
        return max(0.0, (now - self.entered_at).total_seconds() / 60.0)


# ---------------------------------------------------------------------------
# Run results
# ---------------------------------------------------------------------------


class StrategyRunResult(BaseModel):
    strategy_id: str
    status: RunStatus
    reason: Optional[str] = None
    signals: int = 0
    trades_enqueued: int = 0
    duration_ms: float = 0.0


class StrategyRunSummary(BaseModel):
    run_at: datetime
    results: list[StrategyRunResult] = Field(default_factory=list)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
