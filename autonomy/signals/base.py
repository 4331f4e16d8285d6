"""Signal generator contract and text helpers shared by generators."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from autonomy.models import (
    Market,
    StrategyDefinition,
    StrategyMode,
    StrategySignal,
    StrategySource,
)


class Capability(str, Enum):
    ENTRY = "entry-generator"
    EXIT = "exit-generator"

    @property
    def mode(self) -> StrategyMode:
        """The strategy mode a generator with this capability can serve."""
        return StrategyMode.ENTRY if self is Capability.ENTRY else StrategyMode.EXIT


class SignalGenerator(ABC):
    """Produces candidate trades for one strategy source.

    Implementations return an empty list (and log) when an upstream source
    fails to fetch or parse. Anything else they raise is reported by the
    scheduler as a strategy error.
    """

    source: StrategySource
    capability: Capability

    @abstractmethod
    async def generate(self, strategy: StrategyDefinition, now: datetime) -> list[StrategySignal]:
        raise NotImplementedError


_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize(value: Optional[str]) -> str:
    return _NON_ALNUM.sub(" ", (value or "").lower()).strip()


def includes_normalized(text: Optional[str], needle: str) -> bool:
    """Loose match: either normalized string contains the other."""
    if not text or not needle:
        return False
    haystack = normalize(text)
    return bool(haystack) and (needle in haystack or haystack in needle)


def match_outcome_to_token(market: Market, outcome: str) -> Optional[tuple[str, str]]:
    """Resolve an outcome label to (token_id, outcome) on a binary market.

    Exact normalized match wins over a containment match.
    """
    wanted = normalize(outcome)
    if not wanted:
        return None
    candidates = [
        (market.primary_outcome, market.primary_token_id),
        (market.secondary_outcome, market.secondary_token_id),
    ]
    for label, token_id in candidates:
        if label and token_id and normalize(label) == wanted:
            return token_id, label
    for label, token_id in candidates:
        if label and token_id and wanted in normalize(label):
            return token_id, label
    return None


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def param_float(params: dict[str, Any], key: str, default: float) -> float:
    value = params.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)
