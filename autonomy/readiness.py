"""Account readiness gate checked before any live order is sent."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel

from autonomy.config import AUTONOMY_REQUIRE_SAFE, POLYMARKET_SAFE_ADDRESS


class Readiness(BaseModel):
    ready: bool
    reason: Optional[str] = None
    safe_address: Optional[str] = None


class ReadinessGate(ABC):
    @abstractmethod
    async def is_ready(self) -> Readiness: ...


class OperatorSafeGate(ReadinessGate):
    """Ready when the operator's Safe is configured (or not required)."""

    def __init__(
        self,
        require_safe: bool = AUTONOMY_REQUIRE_SAFE,
        safe_address: str = POLYMARKET_SAFE_ADDRESS,
    ) -> None:
        self.require_safe = require_safe
        self.safe_address = safe_address or None

    async def is_ready(self) -> Readiness:
        if not self.require_safe:
            return Readiness(ready=True, safe_address=self.safe_address)
        if self.safe_address:
            return Readiness(ready=True, safe_address=self.safe_address)
        return Readiness(ready=False, reason="Operator Safe address missing")
