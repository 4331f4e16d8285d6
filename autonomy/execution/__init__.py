"""Execution layer for the autonomy engine.

This package sits between the signal generators and the venue. It turns raw
signals into bounded intents, submits them, and keeps track of which
positions the engine owns so exit strategies can unwind them later.

Modules:
    risk_manager     -- Notional clamp, price normalization, daily caps
    engine           -- Order executor: readiness gate, simulation, submission
    venue            -- py-clob-client venue adapter and exposure aggregation
    position_manager -- Managed position registry with live reconciliation
"""

from autonomy.execution.engine import OrderExecutor
from autonomy.execution.position_manager import ManagedPositionRegistry
from autonomy.execution.risk_manager import RiskController
from autonomy.execution.venue import ClobVenue, ExecutionVenue

__all__ = [
    "ClobVenue",
    "ExecutionVenue",
    "ManagedPositionRegistry",
    "OrderExecutor",
    "RiskController",
]
