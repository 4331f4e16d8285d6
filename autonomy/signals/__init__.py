"""Signal generators for the autonomy engine.

Each strategy names a ``source``; the scheduler dispatches to the generator
registered for that source in the table built here.

Modules:
    ai_entry         -- Chat-model confidence picks over live market snapshots
    sportradar_entry -- Buys the opponent of a team with a fresh key injury
    maker_exit       -- Unwinds managed positions on spread reversion or max hold
    ai_exit          -- Chat-model exit director over managed positions
"""

from autonomy.api.ai_client import AiSignalClient
from autonomy.api.clob_client import MarketDataGateway
from autonomy.api.sportradar_client import SportradarClient
from autonomy.execution.position_manager import ManagedPositionRegistry
from autonomy.models import StrategySource
from autonomy.signals.ai_entry import AiConfidenceEntry
from autonomy.signals.ai_exit import AiExit
from autonomy.signals.base import Capability, SignalGenerator
from autonomy.signals.maker_exit import MakerReversionExit
from autonomy.signals.sportradar_entry import SportradarInjuryEntry


def build_generator_table(
    gateway: MarketDataGateway,
    registry: ManagedPositionRegistry,
    ai_client: AiSignalClient,
    sportradar: SportradarClient,
) -> dict[StrategySource, SignalGenerator]:
    generators: list[SignalGenerator] = [
        AiConfidenceEntry(gateway, ai_client),
        SportradarInjuryEntry(gateway, sportradar),
        MakerReversionExit(gateway, registry),
        AiExit(gateway, registry, ai_client),
    ]
    return {g.source: g for g in generators}


__all__ = [
    "AiConfidenceEntry",
    "AiExit",
    "Capability",
    "MakerReversionExit",
    "SignalGenerator",
    "SportradarInjuryEntry",
    "build_generator_table",
]
