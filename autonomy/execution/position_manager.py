"""Managed position registry: positions the engine itself opened.

Records live in a single hash in the shared store, one field per token id,
so an entry on an already-managed token overwrites rather than duplicates.
On every read the records are reconciled against the account's live
exposure at the venue: a record whose token no longer carries exposure was
closed outside the engine (manual trade, resolution) and is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from autonomy.execution.venue import ExecutionVenue
from autonomy.models import (
    ExecutionIntent,
    ManagedPosition,
    ManagedPositionRecord,
    SignalIntent,
    utcnow,
)
from autonomy.store import SharedStore

logger = logging.getLogger(__name__)

REGISTRY_KEY = "autonomy:managedPositions"


class ManagedPositionRegistry:
    """Durable record of engine-owned positions.

    Attributes:
        store: Shared store holding the registry hash.
        venue: Source of live exposure for reconciliation. ``None`` means no
            venue is configured and every record reconciles to zero exposure.
    """

    def __init__(self, store: SharedStore, venue: Optional[ExecutionVenue]) -> None:
        self.store = store
        self.venue = venue

    async def get_managed_positions(self) -> list[ManagedPosition]:
        """Return stored records that still carry live exposure.

        Records with zero or negative exposure are deleted as a side effect.
        Raises VenueError if live exposure cannot be fetched and StoreError
        if the registry cannot be read or updated.
        """
        records, exposure = await asyncio.gather(self._read_registry(), self._live_exposure())

        managed: list[ManagedPosition] = []
        for token_id, record in records.items():
            exposure_usd = exposure.get(token_id, 0.0)
            if exposure_usd <= 0:
                await self.store.hash_delete(REGISTRY_KEY, token_id)
                logger.info(
                    "managed_position_reconciled_out",
                    extra={"token_id": token_id, "market_id": record.market_id},
                )
                continue
            managed.append(
                ManagedPosition(**record.model_dump(), exposure_usd=exposure_usd)
            )
        return managed

    async def record_entry_intent(
        self, intent: ExecutionIntent, now: Optional[datetime] = None
    ) -> None:
        if intent.intent != SignalIntent.ENTER:
            return
        record = ManagedPositionRecord(
            market_id=intent.market_id,
            token_id=intent.token_id,
            outcome=intent.outcome,
            side=intent.side,
            size_usd=intent.notional_usd,
            entry_price_cents=round(intent.limit_price * 100),
            entered_at=now or utcnow(),
            question=intent.market_question or None,
            strategy_id=intent.strategy_id,
        )
        await self.store.hash_upsert(REGISTRY_KEY, record.token_id, record.model_dump_json())
        logger.info(
            "managed_position_recorded",
            extra={
                "token_id": record.token_id,
                "market_id": record.market_id,
                "side": record.side.value,
                "size_usd": record.size_usd,
            },
        )

    async def clear_managed_position(self, token_id: str) -> None:
        await self.store.hash_delete(REGISTRY_KEY, token_id)
        logger.info("managed_position_cleared", extra={"token_id": token_id})

    async def get_record(self, token_id: str) -> Optional[ManagedPositionRecord]:
        """Read one stored record without reconciling."""
        records = await self._read_registry()
        return records.get(token_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _read_registry(self) -> dict[str, ManagedPositionRecord]:
        entries = await self.store.hash_get_all(REGISTRY_KEY)
        records: dict[str, ManagedPositionRecord] = {}
        for token_id, raw in entries.items():
            try:
                records[token_id] = ManagedPositionRecord.model_validate_json(raw)
            except ValidationError:
                logger.warning("managed_position_unparseable", extra={"token_id": token_id})
        return records

    async def _live_exposure(self) -> dict[str, float]:
        if self.venue is None:
            return {}
        return await self.venue.aggregated_exposure()
