"""Client for the Sportradar league injuries feed."""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, Field

from autonomy.config import HTTP_TIMEOUT, SPORTRADAR_API_KEY, SPORTRADAR_INJURIES_URL

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Feed schema (only the fields we read)
# ---------------------------------------------------------------------------


class InjuryReport(BaseModel):
    full_name: Optional[str] = None
    position: Optional[str] = None
    status: Optional[str] = None
    comment: Optional[str] = None
    update_date: Optional[str] = None


class PlayerReport(InjuryReport):
    injuries: list[InjuryReport] = Field(default_factory=list)


class TeamReport(BaseModel):
    id: Optional[str] = None
    name: str
    alias: Optional[str] = None
    market: Optional[str] = None
    injuries: list[InjuryReport] = Field(default_factory=list)
    players: list[PlayerReport] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return f"{self.market} {self.name}" if self.market else self.name


class InjuriesResponse(BaseModel):
    teams: list[TeamReport]


class InjuryEvent(BaseModel):
    """One flattened injury update for a team."""

    team: str
    alias: Optional[str] = None
    player: str
    status: str
    comment: Optional[str] = None
    updated_at: Optional[str] = None


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class SportradarClient:
    def __init__(
        self,
        api_key: str = SPORTRADAR_API_KEY,
        url: str = SPORTRADAR_INJURIES_URL,
        timeout: float = HTTP_TIMEOUT,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def fetch_injuries(self) -> list[InjuryEvent]:
        """GET the league injuries document and flatten it.

        Raises httpx.HTTPError on transport/status failures and ValueError
        (including pydantic.ValidationError) on a body that is not JSON or
        does not match the feed shape.
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(self.url, params={"api_key": self.api_key})
            resp.raise_for_status()
        parsed = InjuriesResponse.model_validate(resp.json())
        events = flatten_injuries(parsed)
        logger.info("sportradar_injuries_fetched", extra={"count": len(events)})
        return events


def flatten_injuries(response: InjuriesResponse) -> list[InjuryEvent]:
    events: list[InjuryEvent] = []
    for team in response.teams:
        name = team.display_name
        for injury in team.injuries:
            if not injury.status:
                continue
            events.append(
                InjuryEvent(
                    team=name,
                    alias=team.alias,
                    player=injury.full_name or "Unknown player",
                    status=injury.status,
                    comment=injury.comment,
                    updated_at=injury.update_date,
                )
            )
        for player in team.players:
            timeline = player.injuries or [player]
            for injury in timeline:
                status = injury.status or player.status
                if not status:
                    continue
                events.append(
                    InjuryEvent(
                        team=name,
                        alias=team.alias,
                        player=player.full_name or "Unknown player",
                        status=status,
                        comment=injury.comment or player.comment,
                        updated_at=injury.update_date or player.update_date,
                    )
                )
    return events
