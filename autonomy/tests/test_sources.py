"""Tests for the CLOB market data client, the Sportradar feed parser and
the strategy table loader."""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from autonomy.api.clob_client import ClobMarketData, select_markets
from autonomy.api.sportradar_client import InjuriesResponse, flatten_injuries
from autonomy.models import StrategySource
from autonomy.strategies import STATIC_STRATEGIES, list_strategies, load_strategies

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
FAR_FUTURE = datetime(2099, 1, 1, tzinfo=timezone.utc)


def _raw_market(cid, end=None, **overrides):
    market = {
        "condition_id": cid,
        "question": f"Question {cid}?",
        "active": True,
        "closed": False,
        "archived": False,
        "end_date_iso": end.isoformat() if end else None,
        "tokens": [
            {"token_id": f"{cid}-yes", "outcome": "Yes"},
            {"token_id": f"{cid}-no", "outcome": "No"},
        ],
    }
    market.update(overrides)
    return market


# ------------------------------------------------------------------
# Market selection
# ------------------------------------------------------------------

class TestSelectMarkets:

    def test_live_markets_soonest_first(self):
        raw = [
            _raw_market("later", NOW + timedelta(days=3)),
            _raw_market("soon", NOW + timedelta(hours=2)),
            _raw_market("just-ended", NOW - timedelta(minutes=30)),
            _raw_market("old", NOW - timedelta(days=3)),
        ]

        selected = select_markets(raw, limit=10, now=NOW)

        assert [m["condition_id"] for m in selected] == ["just-ended", "soon", "later"]

    def test_falls_back_to_recent_latest_first(self):
        raw = [
            _raw_market("a", NOW - timedelta(days=10)),
            _raw_market("b", NOW - timedelta(days=2)),
            _raw_market("ancient", NOW - timedelta(days=100)),
        ]

        selected = select_markets(raw, limit=10, now=NOW)

        assert [m["condition_id"] for m in selected] == ["b", "a"]

    def test_falls_back_to_all_eligible(self):
        raw = [
            _raw_market("x", NOW - timedelta(days=100)),
            _raw_market("y", NOW - timedelta(days=200)),
        ]
        assert [m["condition_id"] for m in select_markets(raw, 10, NOW)] == ["x", "y"]

    def test_ineligible_markets_excluded(self):
        raw = [
            _raw_market("archived", NOW + timedelta(days=1), archived=True),
            _raw_market("inactive", NOW + timedelta(days=1), active=False),
            _raw_market("no-tokens", NOW + timedelta(days=1), tokens=[]),
            _raw_market("ok", NOW + timedelta(days=1)),
        ]
        assert [m["condition_id"] for m in select_markets(raw, 10, NOW)] == ["ok"]

    def test_limit_applied(self):
        raw = [_raw_market(str(i), NOW + timedelta(hours=i + 1)) for i in range(5)]
        assert len(select_markets(raw, 2, NOW)) == 2


# ------------------------------------------------------------------
# Orderbook parsing over a mocked transport
# ------------------------------------------------------------------

def _client_with(handler) -> ClobMarketData:
    client = ClobMarketData(base_url="https://clob.test")
    client._client = httpx.AsyncClient(
        base_url="https://clob.test", transport=httpx.MockTransport(handler)
    )
    return client


def test_best_prices_from_unsorted_book():
    def handler(request):
        return httpx.Response(
            200,
            json={
                "bids": [{"price": "0.45", "size": "10"}, {"price": "0.48", "size": "5"}],
                "asks": [{"price": "0.55", "size": "3"}, {"price": "0.51", "size": "7"}],
            },
        )

    prices = asyncio.run(_client_with(handler).best_prices("tok"))

    assert prices.best_bid_cents == pytest.approx(48)
    assert prices.best_ask_cents == pytest.approx(51)
    assert prices.spread_cents == pytest.approx(3)


def test_best_prices_never_raises():
    def handler(request):
        return httpx.Response(500, text="boom")

    prices = asyncio.run(_client_with(handler).best_prices("tok"))

    assert prices.best_bid_cents is None
    assert prices.best_ask_cents is None


@pytest.mark.parametrize(
    "body", [{"text": "<html>bad gateway</html>"}, {"json": ["not", "a", "book"]}], ids=["html", "list"]
)
def test_best_prices_unparseable_book(body):
    def handler(request):
        return httpx.Response(200, **body)

    prices = asyncio.run(_client_with(handler).best_prices("tok"))

    assert prices.best_bid_cents is None
    assert prices.best_ask_cents is None


@pytest.mark.parametrize(
    "body", [{"text": "<html>bad gateway</html>"}, {"json": []}], ids=["html", "list"]
)
def test_market_listing_unparseable_raises_value_error(body):
    def handler(request):
        return httpx.Response(200, **body)

    with pytest.raises(ValueError):
        asyncio.run(_client_with(handler).market_snapshots(limit=5))


def test_market_snapshots_paginate_and_attach_book():
    def handler(request):
        if request.url.path == "/markets":
            if request.url.params.get("next_cursor") == "page2":
                return httpx.Response(
                    200,
                    json={"data": [_raw_market("m2", FAR_FUTURE + timedelta(days=30))], "next_cursor": "LTE="},
                )
            return httpx.Response(
                200,
                json={"data": [_raw_market("m1", FAR_FUTURE)], "next_cursor": "page2"},
            )
        return httpx.Response(
            200,
            json={
                "bids": [{"price": "0.40", "size": "100"}],
                "asks": [{"price": "0.42", "size": "50"}],
            },
        )

    markets = asyncio.run(_client_with(handler).market_snapshots(limit=5))

    assert [m.condition_id for m in markets] == ["m1", "m2"]
    first = markets[0]
    assert first.primary_token_id == "m1-yes"
    assert first.secondary_outcome == "No"
    assert first.best_bid == pytest.approx(40)
    assert first.best_ask == pytest.approx(42)
    assert first.liquidity == 150


# ------------------------------------------------------------------
# Sportradar feed
# ------------------------------------------------------------------

def test_flatten_injuries_team_and_player_timelines():
    payload = {
        "teams": [
            {
                "name": "Celtics",
                "market": "Boston",
                "alias": "BOS",
                "injuries": [{"full_name": "A", "status": "Out"}, {"full_name": "NoStatus"}],
                "players": [
                    {
                        "full_name": "B",
                        "status": "Doubtful",
                        "update_date": "2024-03-01T11:50:00+00:00",
                        "injuries": [{"status": "Out", "comment": "ankle"}],
                    },
                    {"full_name": "C", "status": "Questionable"},
                ],
            }
        ]
    }

    events = flatten_injuries(InjuriesResponse.model_validate(payload))

    assert [(e.player, e.status) for e in events] == [("A", "Out"), ("B", "Out"), ("C", "Questionable")]
    assert all(e.team == "Boston Celtics" and e.alias == "BOS" for e in events)
    assert events[1].comment == "ankle"
    assert events[1].updated_at == "2024-03-01T11:50:00+00:00"


# ------------------------------------------------------------------
# Strategy table
# ------------------------------------------------------------------

def test_static_strategies_cover_all_sources():
    ids = [s.id for s in STATIC_STRATEGIES]
    assert len(ids) == len(set(ids))
    assert {s.source for s in STATIC_STRATEGIES} == set(StrategySource)
    assert [s.id for s in list_strategies()] == ids


def test_load_strategies_from_json(tmp_path):
    path = tmp_path / "strategies.json"
    path.write_text(
        json.dumps(
            [
                {
                    "id": "custom",
                    "name": "Custom",
                    "source": "maker-exit",
                    "mode": "exit",
                    "max_notional": 25,
                    "params": {"max_hold_minutes": 5},
                }
            ]
        )
    )

    strategies = load_strategies(path)

    assert strategies[0].source == StrategySource.MAKER_EXIT
    assert strategies[0].schedule == "*/1 * * * *"
    assert strategies[0].daily_cap == 0


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        json.dumps({"id": "x"}),
        json.dumps([{"id": "x", "name": "X", "source": "unknown", "max_notional": 1}]),
        json.dumps([
            {"id": "x", "name": "X", "source": "ai-entry", "max_notional": 1},
            {"id": "x", "name": "Y", "source": "ai-exit", "max_notional": 1},
        ]),
    ],
)
def test_load_strategies_rejects_bad_files(tmp_path, content):
    path = tmp_path / "strategies.json"
    path.write_text(content)
    with pytest.raises(ValueError):
        load_strategies(path)
