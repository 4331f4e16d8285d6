"""Tests for the trigger and status HTTP endpoints."""

import asyncio
from datetime import datetime, timezone

from aiohttp import test_utils

from autonomy.jobs import strategy_runner
from autonomy.models import RunStatus, StrategyRunResult, StrategyRunSummary
from autonomy.scheduler import AutonomyScheduler

RUN_AT = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _request(scheduler, method, path, **kwargs):
    async def go():
        async with test_utils.TestClient(test_utils.TestServer(scheduler.build_app())) as client:
            resp = await client.request(method, path, **kwargs)
            return resp.status, await resp.json()

    return asyncio.run(go())


def _fake_tick(calls):
    async def run_strategy_tick(now=None):
        calls.append(now)
        return StrategyRunSummary(
            run_at=RUN_AT,
            results=[StrategyRunResult(strategy_id="s1", status=RunStatus.QUEUED, trades_enqueued=1)],
        )

    return run_strategy_tick


def test_run_requires_configured_secret(monkeypatch):
    calls = []
    monkeypatch.setattr(strategy_runner, "run_strategy_tick", _fake_tick(calls))

    status, body = _request(AutonomyScheduler(cron_secret=""), "POST", "/run")

    assert status == 500
    assert calls == []


def test_run_rejects_wrong_token(monkeypatch):
    calls = []
    monkeypatch.setattr(strategy_runner, "run_strategy_tick", _fake_tick(calls))

    status, body = _request(
        AutonomyScheduler(cron_secret="s3cret"),
        "POST",
        "/run",
        headers={"Authorization": "Bearer wrong"},
    )

    assert status == 401
    assert body == {"error": "Unauthorized"}
    assert calls == []


def test_run_returns_summary(monkeypatch):
    calls = []
    monkeypatch.setattr(strategy_runner, "run_strategy_tick", _fake_tick(calls))

    status, body = _request(
        AutonomyScheduler(cron_secret="s3cret"),
        "POST",
        "/run",
        headers={"Authorization": "Bearer s3cret"},
    )

    assert status == 200
    assert len(calls) == 1
    assert body["results"][0]["status"] == "queued"
    assert body["results"][0]["trades_enqueued"] == 1


def test_strategies_endpoint(monkeypatch):
    async def status():
        return {"strategies": [], "runs": [], "trading_enabled": False, "cron_configured": True}

    monkeypatch.setattr(strategy_runner, "get_autonomy_status", status)

    code, body = _request(AutonomyScheduler(cron_secret="x"), "GET", "/strategies")

    assert code == 200
    assert body["cron_configured"] is True


def test_health():
    code, body = _request(AutonomyScheduler(), "GET", "/health")

    assert code == 200
    assert body["status"] == "ok"
