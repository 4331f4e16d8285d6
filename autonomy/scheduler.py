"""APScheduler-based process runner for the autonomy engine."""

from __future__ import annotations

import asyncio
import hmac
import logging
import signal
from datetime import timezone

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from autonomy.config import CRON_SECRET, HEALTH_CHECK_PORT
from autonomy.jobs import strategy_runner

logger = logging.getLogger(__name__)


class AutonomyScheduler:
    """Runs the strategy tick every minute and serves the trigger/status API."""

    def __init__(self, cron_secret: str = CRON_SECRET, port: int = HEALTH_CHECK_PORT) -> None:
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._cron_secret = cron_secret
        self._port = port
        self._shutdown_event = asyncio.Event()
        self._health_runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Register the tick job, start serving, and block until shutdown."""
        self._scheduler.add_job(
            self._job_strategy_tick,
            "cron",
            minute="*",
            id="strategy_tick",
            name="Strategy Tick",
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info("scheduler_started")

        await self._start_health_server()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._signal_handler)

        await self._shutdown_event.wait()
        await self._stop()

    async def _stop(self) -> None:
        logger.info("scheduler_stopping")
        self._scheduler.shutdown(wait=False)
        if self._health_runner:
            await self._health_runner.cleanup()
        await strategy_runner.close()
        logger.info("scheduler_stopped")

    def _signal_handler(self) -> None:
        logger.info("shutdown_signal_received")
        self._shutdown_event.set()

    # ------------------------------------------------------------------
    # Job wrapper (catch exceptions so scheduler keeps running)
    # ------------------------------------------------------------------

    async def _job_strategy_tick(self) -> None:
        try:
            await strategy_runner.run_strategy_tick()
        except Exception:
            logger.error("strategy_tick_error", exc_info=True)

    # ------------------------------------------------------------------
    # HTTP: health, status, manual trigger
    # ------------------------------------------------------------------

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self._health_handler)
        app.router.add_get("/strategies", self._strategies_handler)
        app.router.add_post("/run", self._run_handler)
        return app

    async def _start_health_server(self) -> None:
        self._health_runner = web.AppRunner(self.build_app())
        await self._health_runner.setup()
        site = web.TCPSite(self._health_runner, "0.0.0.0", self._port)
        await site.start()
        logger.info("health_server_started", extra={"port": self._port})

    async def _health_handler(self, request: web.Request) -> web.Response:
        return web.json_response({
            "status": "ok",
            "scheduler_running": self._scheduler.running,
        })

    async def _strategies_handler(self, request: web.Request) -> web.Response:
        try:
            status = await strategy_runner.get_autonomy_status()
        except Exception:
            logger.error("status_failed", exc_info=True)
            return web.json_response({"error": "status unavailable"}, status=500)
        return web.json_response(status)

    async def _run_handler(self, request: web.Request) -> web.Response:
        if not self._cron_secret:
            return web.json_response({"error": "CRON_SECRET is not configured"}, status=500)

        expected = f"Bearer {self._cron_secret}"
        provided = request.headers.get("Authorization", "")
        if not hmac.compare_digest(provided.encode(), expected.encode()):
            logger.warning("run_unauthorized", extra={"remote": request.remote})
            return web.json_response({"error": "Unauthorized"}, status=401)

        try:
            summary = await strategy_runner.run_strategy_tick()
        except Exception as exc:
            logger.error("manual_run_failed", exc_info=True)
            return web.json_response({"error": str(exc)}, status=500)
        return web.json_response(summary.model_dump(mode="json"))
