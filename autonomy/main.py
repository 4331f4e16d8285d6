"""Entry point for the autonomy engine."""

from __future__ import annotations

import asyncio
import logging

from autonomy.config import setup_logging
from autonomy.scheduler import AutonomyScheduler

logger = logging.getLogger(__name__)


async def _main() -> None:
    setup_logging()
    logger.info("autonomy_starting")

    scheduler = AutonomyScheduler()
    await scheduler.start()


def main() -> None:
    asyncio.run(_main())


if __name__ == "__main__":
    main()
