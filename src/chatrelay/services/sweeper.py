"""Result sweeper — evicts orphaned results in the background.

Learn: A worker can answer after the caller already hit its deadline.
That result is stored but nobody will ever read it. This loop runs in
the FastAPI lifespan and periodically asks the broker to drop such
results once they are older than result_ttl, which bounds memory.

Usage:
    sweeper = ResultSweeper(broker, interval=60.0)
    asyncio.create_task(sweeper.run_loop())
"""

import asyncio

import structlog

from chatrelay.services.broker import RelayBroker

logger = structlog.get_logger()


class ResultSweeper:
    """Periodic orphan-result cleanup."""

    def __init__(self, broker: RelayBroker, interval: float = 60.0):
        self.broker = broker
        self.interval = interval
        self._running = False

    async def run_loop(self) -> None:
        """Sweep every `interval` seconds until stopped."""
        self._running = True
        logger.info("sweeper.started", interval=self.interval)

        while self._running:
            await asyncio.sleep(self.interval)
            try:
                self.broker.sweep_orphans()
            except Exception:
                logger.exception("sweeper.error")

    def stop(self) -> None:
        """Signal the loop to stop after the current sleep."""
        self._running = False
        logger.info("sweeper.stopping")
