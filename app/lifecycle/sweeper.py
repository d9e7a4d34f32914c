import asyncio
import logging
from typing import Optional

from app.lifecycle.engine import LifecycleEngine

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Runs ``engine.sweep_expired`` on a fixed interval inside the event loop."""

    def __init__(self, engine: LifecycleEngine, interval: float = 1.0):
        self.engine = engine
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self):
        logger.info("Expiry sweeper started (every %.2fs)", self.interval)
        while True:
            try:
                # Commits run their hooks (database writes) on the calling thread
                transitions = await asyncio.to_thread(self.engine.sweep_expired)
                for transition in transitions:
                    logger.info(
                        "Expired %s %s: %s -> %s",
                        transition.entity, transition.entity_id,
                        transition.from_status, transition.to_status,
                    )
            except Exception:
                logger.exception("Expiry sweep failed")
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        if not self.running:
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiry sweeper stopped")
