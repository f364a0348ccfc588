import asyncio
from typing import Optional

from backend import EntityStore, SweepResult
from broadcast import BroadcastFabric
from logging_config import get_logger

logger = get_logger(__name__)


class ExpirySweeper:
    """Background task evicting expired rooms/messages every `interval_seconds`.

    Also closes connection sets whose room no longer exists, which covers rooms
    evicted lazily by a lookup between sweeps.
    """

    def __init__(self, store: EntityStore, fabric: BroadcastFabric, interval_seconds: float = 60):
        self.store = store
        self.fabric = fabric
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._loop())
            logger.info(f"Expiry sweeper started (interval {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiry sweeper stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Expiry sweep failed: {e}", exc_info=True)

    async def run_once(self) -> SweepResult:
        result = self.store.sweep_expired()
        removed = set(result.removed_room_ids)
        for room_id in sorted(removed | set(self.fabric.room_ids())):
            try:
                if room_id in removed or not self.store.has_room(room_id):
                    await self.fabric.close_room(room_id, "Room has expired")
            except Exception as e:
                logger.error(f"Failed to close connections for room {room_id}: {e}", exc_info=True)
        return result
