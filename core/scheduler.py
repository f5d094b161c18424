import asyncio
from collections import deque
from typing import Deque, List, Optional

from config.logger import logger
from core.cycle import CycleResult, CycleRunner
from core.errors import PublishSendError


class CycleScheduler:
    """
    Runs cycles one at a time: on a periodic timer, or when an operator asks
    for a forced publish. Operator requests made while a cycle is in flight
    are queued and served by the next cycle.
    """

    def __init__(self, runner: CycleRunner, interval_seconds: float = 1800, publish_on_boot: bool = False):
        self.runner = runner
        self.interval_seconds = interval_seconds
        self.publish_on_boot = publish_on_boot
        self.cycle_count = 0
        self.last_result: Optional[CycleResult] = None
        self._lock = asyncio.Lock()
        self._wake = asyncio.Event()
        self._forced: Deque[asyncio.Future] = deque()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def request_forced(self) -> asyncio.Future:
        """Queues a forced publish. The future resolves with the CycleResult or the PublishSendError."""
        future = asyncio.get_running_loop().create_future()
        self._forced.append(future)
        self._wake.set()
        return future

    async def run_once(self, force: bool = False) -> CycleResult:
        async with self._lock:
            self.cycle_count += 1
            logger.info(f"--- Cycle #{self.cycle_count}{' [forced]' if force else ''} ---")
            result = await self.runner.run_cycle(force)
            self.last_result = result
            return result

    def _take_forced(self) -> List[asyncio.Future]:
        waiters = []
        while self._forced:
            future = self._forced.popleft()
            if not future.done():
                waiters.append(future)
        return waiters

    async def _sleep(self):
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=self.interval_seconds)
        except asyncio.TimeoutError:
            pass

    async def run_forever(self):
        force_next = self.publish_on_boot
        waiters: List[asyncio.Future] = []
        try:
            while True:
                self._wake.clear()
                waiters = self._take_forced()
                force = force_next or bool(waiters)
                force_next = False

                try:
                    result = await self.run_once(force)
                except PublishSendError as e:
                    logger.error(f"❌ Publish failed, state left unchanged: {e}")
                    self._resolve(waiters, error=e)
                except Exception as e:
                    logger.error(f"❌ Cycle error: {e}", exc_info=True)
                    self._resolve(waiters, error=e)
                else:
                    self._resolve(waiters, result=result)
                waiters = []

                if self._forced:
                    continue
                logger.info("💤 Sleeping until the next cycle...")
                await self._sleep()
        finally:
            for future in waiters + list(self._forced):
                if not future.done():
                    future.cancel()

    @staticmethod
    def _resolve(waiters: List[asyncio.Future], result: Optional[CycleResult] = None, error: Optional[BaseException] = None):
        for future in waiters:
            if future.done():
                continue
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result)
