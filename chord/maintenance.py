"""
Timers that drive the periodic stabilization routines.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List

import config


async def run_periodically(name: str, interval: float,
                           operation: Callable[[], Awaitable], logger: logging.Logger):
    """
    Await operation every interval seconds until cancelled.

    An exception from one round is logged and the loop carries on.
    """
    while True:
        try:
            await asyncio.sleep(interval)
            await operation()
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error(f"{name} error: {type(e).__name__}: {e}")


class Maintenance:
    """
    Runs stabilize, fix-fingers and check-predecessor for one node, each
    on its own independent timer.
    """

    def __init__(self, node, stabilize_interval: float = None,
                 fix_fingers_interval: float = None,
                 check_predecessor_interval: float = None):
        self.node = node
        self.stabilize_interval = (config.STABILIZE_INTERVAL
                                   if stabilize_interval is None else stabilize_interval)
        self.fix_fingers_interval = (config.FIX_FINGERS_INTERVAL
                                     if fix_fingers_interval is None else fix_fingers_interval)
        self.check_predecessor_interval = (config.CHECK_PREDECESSOR_INTERVAL
                                           if check_predecessor_interval is None
                                           else check_predecessor_interval)
        self.tasks: List[asyncio.Task] = []
        self.logger = logging.getLogger(f"Maintenance-{node.node_id}")

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self.tasks)

    def start(self):
        """Create the three periodic tasks on the running event loop."""
        if self.running:
            return
        self.tasks = [
            asyncio.create_task(run_periodically(
                "Stabilize", self.stabilize_interval, self.node.stabilize, self.logger)),
            asyncio.create_task(run_periodically(
                "Fix fingers", self.fix_fingers_interval, self.node.fix_fingers, self.logger)),
            asyncio.create_task(run_periodically(
                "Check predecessor", self.check_predecessor_interval,
                self.node.check_predecessor, self.logger)),
        ]
        self.logger.info("Periodic maintenance started")

    async def stop(self):
        """Cancel the periodic tasks and wait for them to finish."""
        for task in self.tasks:
            task.cancel()
        await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks = []
        self.logger.info("Periodic maintenance stopped")
