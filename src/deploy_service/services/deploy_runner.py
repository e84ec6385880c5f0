# deploy_service/services/deploy_runner.py
"""
Background execution of deploy runs: one asyncio task per deploy, at most
`max_concurrent` of them inside the orchestrator at any time.
"""
import asyncio
from typing import Dict, Optional
from uuid import UUID

from deploy_service.logging_config import logger
from deploy_service.services.orchestration_service import DeployOrchestrator


class DeployRunner:
    def __init__(self, orchestrator: DeployOrchestrator, max_concurrent: int = 4):
        self.orchestrator = orchestrator
        self.max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._tasks: Dict[UUID, asyncio.Task] = {}

    def start(self, deploy_id: UUID) -> asyncio.Task:
        """Schedule a deploy run. Must be called from within the event loop."""
        existing = self._tasks.get(deploy_id)
        if existing and not existing.done():
            return existing

        task = asyncio.create_task(self._run(deploy_id), name=f"deploy-{deploy_id}")
        self._tasks[deploy_id] = task
        task.add_done_callback(lambda t: self._on_done(deploy_id, t))
        logger.info(f"[Deploy:{deploy_id}] Scheduled for execution.")
        return task

    async def _run(self, deploy_id: UUID) -> None:
        try:
            async with self._semaphore:
                await self.orchestrator.run(deploy_id)
        except asyncio.CancelledError:
            # A run cancelled inside the orchestrator is already Failed; this
            # covers deploys cancelled while still waiting for a slot.
            await self.orchestrator.abort(deploy_id)
            raise

    def _on_done(self, deploy_id: UUID, task: asyncio.Task) -> None:
        if self._tasks.get(deploy_id) is task:
            del self._tasks[deploy_id]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"[Deploy:{deploy_id}] Background run crashed: {error}",
                exc_info=error,
            )

    def is_active(self, deploy_id: UUID) -> bool:
        task = self._tasks.get(deploy_id)
        return task is not None and not task.done()

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def cancel(self, deploy_id: UUID) -> bool:
        """
        Cancels a live run and waits until it has recorded the cancellation.

        Returns False when no run is live for this deploy.
        """
        task = self._tasks.get(deploy_id)
        if task is None or task.done():
            return False

        task.cancel()
        logger.info(f"[Deploy:{deploy_id}] Cancellation requested.")
        await asyncio.gather(task, return_exceptions=True)
        return True

    async def wait(self, deploy_id: UUID, timeout: Optional[float] = None) -> bool:
        """Waits for a run to finish. Returns False on timeout."""
        task = self._tasks.get(deploy_id)
        if task is None:
            return True
        done, _ = await asyncio.wait({task}, timeout=timeout)
        return task in done

    async def wait_all(self, timeout: Optional[float] = None) -> None:
        tasks = [task for task in self._tasks.values() if not task.done()]
        if tasks:
            await asyncio.wait(tasks, timeout=timeout)

    async def shutdown(self) -> None:
        """Cancels every live run and waits for them to record it."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        if not tasks:
            return
        logger.info(f"Cancelling {len(tasks)} running deploy(s) on shutdown.")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
