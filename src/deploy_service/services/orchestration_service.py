# deploy_service/services/orchestration_service.py
"""
The deploy orchestrator: drives one deploy from Pending to a terminal status.

fetch -> every command in ascending order -> publish. The first failing phase
stops the run and is recorded on the deploy; commands after a failure stay
Pending. Pipeline failures never escape `run()` as exceptions.
"""
import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deploy_service import crud
from deploy_service.config import Settings, settings
from deploy_service.exceptions import ExecutionError, FetchError, PublishError
from deploy_service.logging_config import logger
from deploy_service.models.base import utcnow
from deploy_service.models.deploy import CommandStatus, DeployStatus
from deploy_service.services.executors import StepExecutor
from deploy_service.utils.helpers import tail_text

CANCELLED_REASON = "Deploy cancelled"
RESTART_REASON = "Deploy interrupted by service restart"


class DeployLockRegistry:
    """
    One asyncio.Lock per deploy id.

    Guarantees a single mutator per deploy while deploys with different ids
    never wait on each other. Locks are dropped once nobody holds or awaits them.
    """

    def __init__(self):
        self._locks: Dict[UUID, asyncio.Lock] = {}
        self._holders: Dict[UUID, int] = {}

    @asynccontextmanager
    async def hold(self, deploy_id: UUID) -> AsyncIterator[None]:
        lock = self._locks.setdefault(deploy_id, asyncio.Lock())
        self._holders[deploy_id] = self._holders.get(deploy_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[deploy_id] -= 1
            if not self._holders[deploy_id]:
                del self._holders[deploy_id]
                del self._locks[deploy_id]

    def is_locked(self, deploy_id: UUID) -> bool:
        lock = self._locks.get(deploy_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


class DeployOrchestrator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        step_executor: StepExecutor,
        locks: Optional[DeployLockRegistry] = None,
        app_settings: Optional[Settings] = None,
    ):
        app_settings = app_settings or settings
        self.session_factory = session_factory
        self.step_executor = step_executor
        self.locks = locks or DeployLockRegistry()
        self.command_timeout = app_settings.COMMAND_TIMEOUT_SECONDS
        self.tail_length = app_settings.MESSAGE_TAIL_LENGTH
        self.publications_root = Path(app_settings.PUBLICATIONS_PATH)

    async def run(self, deploy_id: UUID) -> DeployStatus:
        """
        Executes a Pending deploy to completion and returns its final status.

        Cancelling the task running this coroutine marks the executing command
        Cancelled and the deploy Failed, then re-raises CancelledError.
        """
        async with self.locks.hold(deploy_id):
            logger.info(f"[Deploy:{deploy_id}] Starting deploy run.")
            try:
                return await self._execute(deploy_id)
            except asyncio.CancelledError:
                logger.warning(f"[Deploy:{deploy_id}] Run cancelled.")
                await self._abort(deploy_id, CANCELLED_REASON, CommandStatus.CANCELLED)
                raise
            except Exception as e:
                logger.error(
                    f"[Deploy:{deploy_id}] Deploy run failed unexpectedly: {e}",
                    exc_info=True,
                )
                await self._abort(
                    deploy_id, f"Deploy aborted by internal error: {e}", CommandStatus.FAILED
                )
                return DeployStatus.FAILED

    async def abort(
        self,
        deploy_id: UUID,
        reason: str = CANCELLED_REASON,
        command_status: CommandStatus = CommandStatus.CANCELLED,
    ) -> bool:
        """
        Forces a deploy that is not running here to Failed.

        Returns False when the deploy was already terminal.
        """
        async with self.locks.hold(deploy_id):
            return await self._abort(deploy_id, reason, command_status)

    async def _execute(self, deploy_id: UUID) -> DeployStatus:
        async with self.session_factory() as db:
            current = await crud.get_deploy(db, deploy_id)
            if current.status != DeployStatus.PENDING:
                logger.warning(
                    f"[Deploy:{deploy_id}] Not Pending ({current.status.value}); skipping run."
                )
                return DeployStatus(current.status)
            deploy = await crud.set_deploy_status(
                db, deploy_id, DeployStatus.RUNNING, "deploy started"
            )
            repo_url, branch = deploy.repo_url, deploy.branch
            build_output, target_path = deploy.build_output, deploy.target_path
            commands: List[Tuple[int, str, Optional[str]]] = [
                (c.order, c.command_text, c.terminal_id) for c in deploy.commands
            ]

        # 1. Fetch
        logger.info(f"[Deploy:{deploy_id}] Fetching {repo_url} ({branch}).")
        try:
            working_directory = await self.step_executor.fetch_source(repo_url, branch)
        except FetchError as e:
            return await self._finish(
                deploy_id, DeployStatus.FAILED, f"Fetch failed: {e.reason}"
            )

        try:
            # 2. Commands, strictly in ascending order
            for position, (order, command_text, terminal_id) in enumerate(
                commands, start=1
            ):
                failure = await self._run_command(
                    deploy_id, position, order, command_text, terminal_id, working_directory
                )
                if failure:
                    return await self._finish(deploy_id, DeployStatus.FAILED, failure)

            # 3. Publish
            target = self.publications_root / target_path
            logger.info(f"[Deploy:{deploy_id}] Publishing '{build_output}' to {target}.")
            try:
                outcome = await self.step_executor.publish_output(
                    working_directory / build_output, target
                )
            except PublishError as e:
                return await self._finish(
                    deploy_id, DeployStatus.FAILED, f"Publish failed: {e.reason}"
                )

            return await self._finish(deploy_id, DeployStatus.SUCCEEDED, outcome)
        finally:
            await self.step_executor.release_source(working_directory)

    async def _run_command(
        self,
        deploy_id: UUID,
        position: int,
        order: int,
        command_text: str,
        terminal_id: Optional[str],
        working_directory: Path,
    ) -> Optional[str]:
        """Runs one command. Returns None on success, else the deploy failure message."""
        step = f"Step {position} (order {order})"
        await self._update_command(
            deploy_id, order, CommandStatus.RUNNING, executed_at=utcnow()
        )
        logger.info(f"[Deploy:{deploy_id}] {step}: {command_text}")

        try:
            result = await asyncio.wait_for(
                self.step_executor.execute_command(
                    command_text, working_directory, terminal_id
                ),
                timeout=self.command_timeout,
            )
        except asyncio.TimeoutError:
            message = f"Command timed out after {self.command_timeout:g} seconds"
            await self._update_command(deploy_id, order, CommandStatus.FAILED, message=message)
            return f"{step} timed out after {self.command_timeout:g} seconds"
        except ExecutionError as e:
            await self._update_command(
                deploy_id, order, CommandStatus.FAILED, message=e.reason
            )
            return f"{step} could not be started: {e.reason}"

        if result.succeeded:
            await self._update_command(
                deploy_id,
                order,
                CommandStatus.SUCCEEDED,
                message=tail_text(result.stdout, self.tail_length) or None,
                exit_code=result.exit_code,
                duration_ms=result.duration_ms,
            )
            return None

        output = tail_text(result.stderr or result.stdout, self.tail_length)
        await self._update_command(
            deploy_id,
            order,
            CommandStatus.FAILED,
            message=output or f"Exited with code {result.exit_code}",
            exit_code=result.exit_code,
            duration_ms=result.duration_ms,
        )
        failure = f"{step} failed with exit code {result.exit_code}"
        return f"{failure}: {output}" if output else failure

    async def _update_command(self, deploy_id: UUID, order: int, status: CommandStatus, **fields):
        async with self.session_factory() as db:
            await crud.update_command_status(db, deploy_id, order, status, **fields)

    async def _finish(
        self, deploy_id: UUID, status: DeployStatus, message: str
    ) -> DeployStatus:
        async with self.session_factory() as db:
            await crud.set_deploy_status(db, deploy_id, status, message)
        if status == DeployStatus.FAILED:
            logger.warning(f"[Deploy:{deploy_id}] Deploy failed: {message}")
        else:
            logger.info(f"[Deploy:{deploy_id}] Deploy succeeded: {message}")
        return status

    async def _abort(
        self, deploy_id: UUID, reason: str, command_status: CommandStatus
    ) -> bool:
        async with self.session_factory() as db:
            deploy = await crud.get_deploy(db, deploy_id)
            if DeployStatus(deploy.status).is_terminal:
                return False

            message = reason
            running = next(
                (c for c in deploy.commands if c.status == CommandStatus.RUNNING), None
            )
            if running is not None:
                await crud.update_command_status(
                    db, deploy_id, running.order, command_status, message=reason
                )
                message = f"{reason} during command {running.order}"

            await crud.set_deploy_status(db, deploy_id, DeployStatus.FAILED, message)
        logger.warning(f"[Deploy:{deploy_id}] {message}")
        return True
