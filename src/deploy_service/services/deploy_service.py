# deploy_service/services/deploy_service.py
"""
DeployFacade: the single entry point the HTTP layer talks to.

It persists submissions through the Command Ledger, hands them to the
background runner and serves read models. Callers never see pipeline
failures as exceptions, only as deploy status.
"""
import math
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deploy_service import crud
from deploy_service.config import Settings, settings
from deploy_service.exceptions import DeployConflictError
from deploy_service.logging_config import logger
from deploy_service.models.deploy import CommandStatus, DeployStatus
from deploy_service.schemas import (
    DeployCommandResponse,
    DeployCreate,
    DeployHistoryResponse,
    DeployListItem,
    DeploySubmitResponse,
    DeploySummary,
    PaginatedResponse,
)
from deploy_service.services.deploy_runner import DeployRunner
from deploy_service.services.executors import StepExecutor
from deploy_service.services.orchestration_service import (
    CANCELLED_REASON,
    RESTART_REASON,
    DeployLockRegistry,
    DeployOrchestrator,
)


class DeployFacade:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        step_executor: StepExecutor,
        app_settings: Optional[Settings] = None,
    ):
        self.settings = app_settings or settings
        self.session_factory = session_factory
        self.locks = DeployLockRegistry()
        self.orchestrator = DeployOrchestrator(
            session_factory, step_executor, self.locks, self.settings
        )
        self.runner = DeployRunner(self.orchestrator, self.settings.MAX_CONCURRENT_DEPLOYS)

    async def submit(
        self, deploy_data: DeployCreate, requested_by: UUID
    ) -> DeploySubmitResponse:
        """
        Validates and records a deploy, then schedules it.

        Raises:
            DeployValidationError: The submission is malformed; nothing was stored.
        """
        async with self.session_factory() as db:
            deploy = await crud.create_deploy(
                db, deploy_data, requested_by, self.settings.PUBLICATIONS_PATH
            )
            response = DeploySubmitResponse(id=deploy.id, status=deploy.status)

        self.runner.start(response.id)
        return response

    async def get_status(self, deploy_id: UUID) -> DeploySummary:
        async with self.session_factory() as db:
            deploy = await crud.get_deploy(db, deploy_id)
            return DeploySummary.model_validate(deploy)

    async def get_history(self, deploy_id: UUID) -> List[DeployHistoryResponse]:
        async with self.session_factory() as db:
            entries = await crud.get_history(db, deploy_id)
            return [DeployHistoryResponse.model_validate(e) for e in entries]

    async def get_commands(self, deploy_id: UUID) -> List[DeployCommandResponse]:
        async with self.session_factory() as db:
            commands = await crud.get_commands(db, deploy_id)
            return [DeployCommandResponse.model_validate(c) for c in commands]

    async def list_deploys(
        self,
        page: int = 1,
        size: int = 20,
        site_name: Optional[str] = None,
        requested_by: Optional[UUID] = None,
    ) -> PaginatedResponse[DeployListItem]:
        skip = (page - 1) * size
        async with self.session_factory() as db:
            items, total = await crud.list_deploys(
                db,
                site_name=site_name,
                requested_by=requested_by,
                skip=skip,
                limit=size,
            )
            items = [DeployListItem.model_validate(d) for d in items]

        pages = math.ceil(total / size) if size > 0 else 0
        return PaginatedResponse[DeployListItem](
            items=items,
            total=total,
            page=page,
            size=size,
            pages=pages,
            has_next=page < pages,
            has_prev=page > 1,
            next_page=page + 1 if page < pages else None,
            prev_page=page - 1 if page > 1 else None,
        )

    async def cancel(self, deploy_id: UUID) -> DeploySummary:
        """
        Cancels a Pending or Running deploy and returns its final state.

        Raises:
            DeployNotFoundError: Unknown deploy.
            DeployConflictError: The deploy has already finished.
        """
        summary = await self.get_status(deploy_id)
        if summary.status.is_terminal:
            raise DeployConflictError(
                f"Deploy {deploy_id} is already {summary.status.value} and cannot be cancelled."
            )

        # A task cancelled before its first step records nothing, so the
        # abort always follows. It is a no-op once the deploy is terminal.
        stopped = await self.runner.cancel(deploy_id)
        aborted = await self.orchestrator.abort(deploy_id, CANCELLED_REASON)
        if not (stopped or aborted):
            raise DeployConflictError(f"Deploy {deploy_id} finished before it could be cancelled.")

        logger.info(f"[Deploy:{deploy_id}] Cancelled.")
        return await self.get_status(deploy_id)

    async def recover_interrupted_deploys(self) -> int:
        """
        Fails deploys a previous process left Pending or Running.

        Only call at startup, before any new deploy is scheduled.
        """
        async with self.session_factory() as db:
            unfinished = [d.id for d in await crud.list_unfinished_deploys(db)]

        recovered = 0
        for deploy_id in unfinished:
            if self.runner.is_active(deploy_id):
                continue
            if await self.orchestrator.abort(
                deploy_id, RESTART_REASON, CommandStatus.FAILED
            ):
                recovered += 1

        if recovered:
            logger.warning(f"Marked {recovered} interrupted deploy(s) as {DeployStatus.FAILED.value}.")
        return recovered

    async def wait(self, deploy_id: UUID, timeout: Optional[float] = None) -> bool:
        return await self.runner.wait(deploy_id, timeout)

    async def shutdown(self) -> None:
        await self.runner.shutdown()
