# deploy_service/routers/deploy_routes.py
"""
API routes for deploys.

Submitting a deploy returns immediately with a Pending record; the pipeline
runs in the background and its progress is observed by polling. All endpoints
require an authenticated caller.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from ..dependencies.app_deps import get_deploy_facade
from ..dependencies.user_deps import get_current_user_id
from ..logging_config import logger
from ..rate_limiting import DEPLOY_SUBMIT_LIMIT, limiter
from ..schemas.common import PaginatedResponse
from ..schemas.deploy_schemas import (
    DeployCommandResponse,
    DeployCreate,
    DeployHistoryResponse,
    DeployListItem,
    DeploySubmitResponse,
    DeploySummary,
)
from ..services.deploy_service import DeployFacade

router = APIRouter(
    prefix="/deploys",
    tags=["Deploys"],
    dependencies=[Depends(get_current_user_id)],
)


@router.post(
    "",
    response_model=DeploySubmitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a Deploy",
    description="Validates and records a deploy, then runs it in the background.",
)
@limiter.limit(DEPLOY_SUBMIT_LIMIT)
async def submit_deploy(
    request: Request,
    deploy_data: DeployCreate,
    facade: DeployFacade = Depends(get_deploy_facade),
    user_id: UUID = Depends(get_current_user_id),
):
    """
    Creates a deploy with all of its commands in `Pending` and schedules it.

    - **repoUrl** / **branch**: the source to fetch.
    - **buildCommands**: commands run in order; each may carry `terminalId` and `order`.
    - **buildOutput**: directory, relative to the checkout, that gets published.
    - **siteName** / **applicationPath**: where the output is published.
    """
    response = await facade.submit(deploy_data, user_id)
    logger.info(f"Deploy {response.id} submitted by user {user_id}")
    return response


@router.get(
    "",
    response_model=PaginatedResponse[DeployListItem],
    summary="List Deploys",
)
async def list_deploys(
    site_name: Optional[str] = Query(
        None, alias="siteName", description="Filter by site."
    ),
    requested_by: Optional[UUID] = Query(
        None, alias="requestedBy", description="Filter by requesting user."
    ),
    page: int = Query(1, ge=1, description="Page number."),
    size: int = Query(20, ge=1, le=100, description="Items per page."),
    facade: DeployFacade = Depends(get_deploy_facade),
):
    """
    Retrieves deploys newest first.
    """
    return await facade.list_deploys(
        page=page, size=size, site_name=site_name, requested_by=requested_by
    )


@router.get(
    "/{deploy_id}",
    response_model=DeploySummary,
    summary="Get Deploy Status",
)
async def get_deploy(
    deploy_id: UUID,
    facade: DeployFacade = Depends(get_deploy_facade),
):
    """
    Current state of a deploy including the status of every command.
    """
    return await facade.get_status(deploy_id)


@router.get(
    "/{deploy_id}/history",
    response_model=List[DeployHistoryResponse],
    summary="Get Deploy History",
)
async def get_deploy_history(
    deploy_id: UUID,
    facade: DeployFacade = Depends(get_deploy_facade),
):
    return await facade.get_history(deploy_id)


@router.get(
    "/{deploy_id}/commands",
    response_model=List[DeployCommandResponse],
    summary="List Deploy Commands",
)
async def get_deploy_commands(
    deploy_id: UUID,
    facade: DeployFacade = Depends(get_deploy_facade),
):
    return await facade.get_commands(deploy_id)


@router.post(
    "/{deploy_id}/cancel",
    response_model=DeploySummary,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Cancel a Deploy",
)
async def cancel_deploy(
    deploy_id: UUID,
    facade: DeployFacade = Depends(get_deploy_facade),
    user_id: UUID = Depends(get_current_user_id),
):
    """
    Stops a Pending or Running deploy. The executing command becomes
    `Cancelled`, later commands stay `Pending`, and the deploy ends `Failed`.
    Returns 409 when the deploy has already finished.
    """
    summary = await facade.cancel(deploy_id)
    logger.info(f"Deploy {deploy_id} cancelled by user {user_id}")
    return summary
