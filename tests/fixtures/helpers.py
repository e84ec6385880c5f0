"""
Helper functions for building deploy submissions and seeding the ledger.
"""
import uuid
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from deploy_service import crud
from deploy_service.models.deploy import Deploy, DeployStatus
from deploy_service.schemas.deploy_schemas import BuildCommandIn, DeployCreate


def make_deploy_data(
    commands: Optional[List[str]] = None,
    orders: Optional[List[int]] = None,
    **overrides,
) -> DeployCreate:
    """
    Build a DeployCreate. `commands` are command texts; `orders`, when given,
    are assigned to them position by position.
    """
    commands = ["npm ci", "npm run build"] if commands is None else commands
    build_commands = [
        BuildCommandIn(
            command_text=text,
            terminal_id="t1",
            order=orders[i] if orders is not None else None,
        )
        for i, text in enumerate(commands)
    ]
    fields = {
        "repo_url": "https://example.com/acme/shop.git",
        "branch": "main",
        "build_commands": build_commands,
        "build_output": "dist",
        "site_name": "shop",
    }
    fields.update(overrides)
    return DeployCreate(**fields)


async def create_test_deploy(
    db_session: AsyncSession,
    publications_root,
    user_id: Optional[uuid.UUID] = None,
    **kwargs,
) -> Deploy:
    return await crud.create_deploy(
        db_session,
        make_deploy_data(**kwargs),
        user_id or uuid.uuid4(),
        publications_root,
    )


async def create_running_deploy(db_session: AsyncSession, publications_root, **kwargs) -> Deploy:
    deploy = await create_test_deploy(db_session, publications_root, **kwargs)
    return await crud.set_deploy_status(db_session, deploy.id, DeployStatus.RUNNING, "deploy started")
