# deploy_service/crud/deploys.py
"""
Command Ledger: persistence operations for deploys, their commands and history.

Every mutating function validates the requested change against the deploy
state machine, stamps `updated_at` through `touch()`, and commits. Nothing
here ever deletes a command or a history entry.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from deploy_service.config import settings
from deploy_service.exceptions import (
    DeployNotFoundError,
    DeployValidationError,
    InvalidTransitionError,
)
from deploy_service.logging_config import logger
from deploy_service.models.base import utcnow
from deploy_service.models.deploy import (
    COMMAND_TRANSITIONS,
    DEPLOY_TRANSITIONS,
    MAX_COMMAND_ORDER,
    CommandStatus,
    Deploy,
    DeployCommand,
    DeployHistoryEntry,
    DeployStatus,
)
from deploy_service.schemas.deploy_schemas import DeployCreate
from deploy_service.utils.helpers import is_safe_relative_path, parse_site_and_application


def _require(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise DeployValidationError(f"'{field}' is required.")
    if "\x00" in value:
        raise DeployValidationError(f"'{field}' must not contain NUL characters.")
    return value.strip()


def _assign_orders(deploy_data: DeployCreate) -> List[Tuple[int, DeployCommand]]:
    commands = deploy_data.build_commands or []
    if not commands:
        raise DeployValidationError("At least one build command is required.")

    supplied = [command.order for command in commands if command.order is not None]
    if supplied and len(supplied) != len(commands):
        raise DeployValidationError(
            "Either every build command or none of them must specify 'order'."
        )
    out_of_range = [o for o in supplied if not 0 <= o <= MAX_COMMAND_ORDER]
    if out_of_range:
        raise DeployValidationError(
            f"Build command orders must be between 0 and {MAX_COMMAND_ORDER}; got {out_of_range}."
        )
    if len(set(supplied)) != len(supplied):
        duplicates = sorted({o for o in supplied if supplied.count(o) > 1})
        raise DeployValidationError(
            f"Build command orders must be unique; duplicated: {duplicates}."
        )

    assigned = []
    for position, command in enumerate(commands, start=1):
        text = _require(command.command_text, f"buildCommands[{position - 1}].comando")
        order = command.order if command.order is not None else position
        assigned.append(
            (
                order,
                DeployCommand(
                    order=order,
                    command_text=text,
                    terminal_id=command.terminal_id or None,
                    status=CommandStatus.PENDING,
                ),
            )
        )
    return sorted(assigned, key=lambda pair: pair[0])


def resolve_target_path(
    site_name: str,
    application_name: Optional[str],
    target_path: Optional[str],
    publications_root: Path,
) -> str:
    """
    Work out the publish target relative to the publications root.

    Raises DeployValidationError when the target is absolute, contains '..',
    or would resolve outside the root.
    """
    relative = target_path.strip().strip("/\\") if target_path else None
    if not relative:
        relative = "/".join(part for part in (site_name, application_name) if part)

    if not is_safe_relative_path(relative):
        raise DeployValidationError(f"Invalid publish target path: '{relative}'.")

    root = publications_root.resolve()
    resolved = (root / relative).resolve()
    if resolved != root and root not in resolved.parents:
        raise DeployValidationError(
            f"Publish target '{relative}' escapes the publications directory."
        )
    if resolved == root:
        raise DeployValidationError("Publish target cannot be the publications root.")
    return relative


async def create_deploy(
    db: AsyncSession,
    deploy_data: DeployCreate,
    requested_by: UUID,
    publications_root: Optional[Path] = None,
) -> Deploy:
    """
    Validates a submission and persists the deploy with its full command list.

    Args:
        db: The SQLAlchemy async session.
        deploy_data: The submitted deploy.
        requested_by: The ID of the user initiating the deploy.
        publications_root: Root directory publish targets must stay inside.

    Returns:
        The newly created Deploy, status Pending, every command Pending.

    Raises:
        DeployValidationError: If the submission is malformed. Nothing is persisted.
    """
    repo_url = _require(deploy_data.repo_url, "repoUrl")
    branch = _require(deploy_data.branch, "branch")
    build_output = _require(deploy_data.build_output, "buildOutput").strip("/\\")
    raw_site = _require(deploy_data.site_name, "siteName")

    if not is_safe_relative_path(build_output):
        raise DeployValidationError(f"Invalid build output path: '{build_output}'.")

    site_name, application_name = parse_site_and_application(
        raw_site, deploy_data.application_path
    )
    if not site_name:
        raise DeployValidationError("'siteName' is required.")

    target_path = resolve_target_path(
        site_name,
        application_name,
        deploy_data.target_path,
        publications_root or settings.PUBLICATIONS_PATH,
    )
    commands = [command for _, command in _assign_orders(deploy_data)]

    logger.info(
        f"Creating deploy record for site '{site_name}' "
        f"({len(commands)} commands) requested by {requested_by}"
    )

    new_deploy = Deploy(
        site_name=site_name,
        application_name=application_name,
        repo_url=repo_url,
        branch=branch,
        build_output=build_output,
        target_path=target_path,
        platform=deploy_data.platform,
        requested_by=requested_by,
        status=DeployStatus.PENDING,
        commands=commands,
    )

    db.add(new_deploy)
    await db.commit()
    await db.refresh(new_deploy, ["commands", "history"])

    logger.info(f"Successfully created deploy record with ID: {new_deploy.id}")
    return new_deploy


async def get_deploy(db: AsyncSession, deploy_id: UUID) -> Deploy:
    """
    Retrieves a single deploy with its commands and history.

    Raises:
        DeployNotFoundError: If the deploy does not exist.
    """
    query = select(Deploy).where(Deploy.id == deploy_id).execution_options(
        populate_existing=True
    )
    result = await db.execute(query)
    deploy = result.scalar_one_or_none()

    if not deploy:
        logger.warning(f"Deploy with ID {deploy_id} not found")
        raise DeployNotFoundError(f"Deploy with ID {deploy_id} not found.")

    return deploy


async def list_deploys(
    db: AsyncSession,
    site_name: Optional[str] = None,
    requested_by: Optional[UUID] = None,
    skip: int = 0,
    limit: int = 100,
) -> Tuple[Sequence[Deploy], int]:
    """
    Lists deploys newest first, optionally filtered by site and requester.

    Returns:
        A tuple containing the page of Deploy objects and the total count.
    """
    query_filters = []
    if site_name:
        query_filters.append(Deploy.site_name == site_name)
    if requested_by:
        query_filters.append(Deploy.requested_by == requested_by)

    count_query = select(func.count(Deploy.id))
    items_query = select(Deploy)
    if query_filters:
        count_query = count_query.where(and_(*query_filters))
        items_query = items_query.where(and_(*query_filters))

    total = (await db.execute(count_query)).scalar_one()

    items_query = (
        items_query.order_by(Deploy.created_at.desc(), Deploy.id)
        .offset(skip)
        .limit(limit)
    )
    items = (await db.execute(items_query)).scalars().all()

    return items, total


async def list_unfinished_deploys(db: AsyncSession) -> Sequence[Deploy]:
    """Deploys whose status is still Pending or Running."""
    query = (
        select(Deploy)
        .where(Deploy.status.in_([DeployStatus.PENDING, DeployStatus.RUNNING]))
        .order_by(Deploy.created_at)
    )
    return (await db.execute(query)).scalars().all()


async def get_history(db: AsyncSession, deploy_id: UUID) -> List[DeployHistoryEntry]:
    """The deploy's audit trail in chronological order."""
    await _ensure_exists(db, deploy_id)
    query = (
        select(DeployHistoryEntry)
        .where(DeployHistoryEntry.deploy_id == deploy_id)
        .order_by(DeployHistoryEntry.id)
    )
    return list((await db.execute(query)).scalars().all())


async def get_commands(db: AsyncSession, deploy_id: UUID) -> List[DeployCommand]:
    """The deploy's commands in ascending execution order."""
    await _ensure_exists(db, deploy_id)
    query = (
        select(DeployCommand)
        .where(DeployCommand.deploy_id == deploy_id)
        .order_by(DeployCommand.order)
    )
    return list((await db.execute(query)).scalars().all())


async def update_command_status(
    db: AsyncSession,
    deploy_id: UUID,
    order: int,
    status: CommandStatus,
    message: Optional[str] = None,
    executed_at: Optional[datetime] = None,
    exit_code: Optional[int] = None,
    duration_ms: Optional[int] = None,
) -> DeployCommand:
    """
    Moves one command to a new status.

    Raises:
        DeployNotFoundError: If the deploy or the order does not exist.
        InvalidTransitionError: If `status` is not reachable from the command's
            current status, or a command is started on a deploy that is not Running.
    """
    deploy = await get_deploy(db, deploy_id)
    command = next((c for c in deploy.commands if c.order == order), None)
    if command is None:
        raise DeployNotFoundError(f"Deploy {deploy_id} has no command with order {order}.")

    current = CommandStatus(command.status)
    if status not in COMMAND_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Command {order} of deploy {deploy_id} cannot move from "
            f"{current.value} to {status.value}."
        )
    if status == CommandStatus.RUNNING and deploy.status != DeployStatus.RUNNING:
        raise InvalidTransitionError(
            f"Command {order} cannot start while deploy {deploy_id} is {deploy.status.value}."
        )

    now = utcnow()
    command.status = status
    if message is not None:
        command.message = message
    if executed_at is not None:
        command.executed_at = executed_at
    if exit_code is not None:
        command.exit_code = exit_code
    if duration_ms is not None:
        command.duration_ms = duration_ms
    command.touch(now)
    deploy.touch(now)

    await db.commit()
    logger.debug(f"[Deploy:{deploy_id}] Command {order} -> {status.value}")
    return command


async def append_history(
    db: AsyncSession,
    deploy_id: UUID,
    status: DeployStatus,
    message: Optional[str] = None,
) -> DeployHistoryEntry:
    """Appends one audit entry. Fails only when the deploy does not exist."""
    deploy = await get_deploy(db, deploy_id)
    entry = _add_history(deploy, status, message)
    await db.commit()
    return entry


async def set_deploy_status(
    db: AsyncSession,
    deploy_id: UUID,
    status: DeployStatus,
    message: Optional[str] = None,
) -> Deploy:
    """
    Changes the aggregate status and records the change in history, in one commit.

    Raises:
        DeployNotFoundError: If the deploy does not exist.
        InvalidTransitionError: If the transition is illegal or disagrees with
            the command states.
    """
    deploy = await get_deploy(db, deploy_id)
    current = DeployStatus(deploy.status)
    if status not in DEPLOY_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Deploy {deploy_id} cannot move from {current.value} to {status.value}."
        )
    _check_consistency(deploy, status)

    deploy.status = status
    deploy.message = message
    _add_history(deploy, status, message)
    await db.commit()

    logger.info(f"[Deploy:{deploy_id}] Status updated to {status.value}")
    return deploy


def _check_consistency(deploy: Deploy, status: DeployStatus) -> None:
    states = [CommandStatus(c.status) for c in deploy.commands]
    if status == DeployStatus.SUCCEEDED and any(
        s != CommandStatus.SUCCEEDED for s in states
    ):
        raise InvalidTransitionError(
            f"Deploy {deploy.id} cannot succeed while commands are not all Succeeded."
        )
    if status != DeployStatus.FAILED and any(
        s in (CommandStatus.FAILED, CommandStatus.CANCELLED) for s in states
    ):
        raise InvalidTransitionError(
            f"Deploy {deploy.id} has a failed command and can only be Failed."
        )


def _add_history(
    deploy: Deploy, status: DeployStatus, message: Optional[str]
) -> DeployHistoryEntry:
    now = utcnow()
    entry = DeployHistoryEntry(occurred_at=now, status=status, message=message)
    deploy.history.append(entry)
    deploy.touch(now)
    return entry


async def _ensure_exists(db: AsyncSession, deploy_id: UUID) -> None:
    found = (
        await db.execute(select(Deploy.id).where(Deploy.id == deploy_id))
    ).scalar_one_or_none()
    if found is None:
        raise DeployNotFoundError(f"Deploy with ID {deploy_id} not found.")
