"""
Pydantic schemas for deploy requests and responses.

Field names are snake_case in Python and camelCase on the wire.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from deploy_service.models.deploy import MAX_COMMAND_ORDER, CommandStatus, DeployStatus
from deploy_service.utils.helpers import to_camel


class BuildCommandIn(BaseModel):
    """One build/deploy step as submitted by the caller."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    command_text: str = Field(
        ...,
        max_length=1000,
        validation_alias=AliasChoices("comando", "command", "commandText"),
        description="Shell command to run inside the repository checkout.",
    )
    terminal_id: Optional[str] = Field(
        None,
        max_length=50,
        validation_alias=AliasChoices("terminalId", "terminal_id"),
        description="Logical output lane. Does not affect execution order.",
    )
    order: Optional[int] = Field(
        None,
        ge=0,
        le=MAX_COMMAND_ORDER,
        validation_alias=AliasChoices("order", "ordem"),
        description="Explicit execution position. Either all or no commands set it.",
    )


class DeployCreate(BaseModel):
    """Schema for submitting a new deploy."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    repo_url: str = Field(..., max_length=500, description="Repository to clone.")
    branch: str = Field(..., max_length=100, description="Branch or ref to check out.")
    build_commands: List[BuildCommandIn] = Field(
        ..., description="Ordered build/deploy commands."
    )
    build_output: str = Field(
        ...,
        max_length=200,
        description="Build output directory, relative to the repository root.",
    )
    site_name: str = Field(
        ...,
        max_length=200,
        description="Target site. 'site/app' selects an application inside the site.",
    )
    application_path: Optional[str] = Field(
        None, max_length=200, description="Application inside the site."
    )
    target_path: Optional[str] = Field(
        None,
        max_length=200,
        description="Publish target relative to the publications root. Defaults to site[/application].",
    )
    platform: Optional[str] = Field(None, max_length=100)


class DeploySubmitResponse(BaseModel):
    """Returned when a deploy has been accepted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    status: DeployStatus


class DeployCommandResponse(BaseModel):
    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    id: UUID
    order: int
    command_text: str
    terminal_id: Optional[str] = None
    status: CommandStatus
    message: Optional[str] = None
    exit_code: Optional[int] = None
    duration_ms: Optional[int] = None
    executed_at: Optional[datetime] = None


class DeployHistoryResponse(BaseModel):
    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    id: int
    occurred_at: datetime
    status: DeployStatus
    message: Optional[str] = None


class DeployListItem(BaseModel):
    """Summary of a deploy without its commands, for listings."""

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    id: UUID
    site_name: str
    application_name: Optional[str] = None
    repo_url: str
    branch: str
    platform: Optional[str] = None
    requested_by: UUID
    status: DeployStatus
    message: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class DeploySummary(DeployListItem):
    """Full current state of a deploy including every command."""

    build_output: str
    target_path: str
    commands: List[DeployCommandResponse]
