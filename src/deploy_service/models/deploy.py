# deploy_service/models/deploy.py
"""
Database models for the Deploy Service.

A `Deploy` owns its ordered `DeployCommand` list and its append-only
`DeployHistoryEntry` audit trail. Commands are created together with the
deploy and are never added or removed afterwards; deploys are never deleted.
"""
from enum import Enum

from sqlalchemy import Column, DateTime
from sqlalchemy import Enum as SQLAEnum
from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin, UUIDMixin, utcnow

# Upper bound of the 32-bit `order` column.
MAX_COMMAND_ORDER = 2**31 - 1


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class DeployStatus(str, Enum):
    """Aggregate lifecycle status of a deploy."""

    PENDING = "Pending"  # Accepted and waiting for a worker.
    RUNNING = "Running"  # Source fetch, commands or publish in progress.
    SUCCEEDED = "Succeeded"  # Every command succeeded and the output was published.
    FAILED = "Failed"  # Fetch, a command, or publish failed, or the deploy was cancelled.

    @property
    def is_terminal(self) -> bool:
        return self in (DeployStatus.SUCCEEDED, DeployStatus.FAILED)


class CommandStatus(str, Enum):
    """Lifecycle status of a single deploy command."""

    PENDING = "Pending"  # Not attempted (yet, or ever after an abort).
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"  # Attempted and failed: non-zero exit, timeout or start error.
    CANCELLED = "Cancelled"  # Interrupted by a cancel request while running.

    @property
    def is_terminal(self) -> bool:
        return self in (
            CommandStatus.SUCCEEDED,
            CommandStatus.FAILED,
            CommandStatus.CANCELLED,
        )


DEPLOY_TRANSITIONS = {
    DeployStatus.PENDING: {DeployStatus.RUNNING, DeployStatus.FAILED},
    DeployStatus.RUNNING: {DeployStatus.SUCCEEDED, DeployStatus.FAILED},
    DeployStatus.SUCCEEDED: set(),
    DeployStatus.FAILED: set(),
}

COMMAND_TRANSITIONS = {
    CommandStatus.PENDING: {CommandStatus.RUNNING},
    CommandStatus.RUNNING: {
        CommandStatus.SUCCEEDED,
        CommandStatus.FAILED,
        CommandStatus.CANCELLED,
    },
    CommandStatus.SUCCEEDED: set(),
    CommandStatus.FAILED: set(),
    CommandStatus.CANCELLED: set(),
}


class Deploy(Base, UUIDMixin, TimestampMixin):
    """
    Represents one submitted deployment request and its full execution record.
    """

    __tablename__ = "deploys"

    # --- Immutable request data ---
    site_name = Column(String(200), nullable=False, index=True)
    application_name = Column(String(200), nullable=True)
    repo_url = Column(String(500), nullable=False)
    branch = Column(String(100), nullable=False)
    build_output = Column(
        String(200),
        nullable=False,
        comment="Build output directory, relative to the repository checkout.",
    )
    target_path = Column(
        String(500),
        nullable=False,
        comment="Publish target, relative to the configured publications root.",
    )
    platform = Column(String(100), nullable=True)
    requested_by = Column(Uuid(as_uuid=True), nullable=False, index=True)

    # --- Execution state ---
    status = Column(
        SQLAEnum(
            DeployStatus,
            name="deploy_status_enum",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=DeployStatus.PENDING,
        index=True,
    )
    message = Column(Text, nullable=True)

    commands = relationship(
        "DeployCommand",
        back_populates="deploy",
        order_by="DeployCommand.order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    history = relationship(
        "DeployHistoryEntry",
        back_populates="deploy",
        order_by="DeployHistoryEntry.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Deploy(id='{self.id}', site='{self.site_name}', status='{self.status}')>"


class DeployCommand(Base, UUIDMixin, TimestampMixin):
    """One ordered build/deploy step of a deploy."""

    __tablename__ = "deploy_commands"
    __table_args__ = (
        UniqueConstraint("deploy_id", "order", name="uq_deploy_commands_deploy_order"),
    )

    deploy_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("deploys.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order = Column(Integer, nullable=False)
    command_text = Column(Text, nullable=False)
    terminal_id = Column(String(50), nullable=True)

    status = Column(
        SQLAEnum(
            CommandStatus,
            name="command_status_enum",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=CommandStatus.PENDING,
    )
    message = Column(Text, nullable=True)
    exit_code = Column(Integer, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    executed_at = Column(DateTime(timezone=True), nullable=True)

    deploy = relationship("Deploy", back_populates="commands")

    def __repr__(self):
        return f"<DeployCommand(deploy_id='{self.deploy_id}', order={self.order}, status='{self.status}')>"


class DeployHistoryEntry(Base):
    """
    Immutable audit record of one aggregate status change.

    The integer key preserves insertion order, which is chronological order.
    """

    __tablename__ = "deploy_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    deploy_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("deploys.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    status = Column(
        SQLAEnum(
            DeployStatus,
            name="deploy_status_enum",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    message = Column(Text, nullable=True)

    deploy = relationship("Deploy", back_populates="history")

    def __repr__(self):
        return f"<DeployHistoryEntry(deploy_id='{self.deploy_id}', status='{self.status}')>"
