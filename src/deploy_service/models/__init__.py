from .base import Base, TimestampMixin, UUIDMixin
from .deploy import (
    CommandStatus,
    Deploy,
    DeployCommand,
    DeployHistoryEntry,
    DeployStatus,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "CommandStatus",
    "Deploy",
    "DeployCommand",
    "DeployHistoryEntry",
    "DeployStatus",
]
