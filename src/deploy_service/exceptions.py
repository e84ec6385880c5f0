"""
Error taxonomy for the Deploy Service.

Only `DeployValidationError`, `DeployNotFoundError` and `DeployConflictError`
ever reach an API caller. `FetchError`, `ExecutionError` and `PublishError`
are raised by step executors and captured by the orchestrator into deploy
state. `InvalidTransitionError` signals a broken state-machine invariant.
"""
from typing import Optional


class DeployServiceError(Exception):
    """Base class for all service errors."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class DeployValidationError(DeployServiceError):
    """A deploy submission is malformed."""

    status_code = 400


class DeployNotFoundError(DeployServiceError):
    """No deploy (or command) exists for the given identifier."""

    status_code = 404


class DeployConflictError(DeployServiceError):
    """The request is not valid for the deploy's current state."""

    status_code = 409


class InvalidTransitionError(DeployServiceError):
    """A status change is not reachable from the current status."""

    status_code = 500


class StepError(Exception):
    """Base class for step executor failures. Always carries a reason."""

    phase = "step"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class FetchError(StepError):
    """The source repository could not be retrieved."""

    phase = "fetch"


class ExecutionError(StepError):
    """A command process could not be started at all."""

    phase = "execute"


class PublishError(StepError):
    """The build output could not be published to its target."""

    phase = "publish"

    def __init__(self, reason: str, target_path: Optional[str] = None):
        super().__init__(reason)
        self.target_path = target_path
