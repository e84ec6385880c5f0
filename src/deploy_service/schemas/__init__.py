from deploy_service.schemas.common import (
    MessageResponse,
    PaginatedResponse,
    StatusResponse,
)
from deploy_service.schemas.deploy_schemas import (
    BuildCommandIn,
    DeployCommandResponse,
    DeployCreate,
    DeployHistoryResponse,
    DeployListItem,
    DeploySubmitResponse,
    DeploySummary,
)
from deploy_service.schemas.user_schemas import UserTokenData

__all__ = [
    "MessageResponse",
    "PaginatedResponse",
    "StatusResponse",
    "BuildCommandIn",
    "DeployCommandResponse",
    "DeployCreate",
    "DeployHistoryResponse",
    "DeployListItem",
    "DeploySubmitResponse",
    "DeploySummary",
    "UserTokenData",
]
