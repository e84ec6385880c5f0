"""
Reusable FastAPI dependencies for the Deploy Service.
"""

from deploy_service.dependencies.app_deps import get_app_settings, get_deploy_facade
from deploy_service.dependencies.user_deps import (
    get_current_user_id,
    get_current_user_token_data,
)

__all__ = [
    "get_app_settings",
    "get_deploy_facade",
    "get_current_user_id",
    "get_current_user_token_data",
]
