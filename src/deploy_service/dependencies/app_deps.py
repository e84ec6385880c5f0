from functools import lru_cache

from fastapi import HTTPException, Request, status

from ..config import Settings
from ..services.deploy_service import DeployFacade


@lru_cache()
def get_app_settings() -> Settings:
    """
    Returns the application settings, cached for efficiency.
    """
    return Settings()


def get_deploy_facade(request: Request) -> DeployFacade:
    """
    Returns the DeployFacade created during application startup.
    """
    facade = getattr(request.app.state, "deploy_facade", None)
    if facade is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Deploy service is not ready.",
        )
    return facade
