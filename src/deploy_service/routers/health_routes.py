# deploy_service/routers/health_routes.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings
from ..db import get_db
from ..dependencies.app_deps import get_app_settings
from ..logging_config import logger

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("/liveness", summary="Checks if the service is running")
async def liveness_check(app_settings: Settings = Depends(get_app_settings)):
    """
    Liveness probe. Returns 200 as long as the process serves requests.
    """
    return {
        "status": "alive",
        "service": app_settings.PROJECT_NAME,
        "environment": app_settings.ENVIRONMENT,
    }


@router.get("/readiness", summary="Checks if the service is ready to accept traffic")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """
    Readiness probe. Performs a database round-trip.
    """
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Readiness check failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"database": f"error - {e.__class__.__name__}"},
        )

    return {"status": "ready", "dependencies": {"database": "ok"}}
