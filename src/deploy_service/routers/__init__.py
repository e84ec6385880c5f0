# deploy_service/routers/__init__.py
"""
Exports the API routers for the Deploy Service.

- deploy_router: Deploy submission, status, history, listing and cancellation.
- health_router: Liveness and readiness probes.
"""

from .deploy_routes import router as deploy_router
from .health_routes import router as health_router

__all__ = [
    "deploy_router",
    "health_router",
]
