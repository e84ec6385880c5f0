"""
Service layer package.

Import submodules directly where needed, e.g.:

    from deploy_service.services import executors
    from deploy_service.services.deploy_service import DeployFacade

Nothing is imported eagerly so that test collection does not build the
default executor or touch the configured working directory.
"""

__all__ = []
