"""
HTTP client fixtures.

The app under test talks to the per-test SQLite database and a scripted step
executor, and every request is authenticated as `test_user_id`.
"""
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from deploy_service.config import settings
from deploy_service.db import get_db
from deploy_service.dependencies.user_deps import get_current_user_id
from deploy_service.main import app as fastapi_app
from deploy_service.services.deploy_service import DeployFacade


@pytest.fixture
def test_settings(tmp_path):
    return settings.model_copy(
        update={
            "PUBLICATIONS_PATH": tmp_path / "publications",
            "WORKING_DIRECTORY": tmp_path / "work",
            "COMMAND_TIMEOUT_SECONDS": 5.0,
            "MAX_CONCURRENT_DEPLOYS": 4,
        }
    )


@pytest_asyncio.fixture
async def facade(session_factory, fake_executor, test_settings) -> AsyncGenerator[DeployFacade, None]:
    deploy_facade = DeployFacade(session_factory, fake_executor, test_settings)
    yield deploy_facade
    await deploy_facade.shutdown()


@pytest_asyncio.fixture
async def client(facade, session_factory, test_user_id) -> AsyncGenerator[AsyncClient, None]:
    """
    Provides an HTTP client for making requests to the FastAPI app.

    ASGITransport does not run the lifespan, so the facade is installed on
    app.state directly.
    """

    async def override_get_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_current_user_id] = lambda: test_user_id
    fastapi_app.state.deploy_facade = facade

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    fastapi_app.dependency_overrides.clear()
    fastapi_app.state.deploy_facade = None
