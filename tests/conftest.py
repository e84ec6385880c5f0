"""
Main conftest file that imports and re-exports all fixtures from modular files.
"""

import os

from dotenv import load_dotenv

# Explicitly load the test environment variables before importing any app modules
dotenv_path = os.path.join(os.path.dirname(__file__), "..", ".env.test")
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path, override=True)
else:
    print(f"Warning: .env.test file not found at {dotenv_path}")

os.environ.setdefault("DEPLOY_SERVICE_ENVIRONMENT", "testing")
os.environ.setdefault("DEPLOY_SERVICE_USER_JWT_SECRET_KEY", "test-user-secret")
os.environ.setdefault("DEPLOY_SERVICE_M2M_JWT_SECRET_KEY", "test-m2m-secret")

# Now reload the config to ensure it picks up test settings
from importlib import reload

from deploy_service import config

reload(config)

import uuid

import pytest

from tests.fixtures.client import client, facade, test_settings
from tests.fixtures.db import db_engine, db_session, session_factory
from tests.fixtures.executors import fake_executor


@pytest.fixture
def test_user_id() -> uuid.UUID:
    """The user every authenticated test request runs as."""
    return uuid.UUID(os.environ.get("TEST_USER_ID", "00000000-0000-0000-0000-000000000001"))


@pytest.fixture
def deploy_payload() -> dict:
    """A valid deploy submission as a client would send it."""
    return {
        "repoUrl": "https://example.com/acme/shop.git",
        "branch": "main",
        "buildCommands": [
            {"comando": "npm ci", "terminalId": "t1"},
            {"comando": "npm run build", "terminalId": "t1"},
        ],
        "buildOutput": "dist",
        "siteName": "shop",
    }
