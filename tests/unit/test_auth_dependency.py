"""
Tests for bearer-token validation.
"""
import uuid

import pytest
from fastapi import HTTPException
from jose import jwt

from deploy_service.config import settings
from deploy_service.dependencies.user_deps import (
    get_current_user_id,
    get_current_user_token_data,
)


def _token(secret: str, **claims) -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def test_user_token_is_accepted():
    user_id = uuid.uuid4()
    token = _token(settings.USER_JWT_SECRET_KEY, sub=str(user_id), roles=["admin"])

    data = get_current_user_token_data(token)

    assert data.user_id == user_id
    assert data.roles == ["admin"]
    assert get_current_user_id(data) == user_id


def test_m2m_token_is_accepted():
    service_id = uuid.uuid4()
    token = _token(settings.M2M_JWT_SECRET_KEY, sub=str(service_id))

    assert get_current_user_token_data(token).user_id == service_id


@pytest.mark.parametrize("wrapper", ["Bearer {}", '"{}"', "  {}  "])
def test_token_wrapping_is_tolerated(wrapper):
    user_id = uuid.uuid4()
    token = _token(settings.USER_JWT_SECRET_KEY, sub=str(user_id))

    assert get_current_user_token_data(wrapper.format(token)).user_id == user_id


def test_wrong_secret_is_rejected():
    token = _token("not-the-secret", sub=str(uuid.uuid4()))
    with pytest.raises(HTTPException) as excinfo:
        get_current_user_token_data(token)
    assert excinfo.value.status_code == 401


def test_garbage_token_is_rejected():
    with pytest.raises(HTTPException) as excinfo:
        get_current_user_token_data("not-a-jwt")
    assert excinfo.value.status_code == 401


def test_token_without_subject_is_rejected():
    token = _token(settings.USER_JWT_SECRET_KEY, roles=["user"])
    with pytest.raises(HTTPException) as excinfo:
        get_current_user_token_data(token)
    assert excinfo.value.status_code == 401
