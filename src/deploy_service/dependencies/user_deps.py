from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from ..config import settings
from ..logging_config import logger
from ..schemas.user_schemas import UserTokenData

# Tokens are issued by the auth service; this URL only feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/users/login")


def _normalize_token(token: str) -> str:
    # Tolerate quoted tokens and an accidental doubled "Bearer " prefix.
    raw = token.strip()
    if len(raw) > 1 and raw[0] == raw[-1] and raw[0] in ("'", '"'):
        raw = raw[1:-1].strip()
    if raw.lower().startswith("bearer "):
        raw = raw.split(" ", 1)[1].strip()
    return raw


def _decode(
    token: str,
    secret: Optional[str],
    algorithm: str,
    audience: Optional[str],
    issuer: Optional[str],
) -> dict:
    if not secret:
        raise JWTError("No secret configured")
    options = {"verify_aud": audience is not None}
    return jwt.decode(
        token,
        secret,
        algorithms=[algorithm],
        audience=audience,
        issuer=issuer,
        options=options,
    )


def get_current_user_token_data(token: str = Depends(oauth2_scheme)) -> UserTokenData:
    """
    A dependency that decodes and validates a JWT locally.

    User tokens are tried first, then machine-to-machine tokens when an M2M
    secret is configured.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token = _normalize_token(token)

    try:
        payload = _decode(
            token,
            settings.USER_JWT_SECRET_KEY,
            settings.USER_JWT_ALGORITHM,
            settings.USER_JWT_AUDIENCE,
            settings.USER_JWT_ISSUER,
        )
    except JWTError as e:
        logger.warning(f"Failed to validate as a user token: {e}. Trying M2M validation...")
        try:
            payload = _decode(
                token,
                settings.M2M_JWT_SECRET_KEY,
                settings.M2M_JWT_ALGORITHM,
                settings.M2M_JWT_AUDIENCE,
                settings.M2M_JWT_ISSUER,
            )
        except JWTError as m2m_error:
            logger.error(f"Failed to validate as M2M token: {m2m_error}")
            raise credentials_exception

    try:
        return UserTokenData.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Token payload failed Pydantic validation: {e}")
        raise credentials_exception


def get_current_user_id(
    token_data: UserTokenData = Depends(get_current_user_token_data),
) -> UUID:
    """The requesting user's id (the token's `sub` claim)."""
    return token_data.user_id
