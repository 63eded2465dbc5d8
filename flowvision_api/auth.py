"""
Bearer token authentication for the FlowVision API.

The expected token is read from FLOWVISION_API_TOKEN at request time, so it
can be rotated without restarting. When the variable is unset, auth is
disabled with a warning (development mode).

Token extraction order:
1. Authorization: Bearer <token> header
2. X-API-Token header

Usage:
    from flowvision_api.auth import require_auth

    router = APIRouter(dependencies=[Depends(require_auth)])
"""

import logging
import os
import secrets

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from flowvision import config

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI docs
security = HTTPBearer(auto_error=False)

AUTH_DISABLED = "auth_disabled"


def _get_token_from_env() -> str | None:
    return os.environ.get(config.API_TOKEN_ENV) or None


def _get_token_from_request(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return request.headers.get("X-API-Token") or None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


async def require_auth(
    request: Request, credentials: HTTPAuthorizationCredentials | None = Depends(security)
) -> str:
    """
    Dependency that requires a valid bearer token.

    Returns the token on success, AUTH_DISABLED when no token is configured.
    Raises HTTPException 401 on a missing or wrong token.
    """
    expected_token = _get_token_from_env()
    if not expected_token:
        logger.warning(
            f"{config.API_TOKEN_ENV} not set - authentication disabled! Set it in production."
        )
        return AUTH_DISABLED

    provided_token = _get_token_from_request(request)
    if not provided_token:
        logger.warning(f"Auth failed: no token provided for {request.url.path}")
        raise _unauthorized("Authentication required. Provide Bearer token in Authorization header.")

    if not secrets.compare_digest(provided_token.encode(), expected_token.encode()):
        logger.warning(f"Auth failed: invalid token for {request.url.path}")
        raise _unauthorized("Invalid authentication token.")

    logger.debug(f"Auth succeeded for {request.url.path}")
    return provided_token
