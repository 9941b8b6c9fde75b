from __future__ import annotations

import hmac
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_admin(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> None:
    """
    Shared-secret auth for the admin dashboard endpoints.

    Admins sign in through the identity provider on the frontend; the
    dashboard then calls these endpoints with `Authorization: Bearer <ADMIN_API_TOKEN>`.
    Without a configured token (local dev only) the check is skipped.
    """
    expected = settings.ADMIN_API_TOKEN
    if not expected:
        if settings.is_prod:
            raise HTTPException(status_code=500, detail="Server missing ADMIN_API_TOKEN")
        logger.debug("ADMIN_API_TOKEN not set; admin check skipped")
        return

    if not creds or creds.scheme.lower() != "bearer":
        raise _unauthorized("Missing Authorization header")
    if not hmac.compare_digest(creds.credentials.encode("utf-8"), expected.encode("utf-8")):
        raise _unauthorized("Invalid admin token")
