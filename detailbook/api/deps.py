from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from detailbook.core.config import settings
from detailbook.core.db import get_session
from detailbook.core.security import decode_access_token
from detailbook.services.auth_service import is_admin
from detailbook.services.calendar_policy import CalendarPolicy, policy_from_settings

__all__ = ["get_session", "get_policy", "get_current_admin"]

security = HTTPBearer(auto_error=False)


def get_policy() -> CalendarPolicy:
    """Calendar policy from current settings, passed explicitly into the services."""
    return policy_from_settings(settings)


async def get_current_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    subject = decode_access_token(credentials.credentials)
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not is_admin(subject):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized",
        )
    return subject
