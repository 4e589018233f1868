import logging

from fastapi import APIRouter, Depends, HTTPException, status

from detailbook.api.deps import get_current_admin
from detailbook.api.schemas.auth import AccessToken, LoginRequest
from detailbook.services.auth_service import login_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=AccessToken)
async def login(body: LoginRequest) -> AccessToken:
    pair = login_admin(body.email, body.password)
    if not pair:
        logger.warning("Admin login failed for %s", body.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    access, expires_in = pair
    return AccessToken(access_token=access, expires_in=expires_in)


@router.get("/me")
async def me(admin: str = Depends(get_current_admin)) -> dict:
    return {"email": admin, "role": "admin"}
