"""Auth API router — current user, test login, Google sign-in, logout."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from adaudit.core.config import settings
from adaudit.core.exceptions import AdAuditError, AuthenticationError
from adaudit.core.security import get_optional_user_id
from adaudit.db.session import get_db
from adaudit.schemas.schemas import LoginRequest, UserOut, MessageResponse
from adaudit.services.auth_service import auth_service

logger = logging.getLogger("adaudit")

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_TTL_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )


@router.get("/user", response_model=Optional[UserOut])
async def get_user(
    db: Session = Depends(get_db),
    user_id: Optional[int] = Depends(get_optional_user_id),
):
    """Return the signed-in user, or null."""
    if user_id is None:
        return None
    return auth_service.get_user(db, user_id)


@router.post("/test-login", response_model=UserOut)
async def test_login(body: LoginRequest, response: Response, db: Session = Depends(get_db)):
    """Sign in with the configured test credentials."""
    try:
        user = auth_service.test_login(db, body.email, body.password)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    _set_session_cookie(response, auth_service.open_session(db, user.id))
    logger.info("Test login for user %s", user.id)
    return user


@router.get("/google")
async def google_login():
    """Redirect to Google's consent screen."""
    return RedirectResponse(auth_service.google_authorize_url())


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Complete Google sign-in and open a session."""
    if not auth_service.google_enabled():
        raise HTTPException(status_code=501, detail="Google sign-in is not configured")
    try:
        if not code or not state:
            raise AuthenticationError("Missing OAuth code or state")
        user = auth_service.google_login(db, code, state)
    except AdAuditError as e:
        logger.warning("Google sign-in failed: %s", e.message)
        return RedirectResponse("/?error=google_auth_failed")

    redirect = RedirectResponse("/")
    _set_session_cookie(redirect, auth_service.open_session(db, user.id))
    return redirect


@router.get("/logout", response_model=MessageResponse)
async def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    """End the current session."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        auth_service.close_session(db, token)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return MessageResponse(message="Logged out successfully")
