"""Auth service — test login, Google sign-in, server-side sessions, user records."""

import logging
import secrets
from typing import Optional, Dict, Any
from urllib.parse import urlencode

import httpx
from sqlalchemy.orm import Session

from adaudit.core.config import settings
from adaudit.core.exceptions import (
    AuthenticationError,
    OAuthExchangeError,
    PlatformNotConfiguredError,
    ResourceNotFoundError,
)
from adaudit.db.base import utcnow
from adaudit.core.security import (
    hash_password, verify_password,
    new_session_token, hash_session_token, session_expiry,
    create_oauth_state, decode_oauth_state,
)
from adaudit.models.session import UserSession
from adaudit.models.user import User

logger = logging.getLogger("adaudit")

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"


class AuthService:
    """Handles sign-in, sessions and user management."""

    # ---- Users ----

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        """Get a user by id."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def get_user_by_google_id(db: Session, google_id: str) -> Optional[User]:
        return db.query(User).filter(User.google_id == google_id).first()

    @staticmethod
    def create_user(db: Session, email: str, **fields: Any) -> User:
        """Create a new user."""
        user = User(email=email, **fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Created user %s", user.id)
        return user

    @staticmethod
    def update_user(db: Session, user_id: int, **fields: Any) -> User:
        user = AuthService.get_user(db, user_id)
        for key, value in fields.items():
            setattr(user, key, value)
        db.commit()
        db.refresh(user)
        return user

    # ---- Test login ----

    @staticmethod
    def test_login(db: Session, email: str, password: str) -> User:
        """Sign in with the single configured test credential pair.

        The canned user is created on first use with a bcrypt hash of the
        configured password.

        Raises:
            AuthenticationError: If the credentials do not match.
        """
        if not secrets.compare_digest(
            email.strip().lower().encode("utf-8"),
            settings.TEST_LOGIN_EMAIL.lower().encode("utf-8"),
        ):
            raise AuthenticationError("Invalid email or password")

        user = AuthService.get_user_by_email(db, settings.TEST_LOGIN_EMAIL)
        if user is None:
            user = AuthService.create_user(
                db,
                settings.TEST_LOGIN_EMAIL,
                first_name="Test",
                last_name="User",
                hashed_password=hash_password(settings.TEST_LOGIN_PASSWORD),
            )
        elif not user.hashed_password:
            user = AuthService.update_user(
                db, user.id, hashed_password=hash_password(settings.TEST_LOGIN_PASSWORD)
            )

        if not verify_password(password, user.hashed_password):
            raise AuthenticationError("Invalid email or password")
        return user

    # ---- Sessions ----

    @staticmethod
    def open_session(db: Session, user_id: int) -> str:
        """Persist a new session and return the raw cookie value."""
        token = new_session_token()
        db.add(UserSession(
            user_id=user_id,
            token_hash=hash_session_token(token),
            expires_at=session_expiry().replace(tzinfo=None),
        ))
        db.commit()
        return token

    @staticmethod
    def resolve_session(db: Session, token: str) -> Optional[int]:
        """Return the user id for a live session, or None."""
        stored = db.query(UserSession).filter(
            UserSession.token_hash == hash_session_token(token),
            UserSession.revoked_at.is_(None),
            UserSession.expires_at > utcnow(),
        ).first()
        return stored.user_id if stored else None

    @staticmethod
    def close_session(db: Session, token: str) -> None:
        """Revoke the session behind a cookie value."""
        db.query(UserSession).filter(
            UserSession.token_hash == hash_session_token(token),
            UserSession.revoked_at.is_(None),
        ).update({"revoked_at": utcnow()})
        db.commit()

    # ---- Google sign-in ----

    @staticmethod
    def google_enabled() -> bool:
        return bool(settings.GOOGLE_CLIENT_ID and settings.GOOGLE_CLIENT_SECRET)

    @staticmethod
    def google_authorize_url() -> str:
        if not AuthService.google_enabled():
            raise PlatformNotConfiguredError("Google sign-in is not configured")
        params = {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "redirect_uri": settings.GOOGLE_REDIRECT_URI,
            "response_type": "code",
            "scope": "openid email profile",
            "state": create_oauth_state({"purpose": "google-login"}),
        }
        return f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}"

    @staticmethod
    def fetch_google_profile(code: str) -> Dict[str, Any]:
        """Exchange an authorization code and return the userinfo document."""
        try:
            with httpx.Client(timeout=15) as client:
                token_resp = client.post(GOOGLE_TOKEN_URL, data={
                    "code": code,
                    "client_id": settings.GOOGLE_CLIENT_ID,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET,
                    "redirect_uri": settings.GOOGLE_REDIRECT_URI,
                    "grant_type": "authorization_code",
                })
                token_resp.raise_for_status()
                access_token = token_resp.json()["access_token"]
                profile_resp = client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                profile_resp.raise_for_status()
                return profile_resp.json()
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise OAuthExchangeError(f"Google token exchange failed: {e}")

    @staticmethod
    def google_login(db: Session, code: str, state: str) -> User:
        """Complete Google sign-in, linking or creating the local user."""
        if not AuthService.google_enabled():
            raise PlatformNotConfiguredError("Google sign-in is not configured")
        payload = decode_oauth_state(state)
        if payload.get("purpose") != "google-login":
            raise AuthenticationError("Invalid OAuth state")

        profile = AuthService.fetch_google_profile(code)
        return AuthService.upsert_google_user(db, profile)

    @staticmethod
    def upsert_google_user(db: Session, profile: Dict[str, Any]) -> User:
        """Find a user by Google id, else link by email, else create one."""
        google_id = profile.get("sub")
        if not google_id:
            raise OAuthExchangeError("Google profile has no subject id")

        user = AuthService.get_user_by_google_id(db, google_id)
        if user:
            return user

        email = profile.get("email")
        if not email:
            raise AuthenticationError("Google account has no email address")

        user = AuthService.get_user_by_email(db, email)
        if user:
            return AuthService.update_user(db, user.id, google_id=google_id)

        return AuthService.create_user(
            db,
            email,
            first_name=profile.get("given_name"),
            last_name=profile.get("family_name"),
            profile_image_url=profile.get("picture"),
            google_id=google_id,
        )


auth_service = AuthService()
