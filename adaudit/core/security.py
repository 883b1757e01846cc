"""Password hashing, session cookies, OAuth state signing and token encryption."""

import bcrypt
import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from fastapi import Depends, Request
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from adaudit.core.config import settings
from adaudit.core.exceptions import AuthenticationError, unauthorized
from adaudit.db.base import utcnow
from adaudit.db.session import get_db

logger = logging.getLogger("adaudit")

STATE_ALGORITHM = "HS256"
BCRYPT_MAX_BYTES = 72  # bcrypt rejects longer inputs


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    pwd_bytes = plain_password.encode("utf-8")
    if len(pwd_bytes) > BCRYPT_MAX_BYTES:
        return False
    hashed_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(pwd_bytes, hashed_bytes)


# ---- Session tokens ----

def new_session_token() -> str:
    """Generate the opaque value stored in the session cookie."""
    return secrets.token_urlsafe(32)


def hash_session_token(token: str) -> str:
    return hashlib.sha256(f"{settings.SESSION_SECRET}:{token}".encode()).hexdigest()


def session_expiry() -> datetime:
    return utcnow() + timedelta(days=settings.SESSION_TTL_DAYS)


# ---- OAuth state ----

def create_oauth_state(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign an OAuth ``state`` value carrying ``data``."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.OAUTH_STATE_TTL_MINUTES)
    )
    to_encode.update({"exp": expire, "nonce": secrets.token_urlsafe(8)})
    return jwt.encode(to_encode, settings.SESSION_SECRET, algorithm=STATE_ALGORITHM)


def decode_oauth_state(state: str) -> dict:
    """Decode and validate a signed OAuth ``state`` value."""
    try:
        return jwt.decode(state, settings.SESSION_SECRET, algorithms=[STATE_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired OAuth state")


# ---- Platform token encryption ----

def _load_fernet() -> Fernet:
    if settings.TOKEN_ENCRYPTION_KEY:
        return Fernet(settings.TOKEN_ENCRYPTION_KEY.encode())
    logger.warning("TOKEN_ENCRYPTION_KEY not set, using an ephemeral key")
    return Fernet(Fernet.generate_key())


_fernet = _load_fernet()


def encrypt_token(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return _fernet.encrypt(value.encode()).decode()


def decrypt_token(value: Optional[str]) -> Optional[str]:
    """Decrypt a stored token; undecryptable values read as missing."""
    if value is None:
        return None
    try:
        return _fernet.decrypt(value.encode()).decode()
    except InvalidToken:
        return None


# ---- Request identity ----

async def get_optional_user_id(
    request: Request,
    db: Session = Depends(get_db),
) -> Optional[int]:
    """Resolve the session cookie to a user id, or None when signed out."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        return None
    from adaudit.services.auth_service import auth_service

    user_id = auth_service.resolve_session(db, token)
    request.state.user_id = user_id
    return user_id


async def get_current_user_id(
    user_id: Optional[int] = Depends(get_optional_user_id),
) -> int:
    """Require an authenticated session."""
    if user_id is None:
        raise unauthorized()
    return user_id
