"""Connection service — link users to ad platform accounts."""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple, List, Dict, Any
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from adaudit.connectors.builtin import get_platform
from adaudit.core.config import settings
from adaudit.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    PlatformNotConfiguredError,
    ResourceNotFoundError,
)
from adaudit.core.security import create_oauth_state, decode_oauth_state, encrypt_token
from adaudit.models.connection import AccountConnection

logger = logging.getLogger("adaudit")

TOKEN_LIFETIME = timedelta(hours=1)


class ConnectionService:
    """Creates and looks up account connections.

    No real OAuth token exchange happens: token fields hold placeholder
    values that are never refreshed or validated.
    """

    @staticmethod
    def list_connections(
        db: Session, user_id: int, platform: Optional[str] = None
    ) -> List[AccountConnection]:
        """List a user's connections, optionally for one platform."""
        query = db.query(AccountConnection).filter(AccountConnection.user_id == user_id)
        if platform:
            query = query.filter(AccountConnection.platform == platform)
        return query.order_by(AccountConnection.id.desc()).all()

    @staticmethod
    def get_connection(db: Session, connection_id: int) -> AccountConnection:
        connection = db.query(AccountConnection).filter(
            AccountConnection.id == connection_id
        ).first()
        if not connection:
            raise ResourceNotFoundError("Account connection not found")
        return connection

    @staticmethod
    def get_owned_connection(db: Session, connection_id: int, user_id: int) -> AccountConnection:
        """Get a connection, failing as not-found when owned by someone else."""
        connection = ConnectionService.get_connection(db, connection_id)
        if connection.user_id != user_id:
            raise AuthorizationError("Account connection not found")
        return connection

    @staticmethod
    def find_active(db: Session, user_id: int, platform: str) -> Optional[AccountConnection]:
        return db.query(AccountConnection).filter(
            AccountConnection.user_id == user_id,
            AccountConnection.platform == platform,
            AccountConnection.is_active == 1,
        ).order_by(AccountConnection.id.desc()).first()

    @staticmethod
    def create_connection(db: Session, user_id: int, platform: str, **fields: Any) -> AccountConnection:
        connection = AccountConnection(user_id=user_id, platform=platform, **fields)
        db.add(connection)
        db.commit()
        db.refresh(connection)
        return connection

    @staticmethod
    def update_connection(db: Session, connection_id: int, **fields: Any) -> AccountConnection:
        connection = ConnectionService.get_connection(db, connection_id)
        for key, value in fields.items():
            setattr(connection, key, value)
        db.commit()
        db.refresh(connection)
        return connection

    @staticmethod
    def connect(db: Session, user_id: int, platform: str) -> Tuple[AccountConnection, bool]:
        """Connect a platform account for a user.

        Returns ``(connection, created)``. An already-active connection for
        the same platform is returned unchanged with ``created=False``.

        Raises:
            UnsupportedPlatformError: If the platform is not in the registry.
        """
        adapter = get_platform(platform)

        existing = ConnectionService.find_active(db, user_id, platform)
        if existing:
            logger.info("User %s already connected to %s (connection %s)", user_id, platform, existing.id)
            return existing, False

        expires_at = datetime.now(timezone.utc) + TOKEN_LIFETIME
        connection = ConnectionService.create_connection(
            db,
            user_id,
            platform,
            account_id=f"demo_{platform}_{int(time.time() * 1000)}",
            account_name=f"Demo {adapter.name} Account",
            access_token=encrypt_token(f"mock_token_{platform}"),
            refresh_token=encrypt_token(f"mock_refresh_{platform}"),
            expires_at=expires_at.replace(tzinfo=None),
            is_active=1,
        )
        logger.info("Created %s connection %s for user %s", platform, connection.id, user_id)
        return connection, True

    @staticmethod
    def disconnect(db: Session, connection_id: int, user_id: int) -> AccountConnection:
        """Mark an owned connection inactive."""
        connection = ConnectionService.get_owned_connection(db, connection_id, user_id)
        return ConnectionService.update_connection(db, connection.id, is_active=0)

    # ---- OAuth ----

    @staticmethod
    def begin_oauth(db: Session, user_id: int, platform: str) -> Dict[str, Any]:
        """Start connecting a platform.

        In demo mode the connection is created immediately. Otherwise the
        caller gets the provider's authorize URL, or a setup-required error
        when the platform has no client credentials.
        """
        adapter = get_platform(platform)

        if settings.PLATFORM_DEMO_MODE:
            connection, created = ConnectionService.connect(db, user_id, platform)
            message = (
                f"Successfully connected to {adapter.name}"
                if created else f"Already connected to {adapter.name}"
            )
            return {"success": True, "connection": connection, "created": created, "message": message}

        client_id, client_secret = settings.platform_credentials(platform)
        if not (client_id and client_secret):
            raise PlatformNotConfiguredError(
                f"{adapter.name} integration requires setup: missing OAuth client credentials"
            )

        params = {
            "client_id": client_id,
            "redirect_uri": f"{settings.PLATFORM_REDIRECT_BASE}/{platform}/callback",
            "response_type": "code",
            "scope": adapter.scope,
            "state": create_oauth_state({"sub": str(user_id), "platform": platform}),
        }
        return {
            "success": False,
            "authorizeUrl": f"{adapter.authorize_url}?{urlencode(params)}",
            "message": f"Redirect to {adapter.name} to authorize access",
        }

    @staticmethod
    def complete_oauth(db: Session, platform: str, code: Optional[str], state: Optional[str]) -> AccountConnection:
        """Finish a (simulated) code exchange for the user named in ``state``."""
        get_platform(platform)
        if not code or not state:
            raise AuthenticationError("Missing OAuth code or state")

        payload = decode_oauth_state(state)
        if payload.get("platform") != platform or not payload.get("sub"):
            raise AuthenticationError("Invalid OAuth state")

        connection, _ = ConnectionService.connect(db, int(payload["sub"]), platform)
        return connection


connection_service = ConnectionService()
