"""Account connections API router — platform connect flow, listing, demo data."""

import logging
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from adaudit.connectors.builtin import PLATFORM_REGISTRY, get_platform
from adaudit.core.config import settings
from adaudit.core.exceptions import AdAuditError, UnsupportedPlatformError
from adaudit.core.security import get_current_user_id
from adaudit.db.session import get_db
from adaudit.schemas.schemas import (
    ConnectionOut, ConnectResponse, MessageResponse, PlatformListResponse,
)
from adaudit.services.connection_service import connection_service

logger = logging.getLogger("adaudit")

router = APIRouter(tags=["connections"])


@router.get("/platforms", response_model=PlatformListResponse)
async def list_platforms():
    """List supported platforms."""
    return {"platforms": [cls().describe() for cls in PLATFORM_REGISTRY.values()]}


@router.get("/auth/{platform}", response_model=ConnectResponse, response_model_exclude_none=True)
async def connect_platform(
    platform: str,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Connect (or start connecting) an ad platform account."""
    logger.info("Connecting %s for user %s", platform, user_id)
    return connection_service.begin_oauth(db, user_id, platform)


@router.get("/auth/{platform}/callback")
async def platform_callback(
    platform: str,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """OAuth redirect target; sends the browser back to the UI with a result flag."""
    base = settings.FRONTEND_URL.rstrip("/")
    if error:
        return RedirectResponse(f"{base}/?error=access_denied&platform={platform}")
    try:
        connection_service.complete_oauth(db, platform, code, state)
    except UnsupportedPlatformError:
        return RedirectResponse(f"{base}/?error=unsupported_platform")
    except AdAuditError as e:
        logger.warning("OAuth callback for %s failed: %s", platform, e.message)
        return RedirectResponse(f"{base}/?error=invalid_state&platform={platform}")
    except Exception:
        logger.exception("OAuth callback for %s failed", platform)
        return RedirectResponse(f"{base}/?error=connection_failed&platform={platform}")
    return RedirectResponse(f"{base}/?connected={platform}")


@router.get("/account-connections", response_model=List[ConnectionOut])
async def list_connections(
    platform: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """List the current user's connections."""
    return connection_service.list_connections(db, user_id, platform)


@router.delete("/account-connections/{connection_id}", response_model=MessageResponse)
async def disconnect(
    connection_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Deactivate a connection."""
    connection_service.disconnect(db, connection_id, user_id)
    return MessageResponse(message="Account disconnected")


@router.get("/platform-data/{platform}/{connection_id}")
async def platform_data(
    platform: str,
    connection_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Sample performance data for an owned connection."""
    adapter = get_platform(platform)
    connection = connection_service.get_owned_connection(db, connection_id, user_id)
    return adapter.fetch_performance_data(connection.account_name)
