"""Audits API router — list, create, read, delete."""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from adaudit.core.security import get_current_user_id
from adaudit.db.session import get_db
from adaudit.schemas.schemas import AuditCreate, AuditOut, MessageResponse
from adaudit.services.audit_service import audit_service

router = APIRouter(prefix="/audits", tags=["audits"])


@router.get("", response_model=List[AuditOut])
async def list_audits(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """List audits for the current user, newest first."""
    return audit_service.list_audits(db, user_id)


@router.post("", response_model=AuditOut, status_code=status.HTTP_201_CREATED)
async def create_audit(
    body: AuditCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Create an audit and start processing it in the background."""
    audit = audit_service.create_audit(
        db, body.name, body.platform, body.connection_id, body.report_format, user_id,
    )
    return AuditOut.model_validate(audit)


@router.get("/{audit_id}", response_model=AuditOut)
async def get_audit(
    audit_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Get a single audit."""
    return audit_service.get_owned_audit(db, audit_id, user_id)


@router.delete("/{audit_id}", response_model=MessageResponse)
async def delete_audit(
    audit_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Delete an audit."""
    audit_service.delete_audit(db, audit_id, user_id)
    return MessageResponse(message="Audit deleted")
