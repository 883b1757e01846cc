"""Audit job model."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum, func
from adaudit.db.base import Base, utcnow
import enum
import json


class AuditStatus(str, enum.Enum):
    processing = "processing"
    completed = "completed"
    failed = "failed"


class Audit(Base):
    """A requested analysis of one connected account.

    Status starts at ``processing`` and moves exactly once to ``completed``
    (completed_at and report_url set) or ``failed`` (completed_at set,
    report_url left empty).
    """
    __tablename__ = "audits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    platform = Column(String(50), nullable=False)
    status = Column(
        Enum(AuditStatus),
        default=AuditStatus.processing,
        nullable=False,
        index=True,
    )
    account_id = Column(String(255), nullable=True)
    account_name = Column(String(255), nullable=True)
    report_format = Column(String(50), nullable=False)  # pdf, powerpoint, google-slides, google-doc
    created_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    report_url = Column(String(500), nullable=True)
    audit_data_json = Column(Text, nullable=True)
    celery_task_id = Column(String(255), nullable=True, unique=True)
    error_message = Column(Text, nullable=True)  # internal, never returned to clients

    @property
    def audit_data(self):
        """Parsed audit results, or None before completion."""
        if not self.audit_data_json:
            return None
        return json.loads(self.audit_data_json)
