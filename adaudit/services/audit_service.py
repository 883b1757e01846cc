"""Audit service — create audit jobs, run them in the background, track status."""

import json
import logging
from datetime import timedelta
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from adaudit.connectors.builtin import get_platform
from adaudit.core.config import settings
from adaudit.core.exceptions import (
    AuthorizationError,
    ResourceNotFoundError,
    ValidationError,
)
from adaudit.db.base import utcnow
from adaudit.models.audit import Audit, AuditStatus
from adaudit.services.analysis_service import AnalysisClient, get_analysis_client
from adaudit.services.cache_service import cache_service
from adaudit.services.connection_service import connection_service

logger = logging.getLogger("adaudit")

REPORT_EXTENSIONS = {
    "pdf": "pdf",
    "powerpoint": "pptx",
    "google-slides": "slides",
    "google-doc": "doc",
}


def task_id_for(audit_id: int) -> str:
    """Celery task id for an audit; one task per audit id."""
    return f"audit-{audit_id}"


def report_url_for(audit_id: int, report_format: str) -> str:
    ext = REPORT_EXTENSIONS.get(report_format, report_format)
    return f"{settings.REPORTS_BASE_PATH.rstrip('/')}/audit-{audit_id}.{ext}"


class AuditService:
    """Owns the audit status machine: processing -> completed | failed."""

    @staticmethod
    def list_audits(db: Session, user_id: int) -> List[Audit]:
        """List a user's audits, newest first."""
        return (
            db.query(Audit)
            .filter(Audit.created_by == user_id)
            .order_by(Audit.created_at.desc(), Audit.id.desc())
            .all()
        )

    @staticmethod
    def get_audit(db: Session, audit_id: int) -> Optional[Audit]:
        return db.query(Audit).filter(Audit.id == audit_id).first()

    @staticmethod
    def get_owned_audit(db: Session, audit_id: int, user_id: int) -> Audit:
        """Get an audit, failing as not-found when owned by someone else."""
        audit = AuditService.get_audit(db, audit_id)
        if not audit:
            raise ResourceNotFoundError("Audit not found")
        if audit.created_by != user_id:
            raise AuthorizationError("Audit not found")
        return audit

    @staticmethod
    def create_audit(
        db: Session,
        name: str,
        platform: str,
        connection_id: int,
        report_format: str,
        user_id: int,
    ) -> Audit:
        """Persist a ``processing`` audit and enqueue its background task.

        The returned object still reflects the ``processing`` row even if
        the task has already run (eager mode).

        Raises:
            UnsupportedPlatformError: Unknown platform.
            ValidationError: Unknown report format or platform mismatch.
            ResourceNotFoundError / AuthorizationError: Connection missing or not owned.
        """
        get_platform(platform)
        if report_format not in REPORT_EXTENSIONS:
            raise ValidationError(f"Unsupported report format: {report_format}")
        if not name or not name.strip():
            raise ValidationError("Audit name is required")

        connection = connection_service.get_owned_connection(db, connection_id, user_id)
        if connection.platform != platform:
            raise ValidationError(
                f"Connection {connection_id} belongs to {connection.platform}, not {platform}"
            )

        audit = Audit(
            name=name.strip(),
            platform=platform,
            status=AuditStatus.processing,
            account_id=str(connection.id),
            account_name=connection.account_name,
            report_format=report_format,
            created_by=user_id,
        )
        db.add(audit)
        db.flush()
        audit.celery_task_id = task_id_for(audit.id)
        db.commit()
        db.refresh(audit)

        logger.info("Created audit %s (%s) for user %s", audit.id, platform, user_id)
        AuditService.enqueue(audit.id)
        return audit

    @staticmethod
    def enqueue(audit_id: int) -> None:
        from adaudit.tasks.celery_app import process_audit

        process_audit.apply_async(args=[audit_id], task_id=task_id_for(audit_id))

    @staticmethod
    def run_audit(db: Session, audit_id: int, client: Optional[AnalysisClient] = None) -> str:
        """Process one audit to a terminal status and return that status.

        Any exception from data fetching, analysis or report rendering fails
        the audit. A row deleted or finished meanwhile is left untouched.
        """
        audit = AuditService.get_audit(db, audit_id)
        if audit is None:
            logger.info("Audit %s no longer exists, skipping", audit_id)
            return "missing"
        if audit.status != AuditStatus.processing:
            logger.info("Audit %s already %s, skipping", audit_id, audit.status.value)
            return audit.status.value

        platform = audit.platform
        account_name = audit.account_name or ""
        report_format = audit.report_format
        try:
            adapter = get_platform(platform)
            platform_data = adapter.fetch_performance_data(account_name)
            client = client or get_analysis_client()
            analysis = client.analyze(platform, platform_data)
            report = client.render_report(analysis, platform, account_name, report_format)
        except Exception as e:
            logger.exception("Audit %s failed", audit_id)
            AuditService.mark_failed(db, audit_id, str(e))
            return AuditStatus.failed.value

        AuditService.mark_completed(db, audit_id, report_format, {
            "analysis": analysis.model_dump(),
            "report": report,
            "platformData": platform_data,
        })
        return AuditStatus.completed.value

    @staticmethod
    def _finish(db: Session, audit_id: int, values: Dict[str, Any]) -> bool:
        """Apply a terminal update only if the row still exists and is processing."""
        now = utcnow()
        updated = (
            db.query(Audit)
            .filter(Audit.id == audit_id, Audit.status == AuditStatus.processing)
            .update({**values, "completed_at": now, "updated_at": now}, synchronize_session=False)
        )
        db.commit()
        if not updated:
            logger.warning("Audit %s was deleted or already finished; status not changed", audit_id)
            return False
        cache_service.publish(
            f"audit:{audit_id}",
            json.dumps({"audit_id": audit_id, "status": values["status"].value}),
        )
        return True

    @staticmethod
    def mark_completed(db: Session, audit_id: int, report_format: str, data: Dict[str, Any]) -> bool:
        return AuditService._finish(db, audit_id, {
            "status": AuditStatus.completed,
            "report_url": report_url_for(audit_id, report_format),
            "audit_data_json": json.dumps(data, default=str),
        })

    @staticmethod
    def mark_failed(db: Session, audit_id: int, error_message: Optional[str] = None) -> bool:
        return AuditService._finish(db, audit_id, {
            "status": AuditStatus.failed,
            "report_url": None,
            "error_message": (error_message or "")[:2000] or None,
        })

    @staticmethod
    def delete_audit(db: Session, audit_id: int, user_id: int) -> None:
        """Hard-delete an owned audit. A running task is not cancelled."""
        audit = AuditService.get_owned_audit(db, audit_id, user_id)
        db.delete(audit)
        db.commit()
        logger.info("Deleted audit %s for user %s", audit_id, user_id)

    @staticmethod
    def reconcile_stale_audits(db: Session, older_than_minutes: Optional[int] = None) -> int:
        """Fail audits stuck in ``processing`` longer than the threshold.

        Returns the number of audits failed.
        """
        minutes = older_than_minutes if older_than_minutes is not None else settings.AUDIT_STALE_AFTER_MINUTES
        cutoff = utcnow() - timedelta(minutes=minutes)
        stale_ids = [
            row.id for row in db.query(Audit.id).filter(
                Audit.status == AuditStatus.processing,
                Audit.created_at < cutoff,
            ).all()
        ]
        failed = 0
        for audit_id in stale_ids:
            if AuditService.mark_failed(db, audit_id, f"No result after {minutes} minutes"):
                failed += 1
        if failed:
            logger.warning("Marked %s stale audit(s) as failed", failed)
        return failed


audit_service = AuditService()
