"""Celery app and tasks for background audit processing."""

import logging
from typing import Optional

from celery import Celery
from adaudit.core.config import settings

logger = logging.getLogger("adaudit.tasks")

celery_app = Celery(
    "adaudit",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,  # redelivered if a worker dies mid-audit
    worker_concurrency=settings.CONCURRENCY,
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    beat_schedule={
        "reconcile-stale-audits": {
            "task": "reconcile_stale_audits",
            "schedule": 300.0,
        },
    },
)


@celery_app.task(name="process_audit")
def process_audit(audit_id: int) -> dict:
    """Run one audit to completion or failure.

    Never raises for audit-level errors; those are recorded on the row.
    """
    from adaudit.db.session import SessionLocal
    from adaudit.services.audit_service import audit_service

    db = SessionLocal()
    try:
        status = audit_service.run_audit(db, audit_id)
        logger.info("Audit %s finished with status %s", audit_id, status)
        return {"audit_id": audit_id, "status": status}
    finally:
        db.close()


@celery_app.task(name="reconcile_stale_audits")
def reconcile_stale_audits(older_than_minutes: Optional[int] = None) -> dict:
    """Fail audits left in processing past the configured timeout."""
    from adaudit.db.session import SessionLocal
    from adaudit.services.audit_service import audit_service

    db = SessionLocal()
    try:
        failed = audit_service.reconcile_stale_audits(db, older_than_minutes)
        return {"failed": failed}
    finally:
        db.close()
