import json
from datetime import datetime, timedelta

import pytest

from adaudit.core.exceptions import (
    AuthorizationError,
    ResourceNotFoundError,
    UnsupportedPlatformError,
    ValidationError,
)
from adaudit.db.session import SessionLocal
from adaudit.models import Audit, AuditStatus
from adaudit.services.audit_service import audit_service, report_url_for
from adaudit.services.connection_service import connection_service


@pytest.fixture()
def connection(db_session, user):
    conn, _ = connection_service.connect(db_session, user.id, "facebook-ads")
    return conn


@pytest.fixture()
def no_dispatch(monkeypatch):
    """Keep audits in processing by not running the background task."""
    queued = []
    monkeypatch.setattr(
        "adaudit.services.audit_service.AuditService.enqueue",
        staticmethod(lambda audit_id: queued.append(audit_id)),
    )
    return queued


def _reload(audit_id):
    db = SessionLocal()
    try:
        return db.query(Audit).filter(Audit.id == audit_id).first()
    finally:
        db.close()


def test_create_returns_processing_row(db_session, user, connection, fake_analysis):
    audit = audit_service.create_audit(db_session, "Q1 Review", "facebook-ads", connection.id, "pdf", user.id)

    assert audit.id is not None
    assert audit.status == AuditStatus.processing
    assert audit.completed_at is None
    assert audit.report_url is None
    assert audit.account_name == connection.account_name
    assert audit.celery_task_id == f"audit-{audit.id}"


def test_background_run_completes_audit(db_session, user, connection, fake_analysis):
    audit = audit_service.create_audit(db_session, "Q1 Review", "facebook-ads", connection.id, "pdf", user.id)

    stored = _reload(audit.id)
    assert stored.status == AuditStatus.completed
    assert stored.completed_at is not None
    assert stored.report_url == f"/reports/audit-{audit.id}.pdf"
    assert stored.audit_data["analysis"]["score"] == 82
    assert stored.audit_data["report"].startswith("Executive Summary")
    assert stored.audit_data["platformData"]["platform"] == "facebook-ads"
    assert [call[0] for call in fake_analysis.calls] == ["analyze", "render_report"]


@pytest.mark.parametrize("fail_on", ["analyze", "render_report"])
def test_background_failure_marks_audit_failed(db_session, user, connection, fake_analysis, fail_on):
    fake_analysis.fail_on = fail_on

    audit = audit_service.create_audit(db_session, "Broken", "facebook-ads", connection.id, "powerpoint", user.id)

    stored = _reload(audit.id)
    assert stored.status == AuditStatus.failed
    assert stored.completed_at is not None
    assert stored.report_url is None
    assert stored.error_message


def test_terminal_status_never_changes(db_session, user, connection, fake_analysis):
    audit = audit_service.create_audit(db_session, "Once", "facebook-ads", connection.id, "pdf", user.id)
    completed_at = _reload(audit.id).completed_at
    db_session.expire_all()

    assert audit_service.run_audit(db_session, audit.id) == "completed"
    assert audit_service.mark_failed(db_session, audit.id, "late failure") is False

    stored = _reload(audit.id)
    assert stored.status == AuditStatus.completed
    assert stored.completed_at == completed_at
    assert len(fake_analysis.calls) == 2


def test_report_url_extension_follows_format(db_session, user, connection, fake_analysis):
    audit = audit_service.create_audit(db_session, "Deck", "facebook-ads", connection.id, "powerpoint", user.id)

    assert _reload(audit.id).report_url == f"/reports/audit-{audit.id}.pptx"
    assert report_url_for(5, "google-doc") == "/reports/audit-5.doc"


def test_create_rejects_foreign_connection(db_session, other_user, connection, no_dispatch):
    with pytest.raises(AuthorizationError):
        audit_service.create_audit(db_session, "Sneaky", "facebook-ads", connection.id, "pdf", other_user.id)
    assert db_session.query(Audit).count() == 0
    assert no_dispatch == []


def test_create_rejects_missing_connection(db_session, user, no_dispatch):
    with pytest.raises(ResourceNotFoundError):
        audit_service.create_audit(db_session, "Ghost", "facebook-ads", 999999, "pdf", user.id)


def test_create_rejects_platform_mismatch(db_session, user, connection, no_dispatch):
    with pytest.raises(ValidationError):
        audit_service.create_audit(db_session, "Wrong", "google-ads", connection.id, "pdf", user.id)


def test_create_rejects_unknown_platform_and_format(db_session, user, connection, no_dispatch):
    with pytest.raises(UnsupportedPlatformError):
        audit_service.create_audit(db_session, "X", "myspace-ads", connection.id, "pdf", user.id)
    with pytest.raises(ValidationError):
        audit_service.create_audit(db_session, "X", "facebook-ads", connection.id, "docx", user.id)
    assert db_session.query(Audit).count() == 0


def test_create_enqueues_exactly_once(db_session, user, connection, no_dispatch):
    audit = audit_service.create_audit(db_session, "Queued", "facebook-ads", connection.id, "pdf", user.id)

    assert no_dispatch == [audit.id]
    assert _reload(audit.id).status == AuditStatus.processing


def test_delete_by_non_owner_leaves_row(db_session, user, other_user, connection, no_dispatch):
    audit = audit_service.create_audit(db_session, "Mine", "facebook-ads", connection.id, "pdf", user.id)

    with pytest.raises(ResourceNotFoundError):
        audit_service.delete_audit(db_session, audit.id, other_user.id)

    stored = _reload(audit.id)
    assert stored is not None
    assert stored.status == AuditStatus.processing


def test_delete_by_owner_removes_row(db_session, user, connection, no_dispatch):
    audit = audit_service.create_audit(db_session, "Mine", "facebook-ads", connection.id, "pdf", user.id)

    audit_service.delete_audit(db_session, audit.id, user.id)

    assert audit_service.get_audit(db_session, audit.id) is None


def test_task_for_deleted_audit_is_a_no_op(db_session, user, connection, no_dispatch, fake_analysis):
    audit = audit_service.create_audit(db_session, "Gone", "facebook-ads", connection.id, "pdf", user.id)
    audit_id = audit.id
    audit_service.delete_audit(db_session, audit_id, user.id)

    assert audit_service.run_audit(db_session, audit_id) == "missing"
    assert audit_service.mark_completed(db_session, audit_id, "pdf", {}) is False
    assert _reload(audit_id) is None
    assert fake_analysis.calls == []


def test_list_audits_newest_first_and_scoped_to_owner(db_session, user, other_user, connection, no_dispatch):
    first = audit_service.create_audit(db_session, "First", "facebook-ads", connection.id, "pdf", user.id)
    second = audit_service.create_audit(db_session, "Second", "facebook-ads", connection.id, "pdf", user.id)
    other_conn, _ = connection_service.connect(db_session, other_user.id, "facebook-ads")
    audit_service.create_audit(db_session, "Theirs", "facebook-ads", other_conn.id, "pdf", other_user.id)

    audits = audit_service.list_audits(db_session, user.id)

    assert [a.id for a in audits] == [second.id, first.id]


def test_reconcile_fails_only_stale_processing_audits(db_session, user, connection, no_dispatch):
    stale = audit_service.create_audit(db_session, "Stale", "facebook-ads", connection.id, "pdf", user.id)
    fresh = audit_service.create_audit(db_session, "Fresh", "facebook-ads", connection.id, "pdf", user.id)
    db_session.query(Audit).filter(Audit.id == stale.id).update(
        {"created_at": datetime.utcnow() - timedelta(hours=2)}, synchronize_session=False
    )
    db_session.commit()

    failed = audit_service.reconcile_stale_audits(db_session, older_than_minutes=30)

    assert failed == 1
    stale_row = _reload(stale.id)
    assert stale_row.status == AuditStatus.failed
    assert stale_row.completed_at is not None
    assert stale_row.report_url is None
    assert _reload(fresh.id).status == AuditStatus.processing


def test_reconcile_leaves_new_audit_processing(db_session, user, connection, no_dispatch):
    audit = audit_service.create_audit(db_session, "Just queued", "facebook-ads", connection.id, "pdf", user.id)

    failed = audit_service.reconcile_stale_audits(db_session)

    assert failed == 0
    stored = _reload(audit.id)
    assert stored.status == AuditStatus.processing
    assert abs(stored.created_at - datetime.utcnow()) < timedelta(minutes=1)


def test_audit_data_is_parsed_json(db_session, user, connection, fake_analysis):
    audit = audit_service.create_audit(db_session, "Data", "facebook-ads", connection.id, "pdf", user.id)

    stored = _reload(audit.id)
    assert json.loads(stored.audit_data_json) == stored.audit_data
