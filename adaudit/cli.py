"""Ad auditor CLI tool (adauditctl)."""

from typing import Optional

import typer

app = typer.Typer(name="adauditctl", help="Ad Account Auditor CLI")
db_app = typer.Typer(help="Database management commands")
audits_app = typer.Typer(help="Audit job maintenance")
app.add_typer(db_app, name="db")
app.add_typer(audits_app, name="audits")


@db_app.command("init")
def db_init():
    """Create all tables that do not exist yet."""
    from adaudit.db.session import init_db

    init_db()
    typer.echo("Tables created (or already present)")


@db_app.command("seed")
def db_seed():
    """Create the test-login user."""
    from adaudit.core.config import settings
    from adaudit.db.session import SessionLocal
    from adaudit.services.auth_service import auth_service

    db = SessionLocal()
    try:
        user = auth_service.test_login(db, settings.TEST_LOGIN_EMAIL, settings.TEST_LOGIN_PASSWORD)
        typer.echo(f"Test user ready: {user.email} (id {user.id})")
    finally:
        db.close()


@audits_app.command("reconcile")
def audits_reconcile(
    older_than: Optional[int] = typer.Option(None, help="Minutes after which a processing audit is failed"),
):
    """Fail audits stuck in processing."""
    from adaudit.db.session import SessionLocal
    from adaudit.services.audit_service import audit_service

    db = SessionLocal()
    try:
        failed = audit_service.reconcile_stale_audits(db, older_than)
    finally:
        db.close()
    typer.echo(f"Marked {failed} stale audit(s) as failed")


@audits_app.command("list")
def audits_list(user_id: int = typer.Argument(..., help="Owner user id")):
    """Print a user's audits."""
    from adaudit.db.session import SessionLocal
    from adaudit.services.audit_service import audit_service

    db = SessionLocal()
    try:
        for audit in audit_service.list_audits(db, user_id):
            typer.echo(
                f"{audit.id}\t{audit.status.value}\t{audit.platform}\t{audit.name}\t{audit.report_url or '-'}"
            )
    finally:
        db.close()


if __name__ == "__main__":
    app()
