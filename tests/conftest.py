import os
import shutil
import sys
import tempfile
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

TEST_DB_DIR = tempfile.mkdtemp(prefix="adaudit-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{Path(TEST_DB_DIR) / 'test_adaudit.db'}")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("REDIS_URL", "redis://localhost:6399/0")
os.environ.setdefault("PLATFORM_DEMO_MODE", "true")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("TEST_LOGIN_EMAIL", "test@example.com")
os.environ.setdefault("TEST_LOGIN_PASSWORD", "password123")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete

from adaudit.db.session import SessionLocal, engine, init_db
from adaudit.models import Audit, AccountConnection, UserSession, User
from adaudit.core.exceptions import AnalysisError
from adaudit.services.analysis_service import normalize_analysis
from adaudit.services.auth_service import auth_service


class FakeAnalysisClient:
    """Stands in for the LLM client; records calls."""

    def __init__(self, fail_on=None, score=82):
        self.fail_on = fail_on
        self.score = score
        self.calls = []

    def analyze(self, platform, account_data):
        self.calls.append(("analyze", platform, account_data))
        if self.fail_on == "analyze":
            raise AnalysisError("analysis failed")
        return normalize_analysis({
            "summary": f"{platform} account is healthy",
            "keyInsights": ["CTR above benchmark"],
            "recommendations": ["Shift budget to best ad set"],
            "performanceMetrics": [{"metric": "CTR", "value": "1.7%", "status": "good"}],
            "score": self.score,
        })

    def render_report(self, analysis, platform, account_name, report_format):
        self.calls.append(("render_report", platform, account_name, report_format))
        if self.fail_on == "render_report":
            raise RuntimeError("model timed out")
        return f"Executive Summary\n{analysis.summary}"


def _wipe(session):
    session.execute(delete(Audit))
    session.execute(delete(AccountConnection))
    session.execute(delete(UserSession))
    session.execute(delete(User))
    session.commit()


@pytest.fixture(scope="session", autouse=True)
def _test_database_dir():
    yield
    engine.dispose()
    shutil.rmtree(TEST_DB_DIR, ignore_errors=True)


@pytest.fixture()
def db_session():
    init_db()
    session = SessionLocal()
    _wipe(session)
    try:
        yield session
    finally:
        session.rollback()
        _wipe(session)
        session.close()


@pytest.fixture()
def fake_analysis(monkeypatch):
    client = FakeAnalysisClient()
    monkeypatch.setattr("adaudit.services.audit_service.get_analysis_client", lambda: client)
    return client


@pytest.fixture()
def user(db_session):
    return auth_service.create_user(db_session, "owner@example.com", first_name="Olive")


@pytest.fixture()
def other_user(db_session):
    return auth_service.create_user(db_session, "intruder@example.com")


@pytest.fixture()
def api_client(db_session):
    import adaudit.main as main_module

    with TestClient(main_module.app) as client:
        yield client


@pytest.fixture()
def logged_in_client(api_client):
    response = api_client.post(
        "/api/auth/test-login",
        json={"email": "test@example.com", "password": "password123"},
    )
    assert response.status_code == 200
    return api_client
