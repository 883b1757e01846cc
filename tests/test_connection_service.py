from urllib.parse import parse_qs, urlparse

import pytest

from adaudit.connectors.builtin import PLATFORM_REGISTRY, get_platform
from adaudit.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    PlatformNotConfiguredError,
    UnsupportedPlatformError,
)
from adaudit.core.security import create_oauth_state, decrypt_token
from adaudit.models import AccountConnection
from adaudit.services.connection_service import connection_service


def _count(db_session, **filters):
    return db_session.query(AccountConnection).filter_by(**filters).count()


def test_connect_twice_returns_same_connection(db_session, user):
    first, created_first = connection_service.connect(db_session, user.id, "google-ads")
    second, created_second = connection_service.connect(db_session, user.id, "google-ads")

    assert created_first is True
    assert created_second is False
    assert first.id == second.id
    assert _count(db_session, user_id=user.id, platform="google-ads") == 1


def test_connect_unknown_platform_creates_nothing(db_session, user):
    with pytest.raises(UnsupportedPlatformError):
        connection_service.connect(db_session, user.id, "unknown-platform")

    assert _count(db_session, user_id=user.id) == 0


def test_connect_synthesizes_demo_account(db_session, user):
    connection, _ = connection_service.connect(db_session, user.id, "tiktok-ads")

    assert connection.account_id.startswith("demo_tiktok-ads_")
    assert connection.account_name == "Demo TikTok Ads Account"
    assert connection.is_active == 1
    assert connection.expires_at is not None
    assert connection.access_token != "mock_token_tiktok-ads"
    assert decrypt_token(connection.access_token) == "mock_token_tiktok-ads"
    assert decrypt_token(connection.refresh_token) == "mock_refresh_tiktok-ads"


def test_connections_are_per_user_and_platform(db_session, user, other_user):
    mine, _ = connection_service.connect(db_session, user.id, "facebook-ads")
    theirs, _ = connection_service.connect(db_session, other_user.id, "facebook-ads")
    connection_service.connect(db_session, user.id, "microsoft-ads")

    assert mine.id != theirs.id
    assert len(connection_service.list_connections(db_session, user.id)) == 2
    only_fb = connection_service.list_connections(db_session, user.id, "facebook-ads")
    assert [c.id for c in only_fb] == [mine.id]


def test_disconnect_then_connect_creates_new_row(db_session, user):
    original, _ = connection_service.connect(db_session, user.id, "google-analytics")

    connection_service.disconnect(db_session, original.id, user.id)
    replacement, created = connection_service.connect(db_session, user.id, "google-analytics")

    assert created is True
    assert replacement.id != original.id
    assert _count(db_session, user_id=user.id, platform="google-analytics") == 2


def test_disconnect_foreign_connection_is_not_found(db_session, user, other_user):
    connection, _ = connection_service.connect(db_session, user.id, "google-ads")

    with pytest.raises(AuthorizationError):
        connection_service.disconnect(db_session, connection.id, other_user.id)

    db_session.refresh(connection)
    assert connection.is_active == 1


def test_begin_oauth_in_demo_mode_connects_immediately(db_session, user):
    result = connection_service.begin_oauth(db_session, user.id, "facebook-ads")

    assert result["success"] is True
    assert result["created"] is True
    assert result["message"] == "Successfully connected to Facebook Ads"
    assert result["connection"].platform == "facebook-ads"


def test_begin_oauth_without_credentials_requires_setup(db_session, user, monkeypatch):
    monkeypatch.setattr("adaudit.services.connection_service.settings.PLATFORM_DEMO_MODE", False)
    monkeypatch.setattr("adaudit.services.connection_service.settings.TIKTOK_ADS_CLIENT_ID", None)

    with pytest.raises(PlatformNotConfiguredError):
        connection_service.begin_oauth(db_session, user.id, "tiktok-ads")
    assert _count(db_session, user_id=user.id) == 0


def test_begin_oauth_with_credentials_returns_signed_authorize_url(db_session, user, monkeypatch):
    settings_path = "adaudit.services.connection_service.settings"
    monkeypatch.setattr(f"{settings_path}.PLATFORM_DEMO_MODE", False)
    monkeypatch.setattr(f"{settings_path}.FACEBOOK_ADS_CLIENT_ID", "fb-client")
    monkeypatch.setattr(f"{settings_path}.FACEBOOK_ADS_CLIENT_SECRET", "fb-secret")

    result = connection_service.begin_oauth(db_session, user.id, "facebook-ads")

    assert result["success"] is False
    url = urlparse(result["authorizeUrl"])
    assert url.netloc == "www.facebook.com"
    query = parse_qs(url.query)
    assert query["client_id"] == ["fb-client"]
    assert query["redirect_uri"][0].endswith("/facebook-ads/callback")

    connection = connection_service.complete_oauth(db_session, "facebook-ads", "code-123", query["state"][0])
    assert connection.user_id == user.id
    assert connection.platform == "facebook-ads"


def test_complete_oauth_rejects_state_for_other_platform(db_session, user):
    state = create_oauth_state({"sub": str(user.id), "platform": "google-ads"})

    with pytest.raises(AuthenticationError):
        connection_service.complete_oauth(db_session, "tiktok-ads", "code", state)
    assert _count(db_session, user_id=user.id) == 0


def test_complete_oauth_rejects_tampered_state(db_session, user):
    with pytest.raises(AuthenticationError):
        connection_service.complete_oauth(db_session, "google-ads", "code", "not-a-jwt")


@pytest.mark.parametrize("platform", sorted(PLATFORM_REGISTRY))
def test_platform_data_carries_common_fields(platform):
    data = get_platform(platform).fetch_performance_data("Demo Account")

    assert data["platform"] == platform
    assert data["accountName"] == "Demo Account"
    assert data["dateRange"] == "Last 30 days"
    assert data["currency"] == "USD"
    assert data["totalSpend"] > 0
