import pytest
from fastapi import HTTPException

from printflow.auth.dependencies import require_admin, require_cron_secret
from printflow.config import settings


def test_require_admin_rejects_missing_token():
    with pytest.raises(HTTPException) as exc_info:
        require_admin(None)

    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Missing bearer token"
    assert exc_info.value.headers["WWW-Authenticate"] == "Bearer"


def test_require_admin_rejects_wrong_token():
    with pytest.raises(HTTPException) as exc_info:
        require_admin("Bearer not-the-token")

    assert exc_info.value.detail == "Invalid admin token"


def test_require_admin_rejects_non_bearer_scheme():
    with pytest.raises(HTTPException) as exc_info:
        require_admin(f"Basic {settings.admin_api_token}")

    assert exc_info.value.detail == "Missing bearer token"


def test_require_admin_accepts_configured_token():
    assert require_admin(f"Bearer {settings.admin_api_token}") is None


def test_require_cron_secret_accepts_header_or_bearer():
    assert require_cron_secret(None, settings.cron_secret) is None
    assert require_cron_secret(f"Bearer {settings.cron_secret}", None) is None


def test_require_cron_secret_rejects_missing_or_wrong_secret():
    with pytest.raises(HTTPException) as missing:
        require_cron_secret(None, None)
    with pytest.raises(HTTPException) as wrong:
        require_cron_secret(None, "guess")

    assert missing.value.detail == "Missing cron secret"
    assert wrong.value.status_code == 401
    assert wrong.value.detail == "Invalid cron secret"
