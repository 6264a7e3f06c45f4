from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
import pytest

from vca_api.core.config import Settings, get_settings
from vca_api.core.errors import ConfigurationError
from vca_api.core.security import hash_password, require_signing_key, verify_password
from vca_api.main import create_app
from vca_api.models.user import User
from vca_api.services.local_auth import issue_access_token


def _user() -> User:
    return User(
        id=UUID("00000000-0000-0000-0000-000000000111"),
        username="token@example.com",
        email="token@example.com",
        full_name="Token User",
        is_veterinary=True,
    )


def _decode(token: str) -> dict:
    settings = get_settings()
    return jwt.decode(
        token,
        "unit-test-secret",
        algorithms=["HS256"],
        audience=settings.auth_jwt_audience,
        issuer=settings.auth_jwt_issuer,
    )


def test_password_hash_and_verify():
    password_hash = hash_password("Pass#1234")
    assert password_hash.startswith("pbkdf2_sha256$")
    assert verify_password("Pass#1234", password_hash)
    assert not verify_password("wrong-password", password_hash)


def test_verify_password_rejects_malformed_hash():
    assert not verify_password("Pass#1234", "not-a-hash")
    assert not verify_password("Pass#1234", "md5$1$abc$def")


def test_issue_access_token_carries_subject_and_roles():
    issued = issue_access_token(_user(), ["Normal", "Vet"])
    claims = _decode(issued.token)

    assert claims["sub"] == "token@example.com"
    assert claims["roles"] == ["Normal", "Vet"]
    assert claims["uid"] == "00000000-0000-0000-0000-000000000111"
    assert claims["jti"] == issued.jti


def test_issue_access_token_allows_empty_roles():
    claims = _decode(issue_access_token(_user(), []).token)
    assert claims["roles"] == []


def test_issue_access_token_generates_unique_jti():
    first = issue_access_token(_user(), ["Vet"])
    second = issue_access_token(_user(), ["Vet"])
    assert first.jti != second.jti


def test_token_lifetime_is_exactly_thirty_days():
    now = datetime(2026, 3, 1, 8, 30, 15, 987654, tzinfo=timezone.utc)
    issued = issue_access_token(_user(), ["Vet"], now=now)
    claims = jwt.decode(issued.token, options={"verify_signature": False})

    assert claims["exp"] - claims["iat"] == 30 * 24 * 3600
    assert issued.expires_at - issued.issued_at == timedelta(days=30)


def test_token_lifetime_follows_configuration(monkeypatch):
    monkeypatch.setenv("VCA_AUTH_ACCESS_TOKEN_TTL_SECONDS", "600")
    get_settings.cache_clear()

    claims = jwt.decode(issue_access_token(_user(), []).token, options={"verify_signature": False})
    assert claims["exp"] - claims["iat"] == 600


def test_issue_access_token_omits_audience_when_not_configured(monkeypatch):
    monkeypatch.setenv("VCA_AUTH_JWT_AUDIENCE", "")
    get_settings.cache_clear()
    # 空字符串视为未配置受众。
    claims = jwt.decode(issue_access_token(_user(), []).token, options={"verify_signature": False})
    assert "aud" not in claims


@pytest.mark.parametrize("secret", ["", "   "])
def test_issue_access_token_requires_signing_key(monkeypatch, secret):
    monkeypatch.setenv("VCA_AUTH_JWT_SECRET", secret)
    get_settings.cache_clear()

    with pytest.raises(ConfigurationError):
        issue_access_token(_user(), ["Vet"])


def test_require_signing_key_rejects_absent_key():
    with pytest.raises(ConfigurationError):
        require_signing_key(Settings(auth_jwt_secret=None))


def test_create_app_fails_fast_without_signing_key():
    with pytest.raises(ConfigurationError):
        create_app(Settings(auth_jwt_secret=""))


def test_algorithms_setting_rejects_empty_list():
    with pytest.raises(ValueError):
        Settings(auth_jwt_algorithms=" , ")


def test_issue_access_token_uses_first_configured_algorithm(monkeypatch):
    monkeypatch.setenv("VCA_AUTH_JWT_ALGORITHMS", "HS512, HS256")
    get_settings.cache_clear()

    token = issue_access_token(_user(), ["Vet"]).token
    assert jwt.get_unverified_header(token)["alg"] == "HS512"


def test_issued_at_is_truncated_to_seconds():
    issued = issue_access_token(_user(), [], now=datetime.now(timezone.utc))
    assert issued.issued_at.microsecond == 0
