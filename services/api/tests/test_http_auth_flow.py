import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, func, select
from sqlalchemy.orm import sessionmaker

from vca_api.api import otp as otp_api
from vca_api.core.config import get_settings
from vca_api.models.auth import OtpCleanupJob, OtpCode
from vca_api.models.user import User
from vca_api.services import notification
from vca_worker.config import Settings as WorkerSettings
from vca_worker.main import run_pending_jobs

API = "/api"
PASSWORD = "Pass#1234"


@pytest.fixture
def sent_codes(monkeypatch) -> list[tuple[str, str]]:
    """记录后台任务投递的验证码，代替真实邮件发送。"""
    sent: list[tuple[str, str]] = []
    monkeypatch.setattr(otp_api, "deliver_otp", lambda code, email: sent.append((code, email)))
    return sent


def _assert_uuid(value: object, field: str) -> None:
    assert isinstance(value, str) and value.strip(), f"{field} should be non-empty str"
    UUID(value)


def _assert_error(resp, status_code: int, code: str) -> dict:
    assert resp.status_code == status_code, resp.text
    body = resp.json()
    assert set(body) == {"request_id", "error"}
    assert body["error"]["code"] == code
    assert body["error"]["details"]["status_code"] == status_code
    return body["error"]


def _register(client: TestClient, email: str, *, is_veterinary: bool, password: str = PASSWORD):
    return client.post(
        f"{API}/auth/register",
        json={
            "full_name": "Ana Vet" if is_veterinary else "Owner",
            "email": email,
            "password": password,
            "is_veterinary": is_veterinary,
        },
    )


def _login(client: TestClient, email: str, password: str = PASSWORD):
    return client.post(f"{API}/auth/login", json={"email": email, "password": password})


def _request_otp(client: TestClient, email: str):
    return client.get(f"{API}/auth/otp", params={"email": email})


def _validate_otp(client: TestClient, email: str, code: str):
    return client.post(f"{API}/auth/otp/validate", json={"email": email, "otp": code})


def _worker_settings(engine: Engine) -> WorkerSettings:
    return WorkerSettings(database_url=str(engine.url), worker_id="test-worker", worker_lock_timeout_seconds=60)


def _count(session_factory: sessionmaker, model) -> int:
    with session_factory() as db:
        return db.execute(select(func.count()).select_from(model)).scalar_one()


def test_health_probes(client: TestClient):
    live = client.get(f"{API}/health/live")
    assert live.status_code == 200
    assert live.json()["data"]["status"] == "ok"

    ready = client.get(f"{API}/health/ready", headers={"x-request-id": "req-ready-1"})
    assert ready.status_code == 200
    assert ready.json()["request_id"] == "req-ready-1"
    assert ready.headers["X-Request-Id"] == "req-ready-1"
    assert ready.json()["data"]["checks"] == {"database": "ok", "signing_key": "ok"}


def test_readiness_reports_missing_signing_key(client: TestClient, monkeypatch):
    monkeypatch.setenv("VCA_AUTH_JWT_SECRET", "")
    get_settings.cache_clear()

    error = _assert_error(client.get(f"{API}/health/ready"), 503, "NOT_READY")
    assert error["details"]["checks"]["signing_key"] == "missing"


def test_full_account_and_otp_flow(client: TestClient, engine: Engine, session_factory, sent_codes, monkeypatch):
    resp = _register(client, "vet@example.com", is_veterinary=True)
    assert resp.status_code == 200, resp.text
    registered = resp.json()["data"]
    _assert_uuid(registered["user_id"], "register.user_id")
    assert registered["roles"] == ["Vet"]

    resp = _login(client, "vet@example.com")
    assert resp.status_code == 200, resp.text
    login = resp.json()["data"]
    assert login["token_type"] == "bearer"
    assert login["roles"] == ["Vet"]
    assert login["user_id"] == registered["user_id"]
    claims = jwt.decode(login["access_token"], options={"verify_signature": False})
    assert "Vet" in claims["roles"]
    assert claims["sub"] == "vet@example.com"
    assert claims["exp"] - claims["iat"] == 30 * 24 * 3600

    resp = _request_otp(client, "vet@example.com")
    assert resp.status_code == 201, resp.text
    issued = resp.json()["data"]
    assert issued == {"accepted": True, "expires_in": 900}
    assert len(sent_codes) == 1
    code, destination = sent_codes[0]
    assert destination == "vet@example.com"
    assert len(code) == 6 and code.isdigit()
    assert _count(session_factory, OtpCode) == 1
    assert _count(session_factory, OtpCleanupJob) == 1

    resp = _validate_otp(client, "vet@example.com", code)
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"] == {"valid": True}

    # 成功校验后同一验证码不可再次使用。
    _assert_error(_validate_otp(client, "vet@example.com", code), 400, "OTP_EXPIRED")

    # 到期后清理任务删除验证码记录。
    after_expiry = datetime.now(timezone.utc) + timedelta(minutes=16)
    handled = run_pending_jobs(engine, _worker_settings(engine), now_fn=lambda: after_expiry)
    assert handled == 1
    assert _count(session_factory, OtpCode) == 0
    with session_factory() as db:
        job = db.execute(select(OtpCleanupJob)).scalar_one()
        assert job.status == "completed"
        assert job.finished_at is not None


def test_cleanup_removes_reusable_code_once_expired(
    client: TestClient, engine: Engine, session_factory, sent_codes, monkeypatch
):
    monkeypatch.setenv("VCA_OTP_SINGLE_USE", "false")
    get_settings.cache_clear()
    assert _register(client, "owner@example.com", is_veterinary=False).status_code == 200

    assert _request_otp(client, "owner@example.com").status_code == 201
    code = sent_codes[-1][0]
    assert _validate_otp(client, "owner@example.com", code).status_code == 200
    assert _validate_otp(client, "owner@example.com", code).status_code == 200

    # 未到期的任务不会被领取。
    assert run_pending_jobs(engine, _worker_settings(engine)) == 0
    assert _count(session_factory, OtpCode) == 1

    after_expiry = datetime.now(timezone.utc) + timedelta(minutes=16)
    assert run_pending_jobs(engine, _worker_settings(engine), now_fn=lambda: after_expiry) == 1
    _assert_error(_validate_otp(client, "owner@example.com", code), 400, "OTP_EXPIRED")


def test_register_normal_user_gets_normal_role(client: TestClient):
    resp = _register(client, "owner@example.com", is_veterinary=False)
    assert resp.status_code == 200
    assert resp.json()["data"]["roles"] == ["Normal"]

    token = _login(client, "owner@example.com").json()["data"]["access_token"]
    assert jwt.decode(token, options={"verify_signature": False})["roles"] == ["Normal"]


def test_register_duplicate_email_conflicts(client: TestClient):
    assert _register(client, "vet@example.com", is_veterinary=True).status_code == 200
    _assert_error(_register(client, "Vet@Example.com", is_veterinary=False), 409, "USER_ALREADY_EXISTS")


def test_register_weak_password_lists_violations(client: TestClient):
    error = _assert_error(_register(client, "weak@example.com", is_veterinary=False, password="abc"), 400, "USER_CREATION_FAILED")
    assert error["details"]["errors"]

    _assert_error(_login(client, "weak@example.com", "abc"), 404, "USER_NOT_FOUND")


def test_login_failures_share_message_but_not_code(client: TestClient):
    assert _register(client, "vet@example.com", is_veterinary=True).status_code == 200

    unknown = _assert_error(_login(client, "nobody@example.com"), 404, "USER_NOT_FOUND")
    wrong = _assert_error(_login(client, "vet@example.com", "Wrong#1234"), 401, "INVALID_CREDENTIALS")
    assert unknown["message"] == wrong["message"]


def test_otp_for_unregistered_email_is_rejected(client: TestClient, session_factory, sent_codes):
    _assert_error(_request_otp(client, "ghost@example.com"), 400, "EMAIL_NOT_REGISTERED")
    assert sent_codes == []
    assert _count(session_factory, OtpCode) == 0
    assert _count(session_factory, OtpCleanupJob) == 0


def test_wrong_otp_is_invalid_and_latest_still_valid(client: TestClient, sent_codes):
    assert _register(client, "vet@example.com", is_veterinary=True).status_code == 200
    assert _request_otp(client, "vet@example.com").status_code == 201
    code = sent_codes[-1][0]
    wrong = "100000" if code != "100000" else "100001"

    _assert_error(_validate_otp(client, "vet@example.com", wrong), 400, "OTP_INVALID")
    assert _validate_otp(client, "vet@example.com", code).status_code == 200


def test_validate_without_requested_code_is_expired(client: TestClient):
    assert _register(client, "vet@example.com", is_veterinary=True).status_code == 200
    _assert_error(_validate_otp(client, "vet@example.com", "123456"), 400, "OTP_EXPIRED")


def test_mail_failure_does_not_fail_request(client: TestClient, session_factory, monkeypatch, caplog):
    captured: list[str] = []

    def _broken_send(code: str, destination_email: str) -> None:
        captured.append(code)
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr(notification, "send_otp_mail", _broken_send)
    assert _register(client, "vet@example.com", is_veterinary=True).status_code == 200

    with caplog.at_level(logging.ERROR, logger="vca_api.notification"):
        resp = _request_otp(client, "vet@example.com")

    assert resp.status_code == 201
    assert captured and len(captured[0]) == 6
    assert any("delivery failed" in record.getMessage() for record in caplog.records)
    assert _count(session_factory, OtpCode) == 1
    assert _validate_otp(client, "vet@example.com", captured[0]).status_code == 200


def test_suppressed_mail_never_logs_code(caplog):
    with caplog.at_level(logging.INFO, logger="vca_api.notification"):
        notification.deliver_otp("482913", "vet@example.com")

    assert any("mail suppressed" in record.getMessage() for record in caplog.records)
    assert all("482913" not in record.getMessage() for record in caplog.records)


def test_build_otp_message_contains_code():
    msg = notification.build_otp_message("482913", "vet@example.com", get_settings())
    assert msg["To"] == "vet@example.com"
    assert "482913" in msg.get_content()


def test_validation_error_shape(client: TestClient):
    resp = client.post(f"{API}/auth/otp/validate", json={"email": "not-an-email"})
    error = _assert_error(resp, 422, "VALIDATION_ERROR")
    fields = {item["field"] for item in error["details"]["errors"]}
    assert "otp" in fields
    assert "email" in fields

    resp = client.get(f"{API}/auth/otp")
    _assert_error(resp, 422, "VALIDATION_ERROR")


def test_unknown_route_uses_error_envelope(client: TestClient):
    _assert_error(client.get(f"{API}/auth/nope"), 404, "NOT_FOUND")


def test_register_blank_full_name_is_validation_error(client: TestClient, session_factory):
    resp = client.post(
        f"{API}/auth/register",
        json={"full_name": "   ", "email": "vet@example.com", "password": PASSWORD, "is_veterinary": True},
    )

    error = _assert_error(resp, 422, "VALIDATION_ERROR")
    assert {item["field"] for item in error["details"]["errors"]} == {"full_name"}
    assert _count(session_factory, User) == 0


def test_wrong_password_suggestion_is_about_login(client: TestClient):
    assert _register(client, "vet@example.com", is_veterinary=True).status_code == 200

    error = _assert_error(_login(client, "vet@example.com", "Wrong#1234"), 401, "INVALID_CREDENTIALS")
    assert error["details"]["suggestion"] == "请确认邮箱与密码后重试。"
    assert "令牌" not in error["details"]["suggestion"]
