"""服务层能力导出集合。"""

from vca_api.services.accounts import LoginResult, authenticate, register_account, role_for_registration
from vca_api.services.credential_store import CredentialStore, normalize_email, password_policy_violations
from vca_api.services.local_auth import IssuedToken, issue_access_token
from vca_api.services.notification import deliver_otp, send_otp_mail
from vca_api.services.otp import generate_otp_code, latest_otp, request_otp, validate_otp
from vca_api.services.otp_scheduler import cleanup_run_at, schedule_otp_cleanup

__all__ = [
    "CredentialStore",
    "IssuedToken",
    "LoginResult",
    "authenticate",
    "cleanup_run_at",
    "deliver_otp",
    "generate_otp_code",
    "issue_access_token",
    "latest_otp",
    "normalize_email",
    "password_policy_violations",
    "register_account",
    "request_otp",
    "role_for_registration",
    "schedule_otp_cleanup",
    "send_otp_mail",
    "validate_otp",
]
