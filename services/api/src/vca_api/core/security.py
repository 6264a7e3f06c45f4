"""签名密钥与口令哈希工具。"""

import base64
import binascii
import hashlib
import hmac
import secrets

from vca_api.core.config import Settings, get_settings
from vca_api.core.errors import ConfigurationError

PASSWORD_HASH_ALGORITHM = "pbkdf2_sha256"


def require_signing_key(settings: Settings | None = None) -> str:
    """返回签名密钥，缺失或为空时抛出配置错误。"""
    settings = settings or get_settings()
    key = (settings.auth_jwt_secret or "").strip()
    if not key:
        raise ConfigurationError("auth_jwt_secret is not configured")
    return key


def hash_password(password: str) -> str:
    """使用 PBKDF2-SHA256 生成口令哈希。"""
    settings = get_settings()
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt,
        settings.auth_password_hash_iterations,
    )
    salt_b64 = base64.b64encode(salt).decode("ascii")
    digest_b64 = base64.b64encode(digest).decode("ascii")
    return f"{PASSWORD_HASH_ALGORITHM}${settings.auth_password_hash_iterations}${salt_b64}${digest_b64}"


def verify_password(password: str, password_hash: str) -> bool:
    """校验口令是否匹配，哈希格式不合法时视为不匹配。"""
    try:
        algorithm, iterations_text, salt_b64, expected_digest_b64 = password_hash.split("$", 3)
        if algorithm != PASSWORD_HASH_ALGORITHM:
            return False
        iterations = int(iterations_text)
        salt = base64.b64decode(salt_b64.encode("ascii"))
        expected_digest = base64.b64decode(expected_digest_b64.encode("ascii"))
    except (ValueError, TypeError, binascii.Error):
        return False

    actual_digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt,
        iterations,
    )
    return hmac.compare_digest(actual_digest, expected_digest)
