"""访问令牌签发。"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import jwt

from vca_api.core.config import get_settings
from vca_api.core.security import require_signing_key
from vca_api.models.user import User


@dataclass(frozen=True)
class IssuedToken:
    """已签发令牌及其元信息，服务端不保留任何引用。"""

    token: str
    jti: str
    issued_at: datetime
    expires_at: datetime


def issue_access_token(user: User, roles: Sequence[str], *, now: datetime | None = None) -> IssuedToken:
    """签发携带角色声明的访问令牌。

    有效期由配置固定，不随调用方变化；密钥缺失时抛出 ConfigurationError。
    """
    settings = get_settings()
    key = require_signing_key(settings)
    # JWT 时间声明为整秒，先截断保证 exp - iat 恰好等于有效期。
    issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    expires_at = issued_at + timedelta(seconds=settings.auth_access_token_ttl_seconds)
    jti = str(uuid4())

    claims: dict[str, object] = {
        "sub": user.username,
        "jti": jti,
        "uid": str(user.id),
        "roles": list(roles),
        "iss": settings.auth_jwt_issuer,
        "iat": int(issued_at.timestamp()),
        "nbf": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if settings.auth_jwt_audience:
        claims["aud"] = settings.auth_jwt_audience

    token = jwt.encode(claims, key, algorithm=settings.auth_algorithms[0])
    return IssuedToken(token=token, jti=jti, issued_at=issued_at, expires_at=expires_at)
