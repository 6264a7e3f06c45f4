"""账号登录与注册流程。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from vca_api.core.errors import (
    AuthServiceError,
    InvalidCredentialsError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from vca_api.models.enums import UserRole, UserStatus
from vca_api.models.user import User
from vca_api.services.credential_store import CredentialStore, normalize_email
from vca_api.services.local_auth import IssuedToken, issue_access_token

logger = logging.getLogger("vca_api.accounts")


@dataclass
class LoginResult:
    """登录成功结果。"""

    token: IssuedToken
    roles: list[str]
    user: User


def authenticate(db: Session, *, username: str, password: str, now: datetime | None = None) -> LoginResult:
    """校验账号口令并签发访问令牌。

    账号不存在与口令错误是两种不同异常，对外文案一致。
    """
    store = CredentialStore(db)
    user = store.find_by_username(username)
    if user is None or user.status != UserStatus.ACTIVE:
        logger.info("login rejected reason=user_not_found")
        raise UserNotFoundError()

    if not store.verify_password(user, password):
        logger.info("login rejected reason=invalid_credentials user_id=%s", user.id)
        raise InvalidCredentialsError()

    roles = store.get_roles(user)
    issued = issue_access_token(user, roles, now=now)
    user.last_login_at = issued.issued_at
    db.commit()

    logger.info("login succeeded user_id=%s roles=%s jti=%s", user.id, ",".join(roles), issued.jti)
    return LoginResult(token=issued, roles=roles, user=user)


def role_for_registration(is_veterinary: bool) -> str:
    """注册时分配的唯一角色。"""
    return UserRole.VET if is_veterinary else UserRole.NORMAL


def register_account(
    db: Session,
    *,
    full_name: str,
    email: str,
    password: str,
    is_veterinary: bool,
) -> tuple[User, list[str]]:
    """创建账号并分配角色。

    建号与分配角色在同一事务内完成，任一步失败整体回滚，不会留下无角色用户。
    """
    store = CredentialStore(db)
    email = normalize_email(email)
    if store.find_by_email(email) is not None:
        raise UserAlreadyExistsError()

    role = role_for_registration(is_veterinary)
    try:
        user = store.create_user(full_name=full_name, email=email, password=password, is_veterinary=is_veterinary)
        store.add_role(user, role)
        db.commit()
    except AuthServiceError as exc:
        db.rollback()
        logger.info("registration rejected code=%s", exc.code)
        raise

    logger.info("registration succeeded user_id=%s role=%s", user.id, role)
    return user, [role]
