"""本地凭据存储。

认证核心只通过这里的六个操作访问用户数据：
按用户名/邮箱查找、校验口令、创建用户、查询角色、追加角色。
写操作只 flush 不提交，事务边界由调用方控制。
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vca_api.core.config import Settings, get_settings
from vca_api.core.errors import UserAlreadyExistsError, UserCreationError
from vca_api.core.security import hash_password, verify_password
from vca_api.models.auth import UserCredential
from vca_api.models.enums import CredentialStatus, UserStatus
from vca_api.models.user import User, UserRoleAssignment

_NON_ALPHANUMERIC = re.compile(r"[^0-9A-Za-z]")


def normalize_email(value: str) -> str:
    """标准化邮箱字段（去空格 + 小写）。"""
    return value.strip().lower()


def password_policy_violations(password: str, settings: Settings | None = None) -> list[str]:
    """返回口令不满足的策略项，空列表表示通过。"""
    settings = settings or get_settings()
    violations: list[str] = []
    if len(password) < settings.password_min_length:
        violations.append(f"password must be at least {settings.password_min_length} characters")
    if settings.password_require_digit and not any(ch.isdigit() for ch in password):
        violations.append("password must contain a digit")
    if settings.password_require_lowercase and not any(ch.islower() for ch in password):
        violations.append("password must contain a lowercase letter")
    if settings.password_require_uppercase and not any(ch.isupper() for ch in password):
        violations.append("password must contain an uppercase letter")
    if settings.password_require_non_alphanumeric and not _NON_ALPHANUMERIC.search(password):
        violations.append("password must contain a non-alphanumeric character")
    return violations


class CredentialStore:
    """基于数据库会话的用户、凭据与角色访问。"""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_username(self, username: str) -> User | None:
        return self.db.execute(
            select(User).where(User.username == normalize_email(username))
        ).scalar_one_or_none()

    def find_by_email(self, email: str) -> User | None:
        return self.db.execute(select(User).where(User.email == normalize_email(email))).scalar_one_or_none()

    def verify_password(self, user: User, password: str) -> bool:
        """仅校验处于 active 状态的凭据。"""
        credential = self.db.execute(
            select(UserCredential)
            .where(UserCredential.user_id == user.id)
            .where(UserCredential.status == CredentialStatus.ACTIVE)
        ).scalar_one_or_none()
        if credential is None:
            return False
        return verify_password(password, credential.password_hash)

    def create_user(self, *, full_name: str, email: str, password: str, is_veterinary: bool) -> User:
        """创建用户与口令凭据。

        姓名为空或口令不满足策略时抛出 UserCreationError；邮箱唯一约束冲突时抛出 UserAlreadyExistsError。
        两种情况下会话都需要由调用方回滚。
        """
        full_name = full_name.strip()
        if not full_name:
            raise UserCreationError(details={"errors": ["full_name must not be blank"]})
        violations = password_policy_violations(password)
        if violations:
            raise UserCreationError(details={"errors": violations})

        normalized = normalize_email(email)
        user = User(
            id=uuid4(),
            username=normalized,
            email=normalized,
            full_name=full_name,
            is_veterinary=is_veterinary,
            status=UserStatus.ACTIVE,
        )
        self.db.add(user)
        self.db.add(
            UserCredential(
                id=uuid4(),
                user_id=user.id,
                password_hash=hash_password(password),
                status=CredentialStatus.ACTIVE,
                password_updated_at=datetime.now(timezone.utc),
            )
        )
        try:
            self.db.flush()
        except IntegrityError as exc:
            # 并发注册时前置查重可能漏判，以唯一约束为准。
            raise UserAlreadyExistsError() from exc
        return user

    def get_roles(self, user: User) -> list[str]:
        return list(
            self.db.execute(
                select(UserRoleAssignment.role)
                .where(UserRoleAssignment.user_id == user.id)
                .order_by(UserRoleAssignment.role)
            ).scalars()
        )

    def add_role(self, user: User, role: str) -> None:
        """追加角色，已存在时不重复写入。"""
        if role in self.get_roles(user):
            return
        self.db.add(UserRoleAssignment(id=uuid4(), user_id=user.id, role=role))
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise UserCreationError("分配角色失败。", details={"role": role}) from exc
