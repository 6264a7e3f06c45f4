"""用户与角色模型。"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from vca_api.models.base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin
from vca_api.models.enums import UserStatus


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """社区用户实体。"""

    __tablename__ = "users"

    # 登录名，注册时取规范化后的邮箱，全局唯一。
    username: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    # 通知与找回密码使用的邮箱，全局唯一。
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    # 用户全名。
    full_name: Mapped[str] = mapped_column(String(128), nullable=False)
    # 注册时是否声明为兽医。
    is_veterinary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # 本地用户状态（active/disabled）。
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=UserStatus.ACTIVE)
    # 最近一次登录时间。
    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime)


class UserRoleAssignment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """用户角色关系。"""

    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uk_user_role"),)

    # 用户 ID（逻辑关联 users.id，不声明数据库外键）。
    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 角色名（Vet/Normal）。
    role: Mapped[str] = mapped_column(String(64), nullable=False)
