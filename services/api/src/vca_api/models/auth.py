"""认证相关模型。"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from vca_api.models.base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin
from vca_api.models.enums import CleanupJobStatus, CredentialStatus


class UserCredential(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """用户本地凭据（邮箱密码）关系。"""

    __tablename__ = "user_credentials"
    __table_args__ = (UniqueConstraint("user_id", name="uk_user_credential_user"),)

    # 用户 ID（逻辑关联 users.id，不声明数据库外键）。
    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 口令哈希，不存明文。
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    # 凭据状态，例如 active/disabled。
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=CredentialStatus.ACTIVE)
    # 最近一次修改口令时间。
    password_updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class OtpCode(Base, UUIDPrimaryKeyMixin):
    """一次性验证码记录，同一用户仅最新一条参与校验。"""

    __tablename__ = "otp_codes"
    __table_args__ = (UniqueConstraint("user_id", "seq", name="uk_otp_codes_user_seq"),)

    # 所属用户 ID。
    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 6 位数字验证码。
    code: Mapped[str] = mapped_column(String(6), nullable=False)
    # 用户内严格递增的签发序号，判定最新验证码以此为准。
    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # 生成时间（UTC）。
    generated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    # 过期时间（UTC）。
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    # 校验成功的时间，非空表示已使用。
    consumed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)


class OtpCleanupJob(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """验证码到期清理任务，由工作进程消费。"""

    __tablename__ = "otp_cleanup_jobs"

    # 待删除的验证码 ID（逻辑关联 otp_codes.id）。
    otp_code_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 任务状态（queued/processing/retrying/completed/dead_letter）。
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=CleanupJobStatus.QUEUED)
    # 最早执行时间，即验证码过期时间。
    run_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())
    # 已尝试次数。
    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # 最大尝试次数。
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    # 锁定时间，配合 locked_by 实现任务占有。
    locked_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    # 持锁工作进程标识。
    locked_by: Mapped[str | None] = mapped_column(String(128))
    # 任务完成时间（成功或死信）。
    finished_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    # 错误详情摘要。
    error: Mapped[str | None] = mapped_column(Text)
