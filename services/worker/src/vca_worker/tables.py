"""工作进程访问的表结构。

只声明清理流程读写的两张表，列定义与接口服务的 ORM 模型保持一致。
"""

from sqlalchemy import BigInteger, Column, DateTime, Integer, MetaData, String, Table, Text, Uuid, func

metadata = MetaData()

otp_codes = Table(
    "otp_codes",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("user_id", Uuid, nullable=False, index=True),
    Column("code", String(6), nullable=False),
    Column("seq", BigInteger, nullable=False),
    Column("generated_at", DateTime(timezone=True), nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    Column("consumed_at", DateTime(timezone=True)),
)

otp_cleanup_jobs = Table(
    "otp_cleanup_jobs",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("otp_code_id", Uuid, nullable=False, index=True),
    Column("status", String(32), nullable=False),
    Column("run_at", DateTime(timezone=True), nullable=False),
    Column("attempt_count", Integer, nullable=False, default=0),
    Column("max_attempts", Integer, nullable=False, default=5),
    Column("locked_at", DateTime(timezone=True)),
    Column("locked_by", String(128)),
    Column("finished_at", DateTime(timezone=True)),
    Column("error", Text),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

# 与 vca_api.models.enums.CleanupJobStatus 取值一致。
STATUS_QUEUED = "queued"
STATUS_PROCESSING = "processing"
STATUS_RETRYING = "retrying"
STATUS_COMPLETED = "completed"
STATUS_DEAD_LETTER = "dead_letter"
