"""验证码到期清理任务登记。

任务写入 otp_cleanup_jobs 表，与验证码记录同一事务提交，
由独立工作进程按 run_at 消费，进程重启不会丢失待执行的清理。
"""

from datetime import datetime, timezone

from sqlalchemy.orm import Session

from vca_api.core.config import get_settings
from vca_api.models.auth import OtpCleanupJob, OtpCode
from vca_api.models.enums import CleanupJobStatus


def cleanup_run_at(expires_at: datetime, now: datetime) -> datetime:
    """计算清理任务执行时间，延迟非正时立即可执行。"""
    return max(expires_at, now)


def schedule_otp_cleanup(db: Session, otp: OtpCode, *, now: datetime | None = None) -> OtpCleanupJob:
    """为验证码登记一条到期删除任务。"""
    settings = get_settings()
    now = now or datetime.now(timezone.utc)
    job = OtpCleanupJob(
        otp_code_id=otp.id,
        status=CleanupJobStatus.QUEUED,
        run_at=cleanup_run_at(otp.expires_at, now),
        attempt_count=0,
        max_attempts=settings.otp_cleanup_max_attempts,
    )
    db.add(job)
    db.flush()
    return job
