"""验证码清理工作进程。

主流程:
1) 抢占一条到期任务(queued/retrying，或锁已超时的 processing)
2) 按 otp_code_id 删除验证码记录
3) 成功(或记录已不存在)则 completed，异常则 retrying/dead_letter
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import Connection, Engine, create_engine, delete, or_, select, update

from vca_worker.config import Settings, get_settings
from vca_worker.tables import (
    STATUS_COMPLETED,
    STATUS_DEAD_LETTER,
    STATUS_PROCESSING,
    STATUS_QUEUED,
    STATUS_RETRYING,
    otp_cleanup_jobs,
    otp_codes,
)

logger = logging.getLogger("vca_worker")

jobs = otp_cleanup_jobs


def _setup_logging(level: str) -> None:
    """初始化日志输出格式与级别。"""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def retry_delay_seconds(attempt_count: int, base_seconds: int, max_seconds: int) -> int:
    """指数退避：base * 2^(attempt-1)，不超过上限。"""
    return min(base_seconds * (2 ** max(0, attempt_count - 1)), max_seconds)


def _claimable(now: datetime, lock_timeout_seconds: int):
    """可抢占条件：到期、未完成，且未加锁或锁已超时。"""
    stale_before = now - timedelta(seconds=lock_timeout_seconds)
    return (
        jobs.c.status.in_([STATUS_QUEUED, STATUS_RETRYING, STATUS_PROCESSING]),
        jobs.c.run_at <= now,
        or_(jobs.c.locked_at.is_(None), jobs.c.locked_at < stale_before),
    )


def _claim_next_job(
    conn: Connection,
    *,
    worker_id: str,
    lock_timeout_seconds: int,
    now: datetime,
) -> dict[str, Any] | None:
    """抢占下一条到期任务。

    关键点：
    1. PostgreSQL 下 `FOR UPDATE SKIP LOCKED` 避免多个工作进程领取同一任务。
    2. 更新时再次校验抢占条件，其他进程先一步领取时放弃本次抢占。
    3. processing 状态锁超时后允许接管，处理工作进程异常退出场景。
    """
    conditions = _claimable(now, lock_timeout_seconds)
    job_id = conn.execute(
        select(jobs.c.id)
        .where(*conditions)
        .order_by(jobs.c.run_at)
        .limit(1)
        .with_for_update(skip_locked=True)
    ).scalar_one_or_none()
    if job_id is None:
        return None

    result = conn.execute(
        update(jobs)
        .where(jobs.c.id == job_id)
        .where(*conditions)
        .values(
            status=STATUS_PROCESSING,
            locked_at=now,
            locked_by=worker_id,
            attempt_count=jobs.c.attempt_count + 1,
            updated_at=now,
            error=None,
        )
    )
    if result.rowcount != 1:
        return None

    row = conn.execute(
        select(jobs.c.id, jobs.c.otp_code_id, jobs.c.attempt_count, jobs.c.max_attempts).where(jobs.c.id == job_id)
    ).mappings().first()
    return dict(row) if row else None


def _delete_otp_code(conn: Connection, otp_code_id: UUID) -> bool:
    """删除验证码记录，返回记录是否存在。"""
    result = conn.execute(delete(otp_codes).where(otp_codes.c.id == otp_code_id))
    return result.rowcount > 0


def _mark_success(conn: Connection, job_id: UUID, now: datetime) -> None:
    """将任务标记为完成态。"""
    conn.execute(
        update(jobs)
        .where(jobs.c.id == job_id)
        .values(
            status=STATUS_COMPLETED,
            finished_at=now,
            locked_at=None,
            locked_by=None,
            updated_at=now,
            error=None,
        )
    )


def _mark_failure(
    conn: Connection,
    *,
    job_id: UUID,
    attempt_count: int,
    max_attempts: int,
    base_seconds: int,
    max_seconds: int,
    error_message: str,
    now: datetime,
) -> None:
    """按重试策略处理失败任务。"""
    if attempt_count < max_attempts:
        # 可重试失败：回退到 retrying 并设置下次执行时间。
        delay = retry_delay_seconds(attempt_count, base_seconds, max_seconds)
        conn.execute(
            update(jobs)
            .where(jobs.c.id == job_id)
            .values(
                status=STATUS_RETRYING,
                run_at=now + timedelta(seconds=delay),
                locked_at=None,
                locked_by=None,
                updated_at=now,
                error=error_message,
            )
        )
        return

    # 超过最大重试：进入死信，等待人工排查。
    conn.execute(
        update(jobs)
        .where(jobs.c.id == job_id)
        .values(
            status=STATUS_DEAD_LETTER,
            finished_at=now,
            locked_at=None,
            locked_by=None,
            updated_at=now,
            error=error_message,
        )
    )


def run_pending_jobs(
    engine: Engine,
    settings: Settings,
    *,
    now_fn: Callable[[], datetime] = _utc_now,
    delete_fn: Callable[[Connection, UUID], bool] = _delete_otp_code,
) -> int:
    """处理一批到期任务，返回本轮领取的任务数。"""
    handled = 0
    while handled < settings.worker_batch_size:
        with engine.begin() as conn:
            claimed = _claim_next_job(
                conn,
                worker_id=settings.worker_id,
                lock_timeout_seconds=settings.worker_lock_timeout_seconds,
                now=now_fn(),
            )
        if not claimed:
            break
        handled += 1

        try:
            with engine.begin() as conn:
                if delete_fn(conn, claimed["otp_code_id"]):
                    logger.info("deleted otp id=%s job_id=%s", claimed["otp_code_id"], claimed["id"])
                else:
                    # 记录可能已被其他途径删除，直接丢弃该任务。
                    logger.warning(
                        "otp already removed id=%s job_id=%s, dropping job",
                        claimed["otp_code_id"],
                        claimed["id"],
                    )
                _mark_success(conn, claimed["id"], now_fn())
        except Exception as exc:
            err = str(exc)[:2000]
            logger.exception(
                "cleanup job failed id=%s attempt=%s/%s error=%s",
                claimed["id"],
                claimed["attempt_count"],
                claimed["max_attempts"],
                err,
            )
            with engine.begin() as conn:
                _mark_failure(
                    conn,
                    job_id=claimed["id"],
                    attempt_count=claimed["attempt_count"],
                    max_attempts=claimed["max_attempts"],
                    base_seconds=settings.cleanup_retry_base_seconds,
                    max_seconds=settings.cleanup_retry_max_seconds,
                    error_message=err,
                    now=now_fn(),
                )
    return handled


def main() -> None:
    """工作进程主循环。"""
    settings = get_settings()
    _setup_logging(settings.log_level)
    engine = create_engine(settings.database_url, future=True, pool_pre_ping=True)

    logger.info("worker started worker_id=%s at=%s", settings.worker_id, _utc_now().isoformat())

    while True:
        try:
            handled = run_pending_jobs(engine, settings)
        except KeyboardInterrupt:
            logger.info("worker stopped")
            return
        except Exception:
            # 抢占阶段出现异常（例如数据库暂不可用），记录后进入下一轮轮询。
            logger.exception("worker loop error without claimed job")
            time.sleep(settings.worker_poll_interval_seconds)
            continue

        if handled == 0:
            # 没有到期任务时短暂休眠，降低数据库轮询压力。
            try:
                time.sleep(settings.worker_poll_interval_seconds)
            except KeyboardInterrupt:
                logger.info("worker stopped")
                return


if __name__ == "__main__":
    main()
