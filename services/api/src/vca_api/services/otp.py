"""一次性验证码签发与校验。"""

from __future__ import annotations

import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vca_api.core.config import get_settings
from vca_api.core.errors import EmailNotRegisteredError, OtpExpiredError, OtpInvalidError
from vca_api.models.auth import OtpCode
from vca_api.services.credential_store import CredentialStore
from vca_api.services.otp_scheduler import schedule_otp_cleanup

logger = logging.getLogger("vca_api.otp")

OTP_MIN = 100000
OTP_MAX = 999999
# 并发签发撞上同一序号时的重试次数。
OTP_ISSUE_ATTEMPTS = 3


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_otp_code() -> str:
    """在 [100000, 999999] 上均匀生成 6 位数字验证码。"""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def latest_otp(db: Session, user_id) -> OtpCode | None:
    """返回用户最新签发的一条验证码，旧记录不参与校验。

    以用户内递增的 seq 判定先后，生成时间相同的记录也不会混淆。
    """
    return (
        db.execute(
            select(OtpCode)
            .where(OtpCode.user_id == user_id)
            .order_by(OtpCode.seq.desc())
            .limit(1)
        )
        .scalars()
        .first()
    )


def request_otp(db: Session, *, email: str, now: datetime | None = None) -> OtpCode:
    """生成验证码并登记到期清理任务。

    验证码与清理任务同一事务提交；邮件投递由调用方在提交后异步触发。
    """
    settings = get_settings()
    user = CredentialStore(db).find_by_email(email)
    if user is None:
        raise EmailNotRegisteredError()

    now = now or _utc_now()
    user_id = user.id
    for attempt in range(1, OTP_ISSUE_ATTEMPTS + 1):
        previous = latest_otp(db, user_id)
        otp = OtpCode(
            id=uuid4(),
            user_id=user_id,
            code=generate_otp_code(),
            seq=previous.seq + 1 if previous is not None else 1,
            generated_at=now,
            expires_at=now + timedelta(seconds=settings.otp_ttl_seconds),
        )
        db.add(otp)
        try:
            # (user_id, seq) 唯一约束保证并发签发时序号不重复。
            db.flush()
        except IntegrityError:
            db.rollback()
            if attempt == OTP_ISSUE_ATTEMPTS:
                raise
            logger.info("otp seq conflict user_id=%s attempt=%s, retrying", user_id, attempt)
            continue
        break

    job = schedule_otp_cleanup(db, otp, now=now)
    db.commit()

    logger.info(
        "otp issued user_id=%s otp_id=%s cleanup_job_id=%s expires_at=%s",
        user_id,
        otp.id,
        job.id,
        otp.expires_at.isoformat(),
    )
    return otp


def validate_otp(db: Session, *, email: str, code: str, now: datetime | None = None) -> OtpCode:
    """校验用户最新验证码。

    最新以签发序号为准。判定顺序：不存在/已使用/已过期 -> OtpExpiredError；内容不一致 -> OtpInvalidError。
    过期在这里直接按时间判断，不依赖清理任务是否已执行。
    """
    settings = get_settings()
    user = CredentialStore(db).find_by_email(email)
    if user is None:
        raise EmailNotRegisteredError()

    now = now or _utc_now()
    otp = latest_otp(db, user.id)
    if otp is None or otp.consumed_at is not None or now > otp.expires_at:
        logger.info("otp rejected reason=expired user_id=%s", user.id)
        raise OtpExpiredError()

    if not hmac.compare_digest(otp.code.encode("utf-8"), code.encode("utf-8")):
        logger.info("otp rejected reason=invalid user_id=%s otp_id=%s", user.id, otp.id)
        raise OtpInvalidError()

    if settings.otp_single_use:
        # 条件更新保证并发校验同一验证码时只有一次成功。
        result = db.execute(
            update(OtpCode)
            .where(OtpCode.id == otp.id)
            .where(OtpCode.consumed_at.is_(None))
            .values(consumed_at=now)
        )
        if result.rowcount != 1:
            db.rollback()
            logger.info("otp rejected reason=already_consumed user_id=%s otp_id=%s", user.id, otp.id)
            raise OtpExpiredError()
        db.commit()

    logger.info("otp validated user_id=%s otp_id=%s", user.id, otp.id)
    return otp
