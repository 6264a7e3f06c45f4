"""验证码邮件通知。"""

from __future__ import annotations

import logging
import smtplib
from collections.abc import Iterator
from contextlib import contextmanager
from email.message import EmailMessage

from vca_api.core.config import Settings, get_settings

logger = logging.getLogger("vca_api.notification")

OTP_MAIL_SUBJECT = "Vet Community 验证码"


@contextmanager
def _smtp_connection(settings: Settings) -> Iterator[smtplib.SMTP]:
    """按配置建立 SMTP 连接，退出时关闭。"""
    host = settings.smtp_host
    port = settings.smtp_port
    if settings.smtp_use_ssl:
        server: smtplib.SMTP = smtplib.SMTP_SSL(host, port, timeout=settings.smtp_timeout_seconds)
    else:
        server = smtplib.SMTP(host, port, timeout=settings.smtp_timeout_seconds)
    try:
        if settings.smtp_use_tls and not settings.smtp_use_ssl:
            server.starttls()
        if settings.smtp_user and settings.smtp_password:
            server.login(settings.smtp_user, settings.smtp_password)
        yield server
    finally:
        try:
            server.quit()
        except smtplib.SMTPException:
            logger.debug("SMTP quit failed", exc_info=True)


def build_otp_message(code: str, destination_email: str, settings: Settings) -> EmailMessage:
    """构造验证码邮件。"""
    minutes = max(1, settings.otp_ttl_seconds // 60)
    msg = EmailMessage()
    msg["Subject"] = OTP_MAIL_SUBJECT
    msg["From"] = settings.mail_from
    msg["To"] = destination_email
    msg.set_content(
        f"您的验证码是 {code}，{minutes} 分钟内有效。\n"
        "如果这不是您本人的操作，请忽略此邮件。\n"
    )
    return msg


def send_otp_mail(code: str, destination_email: str) -> None:
    """发送验证码邮件，关闭发送时仅记录日志。"""
    settings = get_settings()
    msg = build_otp_message(code, destination_email, settings)
    if settings.mail_suppress_send:
        # 日志中不输出验证码本身。
        logger.info("mail suppressed to=%s subject=%s", destination_email, msg["Subject"])
        return

    with _smtp_connection(settings) as server:
        server.send_message(msg)
    logger.info("otp mail sent to=%s", destination_email)


def deliver_otp(code: str, destination_email: str) -> None:
    """后台任务入口：投递失败只记录日志，已落库的验证码保持有效。"""
    try:
        send_otp_mail(code, destination_email)
    except Exception:
        logger.exception("otp mail delivery failed to=%s", destination_email)
