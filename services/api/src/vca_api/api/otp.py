"""一次性验证码接口。"""

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.orm import Session

from vca_api.core.config import get_settings
from vca_api.db.session import get_db
from vca_api.schemas.auth import EMAIL_PATTERN, OtpRequestData, OtpValidateData, OtpValidateRequest
from vca_api.schemas.common import ErrorResponse, SuccessResponse
from vca_api.services.notification import deliver_otp
from vca_api.services.otp import request_otp, validate_otp
from vca_api.utils.response import success

router = APIRouter(prefix="/auth/otp", tags=["otp"])


@router.get(
    "",
    summary="获取验证码",
    description="为已注册邮箱生成 6 位验证码并通过邮件发送，响应中不返回验证码。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[OtpRequestData],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def issue_otp(
    request: Request,
    background_tasks: BackgroundTasks,
    email: str = Query(min_length=5, max_length=256, pattern=EMAIL_PATTERN, description="注册邮箱。"),
    db: Session = Depends(get_db),
):
    """生成验证码，提交后再异步投递邮件。"""
    otp = request_otp(db, email=email)
    # 邮件投递在响应返回后执行，失败不影响已生成的验证码。
    background_tasks.add_task(deliver_otp, otp.code, email)
    return success(
        request,
        {"accepted": True, "expires_in": get_settings().otp_ttl_seconds},
        meta={"message": "验证码已发送。"},
    )


@router.post(
    "/validate",
    summary="校验验证码",
    description="仅用户最新生成且未过期的验证码可通过校验。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[OtpValidateData],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def check_otp(
    payload: OtpValidateRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """校验验证码。"""
    validate_otp(db, email=payload.email, code=payload.otp)
    return success(request, {"valid": True}, meta={"message": "验证码校验通过。"})
