"""应用异常处理注册。"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from vca_api.core.errors import AuthServiceError
from vca_api.utils.response import DEFAULT_ERROR_MESSAGE, error_payload

logger = logging.getLogger("vca_api")

_HTTP_ERROR_DEFAULTS: dict[int, tuple[str, str, str]] = {
    status.HTTP_400_BAD_REQUEST: ("BAD_REQUEST", "请求参数不合法。", "请检查请求参数后重试。"),
    status.HTTP_401_UNAUTHORIZED: ("UNAUTHORIZED", "身份校验未通过。", "请确认邮箱与密码后重试。"),
    status.HTTP_404_NOT_FOUND: ("NOT_FOUND", "请求资源不存在。", "请确认请求地址与参数是否正确。"),
    status.HTTP_405_METHOD_NOT_ALLOWED: ("METHOD_NOT_ALLOWED", "请求方法不被允许。", "请确认接口文档中的请求方法。"),
    status.HTTP_409_CONFLICT: ("CONFLICT", "请求与当前数据状态冲突。", "请刷新后重试。"),
    status.HTTP_503_SERVICE_UNAVAILABLE: ("SERVICE_UNAVAILABLE", "服务暂不可用。", "请稍后重试。"),
    status.HTTP_422_UNPROCESSABLE_CONTENT: (
        "VALIDATION_ERROR",
        "请求参数校验失败。",
        "请根据错误字段提示修正请求参数后重试。",
    ),
}
_FALLBACK_HTTP_ERROR = ("HTTP_ERROR", "请求处理失败。", "请稍后重试，若持续失败请联系管理员。")

_AUTH_ERROR_SUGGESTIONS: dict[str, str] = {
    "USER_NOT_FOUND": "请确认邮箱与密码后重试。",
    "INVALID_CREDENTIALS": "请确认邮箱与密码后重试。",
    "USER_ALREADY_EXISTS": "请直接登录，或使用其他邮箱注册。",
    "USER_CREATION_FAILED": "请根据错误提示调整注册信息后重试。",
    "EMAIL_NOT_REGISTERED": "请确认邮箱是否已注册。",
    "OTP_EXPIRED": "请重新获取验证码。",
    "OTP_INVALID": "请核对邮件中的最新验证码。",
}


def _http_defaults(status_code: int) -> tuple[str, str, str]:
    return _HTTP_ERROR_DEFAULTS.get(status_code, _FALLBACK_HTTP_ERROR)


def _parse_http_detail(detail: object, status_code: int) -> tuple[str, str, dict[str, object]]:
    code, message, suggestion = _http_defaults(status_code)
    details: dict[str, object] = {
        "status_code": status_code,
        "reason": code.lower(),
        "suggestion": suggestion,
    }

    if isinstance(detail, dict):
        code = str(detail.get("code") or code)
        message = str(detail.get("message") or detail.get("detail") or message)
        raw_details = detail.get("details")
        if isinstance(raw_details, dict):
            details.update(raw_details)
        elif raw_details is not None:
            details["details"] = raw_details
        return code, message, details

    if isinstance(detail, str):
        # 已知状态码使用统一中文文案，替换 Starlette 默认英文描述。
        if status_code not in _HTTP_ERROR_DEFAULTS and detail.strip():
            message = detail
        return code, message, details

    if detail is not None:
        details["detail"] = detail
    return code, message, details


async def auth_service_exception_handler(request: Request, exc: AuthServiceError):
    """将认证领域异常转换为统一错误结构。"""
    details: dict[str, object] = {
        "status_code": exc.status_code,
        "reason": exc.code.lower(),
        "suggestion": _AUTH_ERROR_SUGGESTIONS.get(exc.code, _http_defaults(exc.status_code)[2]),
    }
    details.update(exc.details)
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(error_payload(request, code=exc.code, message=exc.message, details=details)),
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """将协议异常统一包装为标准错误结构。

    注册在 Starlette 基类上，路由未命中等框架内部抛出的 404/405 同样走统一结构。
    """
    code, message, details = _parse_http_detail(exc.detail, exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(error_payload(request, code=code, message=message, details=details)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """统一处理请求参数校验错误。"""
    normalized_errors = [
        {
            "field": ".".join(str(item) for item in err.get("loc", []) if item not in {"body", "query"}),
            "message": err.get("msg"),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    code, message, suggestion = _http_defaults(status.HTTP_422_UNPROCESSABLE_CONTENT)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=error_payload(
            request,
            code=code,
            message=message,
            details={
                "status_code": status.HTTP_422_UNPROCESSABLE_CONTENT,
                "reason": "validation_error",
                "suggestion": suggestion,
                "errors": normalized_errors,
            },
        ),
    )


async def unexpected_exception_handler(request: Request, exc: Exception):
    """处理未捕获异常，避免内部细节泄露。"""
    logger.exception("unhandled error method=%s path=%s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_payload(
            request,
            code="INTERNAL_ERROR",
            message=DEFAULT_ERROR_MESSAGE,
            details={
                "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
                "reason": "unexpected_exception",
                "suggestion": "请稍后重试，若持续失败请联系管理员并提供 request_id。",
            },
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """集中注册异常处理器。"""
    app.exception_handler(AuthServiceError)(auth_service_exception_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(unexpected_exception_handler)
