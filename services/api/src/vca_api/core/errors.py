"""认证领域异常定义。

服务层只抛出这里的异常，由 `vca_api.exceptions` 统一转换为错误响应。
"""

from typing import Any

from fastapi import status

# 登录失败对外统一文案，避免通过提示语枚举账号。
LOGIN_FAILED_MESSAGE = "账号或密码错误。"


class ConfigurationError(RuntimeError):
    """运行配置缺失或非法，服务启动阶段即应终止。"""


class AuthServiceError(Exception):
    """认证领域可恢复错误基类。"""

    code: str = "AUTH_ERROR"
    status_code: int = status.HTTP_400_BAD_REQUEST
    message: str = "认证请求处理失败。"

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.message
        self.details = details or {}
        super().__init__(self.message)


class UserNotFoundError(AuthServiceError):
    code = "USER_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    message = LOGIN_FAILED_MESSAGE


class InvalidCredentialsError(AuthServiceError):
    code = "INVALID_CREDENTIALS"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = LOGIN_FAILED_MESSAGE


class UserAlreadyExistsError(AuthServiceError):
    code = "USER_ALREADY_EXISTS"
    status_code = status.HTTP_409_CONFLICT
    message = "该邮箱已注册。"


class UserCreationError(AuthServiceError):
    code = "USER_CREATION_FAILED"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "创建用户失败。"


class EmailNotRegisteredError(AuthServiceError):
    code = "EMAIL_NOT_REGISTERED"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "邮箱未注册。"


class OtpExpiredError(AuthServiceError):
    """验证码不存在、已过期或已被使用。"""

    code = "OTP_EXPIRED"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "验证码已过期，请重新获取。"


class OtpInvalidError(AuthServiceError):
    code = "OTP_INVALID"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "验证码不正确。"
