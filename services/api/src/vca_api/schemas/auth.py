"""登录、注册与验证码请求结构。"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from vca_api.schemas.common import BaseSchema

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class AuthRegisterRequest(BaseModel):
    """本地账号注册请求。口令强度由凭据存储校验。"""

    full_name: str = Field(min_length=1, max_length=128, description="用户全名。", examples=["Ana Pérez"])
    email: str = Field(
        min_length=5,
        max_length=256,
        pattern=EMAIL_PATTERN,
        description="登录邮箱，同时作为用户名。",
        examples=["vet@example.com"],
    )
    password: str = Field(min_length=1, max_length=128, description="登录密码。", examples=["Pass#1234"])
    is_veterinary: bool = Field(default=False, description="是否注册为兽医。")

    @field_validator("full_name", mode="before")
    @classmethod
    def strip_full_name(cls, value: object) -> object:
        """先去除首尾空白再校验长度，纯空白姓名视为缺失。"""
        return value.strip() if isinstance(value, str) else value


class AuthLoginRequest(BaseModel):
    """本地账号登录请求。"""

    email: str = Field(
        min_length=1,
        max_length=256,
        description="用户名（注册邮箱）。",
        examples=["vet@example.com"],
    )
    password: str = Field(min_length=1, max_length=128, description="登录密码。", examples=["Pass#1234"])


class OtpValidateRequest(BaseModel):
    """验证码校验请求。"""

    email: str = Field(min_length=5, max_length=256, pattern=EMAIL_PATTERN, description="注册邮箱。")
    otp: str = Field(min_length=1, max_length=32, description="邮件中收到的验证码。", examples=["482913"])


class AuthUserProfile(BaseSchema):
    """登录用户资料。"""

    id: UUID = Field(description="用户 ID。")
    username: str = Field(description="用户名。")
    email: str = Field(description="邮箱。")
    full_name: str = Field(description="全名。")
    is_veterinary: bool = Field(description="是否为兽医。")


class AuthLoginData(BaseSchema):
    """登录结果结构。"""

    access_token: str = Field(description="访问令牌。")
    token_type: str = Field(default="bearer", description="令牌类型。")
    expires_at: datetime = Field(description="令牌过期时间（UTC）。")
    expires_in: int = Field(description="距过期剩余秒数。")
    user_id: UUID = Field(description="用户 ID。")
    roles: list[str] = Field(description="令牌中写入的角色列表。")
    user: AuthUserProfile = Field(description="用户资料。")


class AuthRegisterData(BaseSchema):
    """注册结果结构。"""

    user_id: UUID = Field(description="用户 ID。")
    email: str = Field(description="登录邮箱。")
    full_name: str = Field(description="全名。")
    is_veterinary: bool = Field(description="是否为兽医。")
    roles: list[str] = Field(description="已分配角色。")


class OtpRequestData(BaseSchema):
    """验证码签发结果，不包含验证码本身。"""

    accepted: bool = Field(description="是否已受理。")
    expires_in: int = Field(description="验证码有效期（秒）。")


class OtpValidateData(BaseSchema):
    """验证码校验结果。"""

    valid: bool = Field(description="校验是否通过。")
