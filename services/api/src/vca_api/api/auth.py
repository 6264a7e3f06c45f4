"""账号登录与注册接口。"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from vca_api.db.session import get_db
from vca_api.schemas.auth import AuthLoginData, AuthLoginRequest, AuthRegisterData, AuthRegisterRequest
from vca_api.schemas.common import ErrorResponse, SuccessResponse
from vca_api.services.accounts import authenticate, register_account
from vca_api.utils.response import success

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    summary="注册本地账号",
    description="创建账号与口令凭据，并按是否为兽医分配 Vet 或 Normal 角色。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthRegisterData],
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def register(
    payload: AuthRegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """注册本地账号。"""
    user, roles = register_account(
        db,
        full_name=payload.full_name,
        email=payload.email,
        password=payload.password,
        is_veterinary=payload.is_veterinary,
    )
    return success(
        request,
        {
            "user_id": user.id,
            "email": user.email,
            "full_name": user.full_name,
            "is_veterinary": user.is_veterinary,
            "roles": roles,
        },
        meta={"message": "账号创建成功。"},
    )


@router.post(
    "/login",
    summary="本地账号登录",
    description="使用邮箱密码登录，返回携带角色声明的 Bearer 访问令牌。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthLoginData],
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def login(
    payload: AuthLoginRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """本地账号登录并签发访问令牌。"""
    result = authenticate(db, username=payload.email, password=payload.password)
    expires_at = result.token.expires_at
    user = result.user

    return success(
        request,
        {
            "access_token": result.token.token,
            "token_type": "bearer",
            "expires_at": expires_at,
            "expires_in": max(0, int((expires_at - datetime.now(timezone.utc)).total_seconds())),
            "user_id": user.id,
            "roles": result.roles,
            "user": {
                "id": user.id,
                "username": user.username,
                "email": user.email,
                "full_name": user.full_name,
                "is_veterinary": user.is_veterinary,
            },
        },
    )
