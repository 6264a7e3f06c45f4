"""健康检查接口。"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vca_api.core.errors import ConfigurationError
from vca_api.core.security import require_signing_key
from vca_api.db.session import get_db
from vca_api.schemas.common import ErrorResponse, HealthStatusData, SuccessResponse
from vca_api.utils.response import success

logger = logging.getLogger("vca_api.health")

router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "/live",
    summary="存活探针",
    description="用于容器编排系统检测服务进程是否存活。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
    responses={500: {"model": ErrorResponse}},
)
def live(request: Request):
    """仅表示进程存活，不校验外部依赖。"""
    return success(request, {"status": "ok"})


@router.get(
    "/ready",
    summary="就绪探针",
    description="检查数据库连通性与令牌签名密钥，两者可用才能提供登录与验证码能力。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
    responses={503: {"model": ErrorResponse}},
)
def ready(request: Request, db: Session = Depends(get_db)):
    checks: dict[str, str] = {}
    try:
        db.execute(text("select 1"))
        checks["database"] = "ok"
    except SQLAlchemyError:
        logger.warning("readiness check failed component=database", exc_info=True)
        checks["database"] = "unavailable"
    try:
        require_signing_key()
        checks["signing_key"] = "ok"
    except ConfigurationError:
        checks["signing_key"] = "missing"

    if any(value != "ok" for value in checks.values()):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "NOT_READY", "message": "服务尚未就绪。", "details": {"checks": checks}},
        )
    return success(request, {"status": "ready", "checks": checks})
