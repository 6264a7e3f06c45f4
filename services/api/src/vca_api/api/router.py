"""顶层路由注册。"""

from fastapi import APIRouter

from . import auth, health, otp

api_router = APIRouter()

# 固定注册顺序，便于在线接口文档展示和问题定位。
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(otp.router)
