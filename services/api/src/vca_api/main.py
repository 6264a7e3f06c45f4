"""FastAPI 应用入口点。"""

import logging

from fastapi import FastAPI

from vca_api.core.config import Settings, get_settings
from vca_api.core.security import require_signing_key
from vca_api.exceptions import register_exception_handlers
from vca_api.middlewares import register_middlewares
from vca_api.api.router import api_router


def _setup_logging(level: str) -> None:
    """初始化日志输出格式与级别。"""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """创建并配置 FastAPI 应用实例。

    签名密钥缺失时抛出 ConfigurationError，服务直接启动失败而不是逐请求报错。
    """
    settings = settings or get_settings()
    _setup_logging(settings.log_level)
    require_signing_key(settings)

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        debug=settings.app_debug,
        description=(
            "Vet Community 认证与验证码服务。\n\n"
            "所有业务接口统一返回：`{request_id, data, meta}`，失败返回 `{request_id, error}`。\n"
            "登录返回携带角色声明的访问令牌；验证码通过邮件下发，接口不返回验证码本身。"
        ),
        openapi_tags=[
            {"name": "health", "description": "服务存活与就绪探针。"},
            {"name": "auth", "description": "账号注册与登录。"},
            {"name": "otp", "description": "一次性验证码获取与校验。"},
        ],
    )

    register_middlewares(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    logging.getLogger("vca_api").info("app created env=%s prefix=%s", settings.app_env, settings.api_prefix)
    return app


app = create_app()
