"""路由模块导出集合。"""

from . import auth, health, otp

__all__ = ["auth", "health", "otp"]
