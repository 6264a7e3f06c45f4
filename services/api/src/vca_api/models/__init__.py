"""ORM 模型导出集合。"""

from vca_api.models.auth import OtpCleanupJob, OtpCode, UserCredential
from vca_api.models.user import User, UserRoleAssignment

__all__ = [
    "OtpCleanupJob",
    "OtpCode",
    "User",
    "UserCredential",
    "UserRoleAssignment",
]
