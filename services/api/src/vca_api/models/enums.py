"""领域枚举定义。"""

from enum import StrEnum


class UserStatus(StrEnum):
    """本地用户状态。"""

    ACTIVE = "active"  # 正常可登录。
    DISABLED = "disabled"  # 已禁用，登录时视为不存在。


class UserRole(StrEnum):
    """用户角色，写入访问令牌的 roles 声明。"""

    VET = "Vet"  # 认证兽医。
    NORMAL = "Normal"  # 普通社区用户。


class CredentialStatus(StrEnum):
    """本地凭据状态。"""

    ACTIVE = "active"
    DISABLED = "disabled"


class CleanupJobStatus(StrEnum):
    """验证码清理任务状态。"""

    QUEUED = "queued"  # 已创建，等待到期执行。
    PROCESSING = "processing"  # 已被工作进程抢占。
    RETRYING = "retrying"  # 失败后等待重试。
    COMPLETED = "completed"  # 验证码记录已删除（或已不存在）。
    DEAD_LETTER = "dead_letter"  # 超过重试上限，等待人工排查。
