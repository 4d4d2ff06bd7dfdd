"""错误分类：校验错误、存储错误、通知调度错误。"""
from typing import Optional


class PetCareError(Exception):
    """所有业务错误的基类。"""


class ValidationError(PetCareError):
    """缺少用户/会话或 ID 非法；直接抛给调用方，不自动重试。"""


class RepositoryError(PetCareError):
    """读取或写入存储失败（网络、文件等）。"""


class NotFoundError(RepositoryError):
    """记录不存在。"""


class PermissionDeniedError(RepositoryError):
    """记录不属于当前用户。"""


class SchedulerError(PetCareError):
    """系统无法安排或取消某个闹钟。"""


def require_id(value: Optional[str], field: str = "id") -> str:
    """校验 ID：非空、不含空白与斜杠。返回去掉首尾空白后的值。"""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    value = str(value).strip()
    if "/" in value or any(ch.isspace() for ch in value):
        raise ValidationError(f"malformed {field}: {value!r}")
    return value
