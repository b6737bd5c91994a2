"""
扩展运行时异常定义

所有生命周期失败都在 ExtensionRegistry 边界被捕获，
通过日志通道和 Extension.error 字段上报，不会传播到宿主应用。
"""

from typing import Optional


class ExtensionError(Exception):
    """扩展运行时异常基类"""

    def __init__(self, message: str, extension_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.extension_id = extension_id

    def __str__(self) -> str:
        return self.message


class ManifestError(ExtensionError):
    """manifest 缺失、格式错误或缺少必填字段"""

    def __init__(self, message: str, folder: Optional[str] = None):
        super().__init__(message)
        self.folder = folder


class ValidationError(ExtensionError):
    """源码超出大小限制或命中拒绝列表"""

    def __init__(
        self,
        message: str,
        extension_id: Optional[str] = None,
        category: Optional[str] = None,
        line: Optional[int] = None,
    ):
        super().__init__(message, extension_id)
        self.category = category
        self.line = line


class EvaluationError(ExtensionError):
    """顶层代码执行或 initialize 抛出异常（含超时）"""


class PolicyBlockedError(ExtensionError):
    """宿主策略禁止动态构造可执行代码（预期的终止状态，不是错误）"""


class PersistenceError(ExtensionError):
    """扩展设置读写失败"""


class ExtensionConflictError(ExtensionError):
    """两个不同目录声明了同一个扩展 id"""


__all__ = [
    "ExtensionError",
    "ManifestError",
    "ValidationError",
    "EvaluationError",
    "PolicyBlockedError",
    "PersistenceError",
    "ExtensionConflictError",
]
