"""
扩展运行时记录定义

提供扩展系统的核心数据结构：
- ExtensionState: 扩展生命周期状态枚举
- Extension: 扩展运行时记录（由 ExtensionRegistry 独占）
- Plugin: 加载成功后注册到插件表的记录
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .manifest import ExtensionManifest


class ExtensionState(Enum):
    """扩展生命周期状态"""

    UNREGISTERED = "unregistered"
    """未注册"""

    REGISTERED_DISABLED = "registered_disabled"
    """已注册但被禁用（只有元数据，代码未执行或注册项已隐藏）"""

    LOADING = "loading"
    """加载中"""

    LOADED = "loaded"
    """已加载"""

    ERROR = "error"
    """错误状态"""


@dataclass
class Extension:
    """
    扩展运行时记录

    loaded 只有在执行和 initialize 都成功后才为 True；
    任何失败都会设置 error 并强制 loaded=False，但记录会被保留，
    以便失败对用户可见。只有 remove 才会销毁记录。

    Attributes:
        manifest: 扩展 manifest
        install_path: 扩展目录完整路径
        loaded: 是否已成功加载
        enabled: 是否启用
        error: 最近一次失败信息
        policy_blocked: 是否被宿主策略阻止执行
        loading: 是否正在加载
    """

    manifest: ExtensionManifest
    install_path: str
    loaded: bool = False
    enabled: bool = True
    error: Optional[str] = None
    policy_blocked: bool = False
    loading: bool = field(default=False, repr=False)

    @property
    def id(self) -> str:
        """扩展 id"""
        return self.manifest.id

    @property
    def state(self) -> ExtensionState:
        """根据记录字段推导的生命周期状态"""
        if self.loading:
            return ExtensionState.LOADING
        if self.error is not None:
            return ExtensionState.ERROR
        if not self.enabled:
            return ExtensionState.REGISTERED_DISABLED
        if self.loaded:
            return ExtensionState.LOADED
        # 已启用但未加载：被策略阻止，或已卸载
        return ExtensionState.REGISTERED_DISABLED

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "id": self.id,
            "manifest": self.manifest.to_dict(),
            "install_path": self.install_path,
            "loaded": self.loaded,
            "enabled": self.enabled,
            "error": self.error,
            "policy_blocked": self.policy_blocked,
            "state": self.state.value,
        }

    def __str__(self) -> str:
        return f"{self.manifest.name} v{self.manifest.version}"


@dataclass
class Plugin:
    """
    插件记录

    扩展加载成功后注册，卸载时执行 cleanup。

    Attributes:
        id: 插件 id（与扩展 id 相同）
        name: 显示名称
        version: 版本号
        description: 描述
        author: 作者
        enabled: 是否启用
        cleanup: 卸载时调用的清理函数
    """

    id: str
    name: str
    version: str
    description: Optional[str] = None
    author: Optional[str] = None
    enabled: bool = True
    cleanup: Optional[Callable[[], Any]] = field(default=None, repr=False)

    @classmethod
    def from_manifest(
        cls, manifest: ExtensionManifest, cleanup: Optional[Callable[[], Any]] = None
    ) -> "Plugin":
        """从 manifest 创建"""
        return cls(
            id=manifest.id,
            name=manifest.name,
            version=manifest.version,
            description=manifest.description,
            author=manifest.author,
            cleanup=cleanup,
        )
