"""
扩展系统模块

在宿主进程内加载并运行第三方扩展：
- ExtensionRegistry: 扩展管理器，负责扩展生命周期
- SandboxEvaluator / CodeValidator: 受限作用域执行与源码校验
- CapabilityAPI: 交给扩展代码的能力 API (kairo)
- CapabilityRegistries: 命令、钩子、过滤器、插槽、菜单注册表

使用示例:
    from kairo_desktop.extensions import ExtensionRegistry, LocalExtensionHost

    registry = ExtensionRegistry(LocalExtensionHost())
    await registry.open_vault("/path/to/vault")

扩展代码示例 (main.py):
    def initialize(kairo):
        kairo.register_command(
            id="hello", name="Hello", execute=lambda: kairo.log.info("hi")
        )

    exports.initialize = initialize
"""

from .api import CapabilityAPI, ExtensionApi, create_capability_api
from .base import Extension, ExtensionState, Plugin
from .errors import (
    EvaluationError,
    ExtensionConflictError,
    ExtensionError,
    ManifestError,
    PersistenceError,
    PolicyBlockedError,
    ValidationError,
)
from .hooks import FilterType, HookType
from .host import ExtensionHost, LocalExtensionHost, get_extensions_path
from .logs import ExtensionLog, LogLevel, LogStore
from .manager import ExtensionRegistry
from .manifest import ExtensionManifest, ManifestLoader
from .registries import (
    CapabilityRegistries,
    ContextMenuContext,
    ContextMenuType,
    MenuCategory,
    SlotType,
)
from .sandbox import SandboxEvaluator, SandboxExecutionResult
from .settings import ExtensionSettings, SettingsStore
from .state import HostStores
from .styles import StyleManager
from .validator import CodeValidator

__all__ = [
    # 管理器
    "ExtensionRegistry",
    # 记录
    "Extension",
    "ExtensionState",
    "Plugin",
    "ExtensionManifest",
    "ManifestLoader",
    # 沙箱
    "CodeValidator",
    "SandboxEvaluator",
    "SandboxExecutionResult",
    # 能力 API
    "CapabilityAPI",
    "ExtensionApi",
    "create_capability_api",
    "CapabilityRegistries",
    "HookType",
    "FilterType",
    "SlotType",
    "ContextMenuType",
    "ContextMenuContext",
    "MenuCategory",
    # 宿主服务
    "ExtensionHost",
    "LocalExtensionHost",
    "get_extensions_path",
    "HostStores",
    "StyleManager",
    "SettingsStore",
    "ExtensionSettings",
    "LogStore",
    "ExtensionLog",
    "LogLevel",
    # 异常
    "ExtensionError",
    "ManifestError",
    "ValidationError",
    "EvaluationError",
    "PolicyBlockedError",
    "PersistenceError",
    "ExtensionConflictError",
]
