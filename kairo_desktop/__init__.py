"""
Kairo 桌面端扩展运行时

在宿主进程内发现、校验并运行第三方扩展，
向扩展提供命令、钩子、过滤器、界面插槽、菜单和样式注入等能力。

主要组件:
- ExtensionRegistry: 扩展生命周期管理
- RuntimeConfig: 运行时配置管理

使用示例:
    from kairo_desktop import ExtensionRegistry, RuntimeConfig

    registry = ExtensionRegistry.from_config(RuntimeConfig.load())
    await registry.open_vault("/path/to/vault")
"""

__version__ = "0.3.0"
__author__ = "Kairo Team"

from .config import RuntimeConfig, SandboxConfig, ConsoleConfig, LoggingConfig
from .extensions import ExtensionRegistry, LocalExtensionHost

__all__ = [
    "__version__",
    "__author__",
    "RuntimeConfig",
    "SandboxConfig",
    "ConsoleConfig",
    "LoggingConfig",
    "ExtensionRegistry",
    "LocalExtensionHost",
]
