"""
扩展设置存储

每个仓库一份 JSON 文档: {"enabled": {"<extension_id>": true/false}}

- 每次打开仓库时加载一次
- 文件缺失或格式错误不致命：记录警告，回退到空表（默认启用）
- 每次启用/禁用/删除立即写回（无批量、无防抖）
- 写入失败只记录日志，内存中的状态不回滚
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .errors import PersistenceError
from .host import ExtensionHost
from .logs import SYSTEM_EXTENSION_ID, LogStore


logger = logging.getLogger(__name__)


@dataclass
class ExtensionSettings:
    """扩展设置"""

    enabled: Dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {"enabled": dict(self.enabled)}

    @classmethod
    def from_dict(cls, data: Any) -> "ExtensionSettings":
        """
        从字典创建

        未知键和非布尔值被忽略。

        Raises:
            PersistenceError: 文档结构不是预期的对象
        """
        if not isinstance(data, dict):
            raise PersistenceError("扩展设置必须是 JSON 对象")

        enabled = data.get("enabled", {})
        if not isinstance(enabled, dict):
            raise PersistenceError("扩展设置的 enabled 字段必须是对象")

        return cls(
            enabled={
                str(k): v for k, v in enabled.items() if isinstance(v, bool)
            }
        )


class SettingsStore:
    """
    扩展设置存储

    启用/禁用状态跨重启的唯一事实来源，每次执行扩展代码前都会查询。
    """

    def __init__(self, host: ExtensionHost, logs: LogStore):
        self._host = host
        self._logs = logs
        self._vault: Optional[str] = None
        self._settings = ExtensionSettings()

    @property
    def vault(self) -> Optional[str]:
        """当前仓库路径"""
        return self._vault

    @property
    def settings(self) -> ExtensionSettings:
        """当前设置（副本）"""
        return ExtensionSettings(enabled=dict(self._settings.enabled))

    async def load(self, vault: str) -> ExtensionSettings:
        """
        加载仓库的扩展设置

        读取失败时回退到空表，不会抛出异常。

        Args:
            vault: 仓库路径

        Returns:
            ExtensionSettings: 加载后的设置
        """
        self._vault = vault
        self._settings = ExtensionSettings()

        try:
            text = await self._host.read_extension_settings(vault)
            if text is None:
                logger.debug(f"扩展设置不存在，使用默认值: {vault}")
                return self.settings
            self._settings = ExtensionSettings.from_dict(json.loads(text))
        except (PersistenceError, ValueError, OSError) as e:
            self._logs.warn(
                SYSTEM_EXTENSION_ID, "加载扩展设置失败，使用默认值", str(e)
            )
            self._settings = ExtensionSettings()

        return self.settings

    def is_enabled(self, extension_id: str) -> bool:
        """扩展是否启用（未记录的扩展默认启用）"""
        return self._settings.enabled.get(extension_id, True)

    async def set_enabled(self, extension_id: str, enabled: bool) -> bool:
        """
        设置扩展启用状态并立即写回

        Returns:
            bool: 是否写入成功（失败时内存状态保持修改后的值）
        """
        self._settings.enabled[extension_id] = enabled
        return await self.save()

    async def remove(self, extension_id: str) -> bool:
        """删除扩展的设置键并立即写回"""
        self._settings.enabled.pop(extension_id, None)
        return await self.save()

    async def save(self) -> bool:
        """
        写回当前设置

        Returns:
            bool: 是否写入成功；没有打开的仓库时只保存在内存中
        """
        if self._vault is None:
            logger.debug("没有打开的仓库，扩展设置只保存在内存中")
            return True

        try:
            text = json.dumps(self._settings.to_dict(), indent=2, ensure_ascii=False)
            await self._host.save_extension_settings(self._vault, text)
            return True
        except Exception as e:
            self._logs.error(SYSTEM_EXTENSION_ID, "保存扩展设置失败", str(e))
            return False
