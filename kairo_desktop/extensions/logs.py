"""
扩展日志存储

固定容量的环形缓冲区，保存分级诊断日志，供调试控制台展示。
每条日志同时镜像到宿主的 logging 通道。
"""

import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Union


DEFAULT_MAX_LOGS = 500
SYSTEM_EXTENSION_ID = "system"


class LogLevel(str, Enum):
    """日志级别"""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    DEBUG = "debug"


# 扩展日志级别 -> logging 级别
_LOGGING_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.DEBUG: logging.DEBUG,
}


@dataclass(frozen=True)
class ExtensionLog:
    """
    扩展日志条目（插入后不可修改）

    Attributes:
        id: 唯一 id
        timestamp: 毫秒时间戳
        level: 日志级别
        extension_id: 来源扩展 id（系统日志为 "system"）
        message: 日志消息
        details: 附加详情
    """

    id: str
    timestamp: int
    level: LogLevel
    extension_id: str
    message: str
    details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        data = asdict(self)
        data["level"] = self.level.value
        return data


class LogStore:
    """
    日志存储

    只追加的环形缓冲区，最新的条目在最前面，
    超出 max_logs 后最旧的条目被静默淘汰。
    控制台可见性是界面状态，不属于日志数据。
    """

    def __init__(self, max_logs: int = DEFAULT_MAX_LOGS, console_open: bool = False):
        if max_logs <= 0:
            raise ValueError("max_logs 必须大于 0")
        self._max_logs = max_logs
        self._entries: Deque[ExtensionLog] = deque(maxlen=max_logs)
        self._console_open = console_open

    @property
    def max_logs(self) -> int:
        """容量上限"""
        return self._max_logs

    @property
    def entries(self) -> List[ExtensionLog]:
        """所有条目，最新的在前"""
        return list(self._entries)

    @property
    def console_open(self) -> bool:
        """调试控制台是否打开"""
        return self._console_open

    def log(
        self,
        level: Union[LogLevel, str],
        extension_id: str,
        message: str,
        details: Optional[str] = None,
    ) -> ExtensionLog:
        """
        追加一条日志

        Args:
            level: 日志级别
            extension_id: 来源扩展 id
            message: 日志消息
            details: 附加详情

        Returns:
            ExtensionLog: 新插入的条目
        """
        level = LogLevel(level)
        timestamp = int(time.time() * 1000)
        entry = ExtensionLog(
            id=f"{timestamp}-{uuid.uuid4().hex[:9]}",
            timestamp=timestamp,
            level=level,
            extension_id=extension_id,
            message=message,
            details=details,
        )
        self._entries.appendleft(entry)
        self._mirror(entry)
        return entry

    def info(self, extension_id: str, message: str, details: Optional[str] = None) -> ExtensionLog:
        return self.log(LogLevel.INFO, extension_id, message, details)

    def warn(self, extension_id: str, message: str, details: Optional[str] = None) -> ExtensionLog:
        return self.log(LogLevel.WARN, extension_id, message, details)

    def error(self, extension_id: str, message: str, details: Optional[str] = None) -> ExtensionLog:
        return self.log(LogLevel.ERROR, extension_id, message, details)

    def debug(self, extension_id: str, message: str, details: Optional[str] = None) -> ExtensionLog:
        return self.log(LogLevel.DEBUG, extension_id, message, details)

    def clear(self) -> None:
        """清空日志"""
        self._entries.clear()

    def toggle_console(self) -> bool:
        """切换调试控制台可见性，返回新状态"""
        self._console_open = not self._console_open
        return self._console_open

    def set_console_open(self, open_: bool) -> None:
        """设置调试控制台可见性"""
        self._console_open = open_

    def filter(
        self,
        level: Optional[Union[LogLevel, str]] = None,
        extension_id: Optional[str] = None,
    ) -> List[ExtensionLog]:
        """按级别和/或扩展 id 过滤"""
        wanted = LogLevel(level) if level is not None else None
        return [
            entry
            for entry in self._entries
            if (wanted is None or entry.level == wanted)
            and (extension_id is None or entry.extension_id == extension_id)
        ]

    def count(self, level: Union[LogLevel, str]) -> int:
        """统计某个级别的条目数"""
        return len(self.filter(level=level))

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def _mirror(entry: ExtensionLog) -> None:
        """镜像到宿主 logging 通道"""
        channel = logging.getLogger(f"kairo_desktop.extensions.{entry.extension_id}")
        text = f"[Extension:{entry.extension_id}] {entry.message}"
        if entry.details:
            text = f"{text} {entry.details}"
        channel.log(_LOGGING_LEVELS[entry.level], text)
