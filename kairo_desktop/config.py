"""
运行时配置模块

管理扩展运行时的所有配置项：沙箱限制、调试控制台、日志输出。
"""

import json
import logging
import os
import threading
from dataclasses import dataclass, field, asdict
from typing import Optional
from pathlib import Path


logger = logging.getLogger(__name__)


@dataclass
class SandboxConfig:
    """沙箱配置"""
    # 扩展源码大小上限（UTF-8 字节）
    max_source_bytes: int = 500 * 1024
    # 是否允许执行扩展代码（环境变量 KAIRO_DISABLE_DYNAMIC_CODE 可强制关闭）
    allow_dynamic_code: bool = True
    # initialize 超时（秒），None 表示不限制
    initialize_timeout: Optional[float] = 10.0
    # 能力 API 在扩展代码中的名字
    api_name: str = "kairo"


@dataclass
class ConsoleConfig:
    """调试控制台配置"""
    max_logs: int = 500
    open_on_start: bool = False


@dataclass
class LoggingConfig:
    """日志输出配置"""
    level: str = "INFO"
    use_colors: bool = True
    # 日志文件路径，空字符串表示不写文件
    log_file: str = ""


@dataclass
class RuntimeConfig:
    """运行时完整配置"""
    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    console: ConsoleConfig = field(default_factory=ConsoleConfig)
    log: LoggingConfig = field(default_factory=LoggingConfig)
    # 最近打开的仓库
    last_vault: Optional[str] = None

    # 线程锁
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @classmethod
    def get_config_dir(cls) -> Path:
        """获取配置文件目录"""
        # Windows: %APPDATA%/KairoDesktop
        # Linux/Mac: ~/.config/kairo-desktop
        if os.name == 'nt':
            base = os.environ.get('APPDATA', os.path.expanduser('~'))
            return Path(base) / 'KairoDesktop'
        return Path.home() / '.config' / 'kairo-desktop'

    @classmethod
    def get_config_path(cls) -> Path:
        """获取配置文件路径"""
        return cls.get_config_dir() / 'config.json'

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> 'RuntimeConfig':
        """
        从文件加载配置

        文件不存在或格式错误时返回默认配置，未知键被忽略。
        """
        path = Path(config_path) if config_path else cls.get_config_path()
        logger.debug(f"尝试加载配置文件: {path}")

        if not path.exists():
            logger.debug("配置文件不存在，使用默认配置")
            return cls()

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)

            if not isinstance(data, dict):
                raise ValueError("配置文件顶层必须是对象")

            config = cls()

            # 加载各分区配置
            for section in ('sandbox', 'console', 'log'):
                values = data.get(section)
                if not isinstance(values, dict):
                    continue
                target = getattr(config, section)
                for key, value in values.items():
                    if hasattr(target, key):
                        setattr(target, key, value)

            config.last_vault = data.get('last_vault')

            logger.debug(
                f"配置加载完成: max_source_bytes={config.sandbox.max_source_bytes}, "
                f"initialize_timeout={config.sandbox.initialize_timeout}"
            )
            return config

        except (OSError, ValueError) as e:
            logger.warning(f"加载配置失败，使用默认配置: {e}")
            return cls()

    def save(self, config_path: Optional[str] = None) -> bool:
        """保存配置到文件"""
        with self._lock:
            path = Path(config_path) if config_path else self.get_config_path()

            try:
                path.parent.mkdir(parents=True, exist_ok=True)

                data = {
                    'sandbox': asdict(self.sandbox),
                    'console': asdict(self.console),
                    'log': asdict(self.log),
                    'last_vault': self.last_vault,
                }

                with open(path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)

                logger.debug(f"配置已保存到: {path}")
                return True

            except OSError as e:
                logger.error(f"保存配置失败: {e}")
                return False


def load_config(config_path: Optional[str] = None) -> RuntimeConfig:
    """加载配置"""
    return RuntimeConfig.load(config_path)


def save_config(config: RuntimeConfig, config_path: Optional[str] = None) -> bool:
    """保存配置"""
    return config.save(config_path)
