"""
统一日志系统

宿主诊断通道，扩展日志存储中的每条日志也会镜像到这里。
- DEBUG: 灰色
- INFO: 蓝色
- WARNING: 黄色
- ERROR: 红色
- CRITICAL: 红色加粗

日志格式: [时间] [级别] [模块名:行号] 消息内容
"""

import logging
import os
import sys
from typing import Optional, Union
from logging.handlers import RotatingFileHandler


DEFAULT_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s:%(lineno)d] %(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"


class ColorCodes:
    """ANSI 颜色代码"""

    RESET = "\033[0m"
    CYAN = "\033[36m"
    GRAY = "\033[90m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_BLUE = "\033[94m"
    BOLD = "\033[1m"


class ColoredFormatter(logging.Formatter):
    """彩色日志格式化器"""

    # 日志级别对应的颜色
    LEVEL_COLORS = {
        logging.DEBUG: ColorCodes.GRAY,
        logging.INFO: ColorCodes.BRIGHT_BLUE,
        logging.WARNING: ColorCodes.BRIGHT_YELLOW,
        logging.ERROR: ColorCodes.BRIGHT_RED,
        logging.CRITICAL: ColorCodes.BOLD + ColorCodes.BRIGHT_RED,
    }

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
    ):
        """
        初始化彩色格式化器

        Args:
            fmt: 日志格式字符串
            datefmt: 日期格式字符串
            use_colors: 是否使用颜色
        """
        super().__init__(fmt or DEFAULT_FORMAT, datefmt or DEFAULT_DATEFMT)
        self.use_colors = use_colors and self._supports_color()

    @staticmethod
    def _supports_color() -> bool:
        """检测终端是否支持颜色"""
        if os.environ.get("NO_COLOR"):
            return False
        return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        """格式化日志记录"""
        if not self.use_colors:
            return super().format(record)

        color = self.LEVEL_COLORS.get(record.levelno, ColorCodes.RESET)

        # 临时替换格式：时间灰色，模块名青色，消息跟随级别颜色
        original_format = self._style._fmt
        self._style._fmt = (
            f"[{ColorCodes.GRAY}%(asctime)s{ColorCodes.RESET}] "
            f"[{color}%(levelname)s{ColorCodes.RESET}] "
            f"[{ColorCodes.CYAN}%(name)s{ColorCodes.RESET}:%(lineno)d] "
            f"{color}%(message)s{ColorCodes.RESET}"
        )
        try:
            return super().format(record)
        finally:
            self._style._fmt = original_format


def parse_level(level: Union[int, str]) -> int:
    """
    把级别名转换为 logging 级别

    未知的级别名回退到 INFO。
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logger(
    name: Optional[str] = None,
    level: int = logging.INFO,
    use_colors: bool = True,
    log_file: Optional[str] = None,
    file_level: int = logging.DEBUG,
    max_bytes: int = 10 * 1024 * 1024,  # 默认 10MB
    backup_count: int = 5,  # 默认保留 5 个备份
) -> logging.Logger:
    """
    设置并返回配置好的日志器

    Args:
        name: 日志器名称，None 表示根日志器
        level: 控制台日志级别
        use_colors: 是否使用彩色输出
        log_file: 日志文件路径（可选）
        file_level: 文件日志级别
        max_bytes: 单个日志文件最大字节数，超过则轮转（默认 10MB）
        backup_count: 保留的旧日志文件数量（默认 5 个）

    Returns:
        配置好的 Logger 实例

    示例:
        >>> logger = setup_logger("kairo_desktop", level=logging.DEBUG)
        >>> logger.info("扩展运行时已启动")
    """
    logger = logging.getLogger(name)

    # 避免重复配置
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)  # 日志器级别设为最低，由 handler 控制
    if name is not None:
        logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(use_colors=use_colors))
    logger.addHandler(console_handler)

    # 文件处理器（可选，使用日志轮转）
    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            file_handler = RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
            file_handler.setLevel(file_level)
            # 文件日志不使用颜色
            file_handler.setFormatter(ColoredFormatter(use_colors=False))
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"无法创建日志文件 {log_file}: {e}")

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    获取日志器（便捷函数）

    Args:
        name: 日志器名称，通常使用 __name__

    Returns:
        Logger 实例
    """
    return logging.getLogger(name)


def configure_root_logger(
    level: Union[int, str] = logging.INFO,
    use_colors: bool = True,
    log_file: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    配置根日志器（影响所有模块的日志）

    Args:
        level: 日志级别（int 或级别名）
        use_colors: 是否使用彩色输出
        log_file: 日志文件路径
        max_bytes: 单个日志文件最大字节数（默认 10MB）
        backup_count: 保留的旧日志文件数量（默认 5 个）

    示例:
        在 __main__.py 开头调用:
        >>> from kairo_desktop.logger import configure_root_logger
        >>> configure_root_logger(level="DEBUG", log_file="logs/kairo.log")
    """
    # 移除已有的处理器
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    setup_logger(
        name=None,  # 根日志器
        level=parse_level(level),
        use_colors=use_colors,
        log_file=log_file,
        max_bytes=max_bytes,
        backup_count=backup_count,
    )


__all__ = [
    "setup_logger",
    "get_logger",
    "configure_root_logger",
    "parse_level",
    "ColoredFormatter",
    "ColorCodes",
]
