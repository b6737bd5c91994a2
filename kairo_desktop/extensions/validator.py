"""
扩展源码静态校验

在执行任何代码之前拒绝超大源码或包含逃逸模式的源码。
这是基于源码文本的拒绝列表，只能提高攻击门槛，不构成信任边界。
"""

import logging
import re
from typing import List, Optional, Pattern, Tuple

from .errors import ValidationError


logger = logging.getLogger(__name__)

# 默认源码大小上限：500 KiB
DEFAULT_MAX_SOURCE_BYTES = 500 * 1024


# (类别, 说明, 正则)
DENY_PATTERNS: List[Tuple[str, str, Pattern[str]]] = [
    (
        "constructor-chain",
        "反射访问类型链",
        re.compile(r"__(?:class|base|bases|mro|subclasses)__"),
    ),
    (
        "scope-chain",
        "沿函数/帧链访问宿主作用域",
        re.compile(
            r"__(?:globals|code|closure|func|self|dict|getattribute|reduce|reduce_ex)__"
            r"|\b(?:tb_frame|f_globals|f_locals|f_back|gi_frame|cr_frame)\b"
        ),
    ),
    (
        "dynamic-import",
        "动态加载模块",
        re.compile(
            r"(?:^|;)[ \t]*(?:import[ \t]+\w|from[ \t]+[\w.]+[ \t]+import\b)"
            r"|\b__import__\b|\bimportlib\b",
            re.MULTILINE,
        ),
    ),
    (
        "host-runtime",
        "访问宿主运行时对象",
        re.compile(
            r"\b(?:sys|os|subprocess|ctypes|multiprocessing|inspect|gc|signal)\s*\."
            r"|__(?:file|loader|spec|cached)__"
        ),
    ),
    (
        "global-lookup",
        "间接查找全局对象",
        re.compile(r"\b(?:globals|locals|vars)\s*\(|__builtins__|\bbuiltins\b"),
    ),
]


class CodeValidator:
    """
    源码校验器

    先检查大小上限（不读取内容），再按拒绝列表扫描。
    任意一处命中即拒绝整个模块，不会部分执行。
    """

    def __init__(self, max_source_bytes: int = DEFAULT_MAX_SOURCE_BYTES):
        self._max_source_bytes = max_source_bytes

    @property
    def max_source_bytes(self) -> int:
        """源码大小上限（字节）"""
        return self._max_source_bytes

    def validate(self, source: str, extension_id: Optional[str] = None) -> None:
        """
        校验扩展源码

        Args:
            source: 源码文本
            extension_id: 扩展 id（用于错误信息）

        Raises:
            ValidationError: 超出大小限制或命中拒绝列表
        """
        size = len(source.encode("utf-8"))
        if size > self._max_source_bytes:
            raise ValidationError(
                f"源码过大: {size} 字节 (上限 {self._max_source_bytes} 字节)",
                extension_id=extension_id,
                category="size",
            )

        for category, description, pattern in DENY_PATTERNS:
            match = pattern.search(source)
            if match is None:
                continue

            line = source.count("\n", 0, match.start()) + 1
            logger.debug(
                f"源码校验拒绝 {extension_id}: {category} @ line {line}"
            )
            raise ValidationError(
                f"源码包含被禁止的模式 ({description}): "
                f"'{match.group(0).strip()}' 位于第 {line} 行",
                extension_id=extension_id,
                category=category,
                line=line,
            )

    def is_valid(self, source: str) -> bool:
        """非抛出版本的 validate"""
        try:
            self.validate(source)
            return True
        except ValidationError:
            return False
