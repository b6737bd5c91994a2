"""
扩展样式管理

每个扩展最多持有一个样式块。add 覆盖旧块，remove 幂等。
宿主界面通过 subscribe 获取样式变化并注入/移除实际的样式表。
"""

import logging
from typing import Callable, Dict, List, Optional


logger = logging.getLogger(__name__)

StyleListener = Callable[[str, Optional[str]], None]


def style_element_id(extension_id: str) -> str:
    """样式块在宿主界面中的元素 id"""
    return f"kairo-extension-style-{extension_id}"


class StyleManager:
    """
    样式管理器

    禁用扩展时样式被挂起（从活动样式中移除但保留内容），
    重新启用时恢复；卸载或删除扩展时彻底移除。
    """

    def __init__(self):
        self._active: Dict[str, str] = {}
        self._suspended: Dict[str, str] = {}
        self._listeners: List[StyleListener] = []

    def add(self, extension_id: str, css: str, suspended: bool = False) -> None:
        """
        添加或替换扩展的样式块

        Args:
            extension_id: 扩展 id
            css: 样式文本
            suspended: 扩展处于禁用状态时只替换挂起的样式，不注入
        """
        if suspended:
            if self._active.pop(extension_id, None) is not None:
                self._notify(extension_id, None)
            self._suspended[extension_id] = css
            return

        self._suspended.pop(extension_id, None)
        self._active[extension_id] = css
        logger.debug(f"注入样式: {extension_id} ({len(css)} 字符)")
        self._notify(extension_id, css)

    def remove(self, extension_id: str) -> bool:
        """
        移除扩展的样式块（包括挂起的）

        Returns:
            bool: 是否移除了活动样式
        """
        self._suspended.pop(extension_id, None)
        if self._active.pop(extension_id, None) is None:
            return False
        logger.debug(f"移除样式: {extension_id}")
        self._notify(extension_id, None)
        return True

    def suspend(self, extension_id: str) -> None:
        """暂时移除活动样式"""
        css = self._active.pop(extension_id, None)
        if css is not None:
            self._suspended[extension_id] = css
            self._notify(extension_id, None)

    def resume(self, extension_id: str) -> None:
        """恢复挂起的样式"""
        css = self._suspended.pop(extension_id, None)
        if css is not None:
            self.add(extension_id, css)

    def get(self, extension_id: str) -> Optional[str]:
        """获取扩展当前的活动样式"""
        return self._active.get(extension_id)

    def has(self, extension_id: str) -> bool:
        """扩展是否有样式块（活动或挂起）"""
        return extension_id in self._active or extension_id in self._suspended

    @property
    def active_styles(self) -> Dict[str, str]:
        """所有活动样式（副本）"""
        return dict(self._active)

    def stylesheet(self) -> str:
        """合并后的样式表，每块以注释标记来源"""
        return "\n".join(
            f"/* {style_element_id(ext_id)} */\n{css}" for ext_id, css in self._active.items()
        )

    def subscribe(self, listener: StyleListener) -> Callable[[], None]:
        """
        订阅样式变化

        listener(extension_id, css) 中 css 为 None 表示移除。

        Returns:
            取消订阅函数
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, extension_id: str, css: Optional[str]) -> None:
        for listener in list(self._listeners):
            try:
                listener(extension_id, css)
            except Exception as e:
                logger.error(f"样式监听器失败: {e}")
