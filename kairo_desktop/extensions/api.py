"""
扩展能力 API

每个扩展一个 CapabilityAPI 实例，闭包绑定扩展 id，
所有注册调用在到达共享注册表之前自动加上命名空间:
    "<extension_id>.<local_id>"

扩展代码拿到的不是 CapabilityAPI 实例本身，而是 facade():
一个只包含公开方法的命名空间对象，扩展无法直接触及注册表等宿主内部对象。
"""

import json
import logging
import types
from typing import Any, Callable, List, Optional, Union

from .hooks import DEFAULT_PRIORITY, FilterType, HookType, get_hook_description
from .logs import LogStore
from .registries import (
    CapabilityRegistries,
    Command,
    ContextMenuItem,
    ContextMenuType,
    CustomMenuCategory,
    FilterRegistration,
    HookRegistration,
    MenuBarItem,
    SlotComponent,
    SlotType,
)
from .state import HostStores
from .styles import StyleManager


logger = logging.getLogger(__name__)

# 暴露给扩展代码的方法
API_SURFACE = (
    "register_command",
    "unregister_command",
    "register_hook",
    "unregister_hook",
    "register_filter",
    "unregister_filter",
    "register_slot",
    "unregister_slot",
    "register_context_menu_item",
    "unregister_context_menu_item",
    "register_menu_item",
    "unregister_menu_item",
    "register_menu_category",
    "unregister_menu_category",
    "get_state",
    "subscribe",
    "add_styles",
    "remove_styles",
)


def _format_details(details: Any) -> Optional[str]:
    if details is None or isinstance(details, str):
        return details
    try:
        return json.dumps(details, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return repr(details)


class ExtensionLogger:
    """绑定扩展 id 的分级日志器"""

    def __init__(self, extension_id: str, logs: LogStore):
        self._extension_id = extension_id
        self._logs = logs

    def info(self, message: Any, details: Any = None) -> None:
        self._logs.info(self._extension_id, str(message), _format_details(details))

    def warn(self, message: Any, details: Any = None) -> None:
        self._logs.warn(self._extension_id, str(message), _format_details(details))

    def error(self, message: Any, details: Any = None) -> None:
        self._logs.error(self._extension_id, str(message), _format_details(details))

    def debug(self, message: Any, details: Any = None) -> None:
        self._logs.debug(self._extension_id, str(message), _format_details(details))


class ExtensionApi(types.SimpleNamespace):
    """交给沙箱代码的能力 API 对象（公开方法 + log）"""


class CapabilityAPI:
    """
    单个扩展的能力 API

    Example:
        ```python
        # 扩展代码 (main.py)
        def initialize(kairo):
            kairo.register_command(
                id="hello",
                name="Say Hello",
                execute=lambda: kairo.log.info("hello"),
            )

        exports.initialize = initialize
        ```
    """

    def __init__(
        self,
        extension_id: str,
        registries: CapabilityRegistries,
        styles: StyleManager,
        stores: HostStores,
        logs: LogStore,
    ):
        self._extension_id = extension_id
        self._registries = registries
        self._styles = styles
        self._stores = stores
        self._subscriptions: List[Callable[[], None]] = []
        self._counter = 0
        self.log = ExtensionLogger(extension_id, logs)

    @property
    def extension_id(self) -> str:
        """所属扩展 id"""
        return self._extension_id

    def qualify(self, local_id: str) -> str:
        """
        生成限定 id

        Raises:
            ValueError: local_id 为空或不是字符串
        """
        if not isinstance(local_id, str) or not local_id:
            raise ValueError(f"注册 id 必须是非空字符串: {local_id!r}")
        return f"{self._extension_id}.{local_id}"

    def _next_local_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}.{self._counter}"

    @staticmethod
    def _require_callable(name: str, value: Any) -> None:
        if not callable(value):
            raise TypeError(f"{name} 必须是可调用对象")

    # ==================== 命令 ====================

    def register_command(
        self,
        id: str,
        name: str,
        execute: Callable[[], Any],
        description: Optional[str] = None,
        shortcut: Optional[str] = None,
        category: Optional[str] = None,
    ) -> str:
        """
        注册命令

        Returns:
            str: 本地 id
        """
        self._require_callable("execute", execute)
        self._registries.commands.register(
            Command(
                id=self.qualify(id),
                name=name,
                execute=execute,
                owner=self._extension_id,
                description=description,
                shortcut=shortcut,
                category=category,
            )
        )
        return id

    def unregister_command(self, id: str) -> bool:
        """注销命令"""
        return self._registries.commands.unregister(self.qualify(id))

    # ==================== 钩子 / 过滤器 ====================

    def register_hook(
        self,
        type: Union[HookType, str],
        callback: Callable[..., Any],
        priority: int = DEFAULT_PRIORITY,
    ) -> str:
        """
        注册动作钩子

        Returns:
            str: 运行时分配的本地 id，可用于 unregister_hook

        Raises:
            ValueError: 未知的钩子类型
        """
        hook_type = HookType(type)
        self._require_callable("callback", callback)
        local_id = self._next_local_id(hook_type.value)
        self._registries.hooks.register_hook(
            HookRegistration(
                id=self.qualify(local_id),
                hook_type=hook_type,
                callback=callback,
                owner=self._extension_id,
                priority=priority,
            )
        )
        logger.debug(
            f"{self._extension_id} 注册钩子 {hook_type.value} ({get_hook_description(hook_type)})"
        )
        return local_id

    def unregister_hook(self, id: str) -> bool:
        """注销动作钩子"""
        return self._registries.hooks.unregister_hook(self.qualify(id))

    def register_filter(
        self,
        type: Union[FilterType, str],
        callback: Callable[..., Any],
        priority: int = DEFAULT_PRIORITY,
    ) -> str:
        """
        注册数据过滤器

        Returns:
            str: 运行时分配的本地 id，可用于 unregister_filter
        """
        filter_type = FilterType(type)
        self._require_callable("callback", callback)
        local_id = self._next_local_id(filter_type.value)
        self._registries.hooks.register_filter(
            FilterRegistration(
                id=self.qualify(local_id),
                filter_type=filter_type,
                callback=callback,
                owner=self._extension_id,
                priority=priority,
            )
        )
        return local_id

    def unregister_filter(self, id: str) -> bool:
        """注销数据过滤器"""
        return self._registries.hooks.unregister_filter(self.qualify(id))

    # ==================== UI 插槽 ====================

    def register_slot(
        self, slot: Union[SlotType, str], id: str, component: Any, priority: int = 0
    ) -> str:
        """注册插槽组件"""
        self._registries.slots.register(
            SlotComponent(
                id=self.qualify(id),
                slot=SlotType(slot),
                component=component,
                owner=self._extension_id,
                priority=priority,
            )
        )
        return id

    def unregister_slot(self, slot: Union[SlotType, str], id: str) -> bool:
        """注销插槽组件"""
        return self._registries.slots.unregister(SlotType(slot), self.qualify(id))

    # ==================== 右键菜单 ====================

    def register_context_menu_item(
        self,
        menu_type: Union[ContextMenuType, str],
        id: str,
        label: str,
        execute: Callable[..., Any],
        icon: Optional[str] = None,
        shortcut: Optional[str] = None,
        when: Optional[Callable[..., bool]] = None,
        priority: int = 0,
        divider: bool = False,
    ) -> str:
        """注册右键菜单项"""
        self._require_callable("execute", execute)
        self._registries.context_menus.register(
            ContextMenuItem(
                id=self.qualify(id),
                menu_type=ContextMenuType(menu_type),
                label=label,
                execute=execute,
                owner=self._extension_id,
                icon=icon,
                shortcut=shortcut,
                when=when,
                priority=priority,
                divider=divider,
            )
        )
        return id

    def unregister_context_menu_item(self, menu_type: Union[ContextMenuType, str], id: str) -> bool:
        """注销右键菜单项"""
        return self._registries.context_menus.unregister(
            ContextMenuType(menu_type), self.qualify(id)
        )

    # ==================== 菜单栏 ====================

    def _resolve_category(self, category: str) -> str:
        category = getattr(category, "value", category)
        if self._registries.menu_bar.is_builtin_category(category):
            return category

        qualified = self.qualify(category)
        if qualified not in {c.id for c in self._registries.menu_bar.owned_by(self._extension_id)}:
            raise ValueError(f"未知的菜单分类: {category!r}")
        return qualified

    def register_menu_item(
        self,
        category: str,
        id: str,
        label: str,
        execute: Callable[[], Any],
        shortcut: Optional[str] = None,
        icon: Optional[str] = None,
        when: Optional[Callable[[], bool]] = None,
        priority: int = 0,
        divider: bool = False,
    ) -> str:
        """
        注册菜单栏条目

        category 可以是内置分类 (file/edit/view/tools/help)，
        也可以是本扩展通过 register_menu_category 注册的分类本地 id。

        Raises:
            ValueError: 未知的菜单分类
        """
        self._require_callable("execute", execute)
        self._registries.menu_bar.register_item(
            MenuBarItem(
                id=self.qualify(id),
                category=self._resolve_category(category),
                label=label,
                execute=execute,
                owner=self._extension_id,
                shortcut=shortcut,
                icon=icon,
                when=when,
                priority=priority,
                divider=divider,
            )
        )
        return id

    def unregister_menu_item(self, category: str, id: str) -> bool:
        """注销菜单栏条目"""
        return self._registries.menu_bar.unregister_item(
            self._resolve_category(category), self.qualify(id)
        )

    def register_menu_category(self, id: str, label: str, priority: int = 0) -> str:
        """注册自定义菜单分类"""
        self._registries.menu_bar.register_category(
            CustomMenuCategory(
                id=self.qualify(id), label=label, owner=self._extension_id, priority=priority
            )
        )
        return id

    def unregister_menu_category(self, id: str) -> bool:
        """注销自定义菜单分类"""
        return self._registries.menu_bar.unregister_category(self.qualify(id))

    # ==================== 状态 ====================

    def get_state(self) -> dict:
        """获取宿主状态快照（拷贝，修改不会影响宿主）"""
        return self._stores.snapshot()

    def subscribe(self, store_name: str, callback: Callable[[dict], Any]) -> Callable[[], None]:
        """
        订阅命名存储的变化

        Args:
            store_name: vault / notes / ui / search
            callback: 接收状态快照的回调

        Returns:
            取消订阅函数

        Raises:
            ValueError: 未知的存储名
        """
        self._require_callable("callback", callback)

        def deliver(state: dict) -> None:
            # 扩展被禁用期间不投递
            if not self._registries.is_suspended(self._extension_id):
                callback(state)

        unsubscribe = self._stores.subscribe(store_name, deliver)

        def dispose() -> None:
            unsubscribe()
            if dispose in self._subscriptions:
                self._subscriptions.remove(dispose)

        self._subscriptions.append(dispose)
        return dispose

    # ==================== 样式 ====================

    def add_styles(self, css: str) -> None:
        """注入样式（替换本扩展之前的样式块）"""
        self._styles.add(
            self._extension_id,
            str(css),
            suspended=self._registries.is_suspended(self._extension_id),
        )

    def remove_styles(self) -> None:
        """移除本扩展的样式块"""
        self._styles.remove(self._extension_id)

    # ==================== 宿主侧 ====================

    def facade(self) -> ExtensionApi:
        """构建交给扩展代码的能力 API 对象"""
        members = {name: getattr(self, name) for name in API_SURFACE}
        return ExtensionApi(log=self.log, extension_id=self._extension_id, **members)

    def dispose(self) -> None:
        """取消该扩展的所有存储订阅"""
        for dispose in list(self._subscriptions):
            dispose()
        self._subscriptions.clear()


def create_capability_api(
    extension_id: str,
    registries: CapabilityRegistries,
    styles: StyleManager,
    stores: HostStores,
    logs: LogStore,
) -> CapabilityAPI:
    """
    创建扩展的能力 API

    Args:
        extension_id: 扩展 id
        registries: 共享注册表集合
        styles: 样式管理器
        stores: 宿主命名存储
        logs: 日志存储

    Returns:
        CapabilityAPI: 能力 API 实例
    """
    return CapabilityAPI(extension_id, registries, styles, stores, logs)
