"""
能力注册表

扩展通过能力 API 注册的所有内容都存放在这里：
- CommandRegistry: 命令
- HookRegistry: 动作钩子与数据过滤器
- SlotRegistry: UI 插槽组件
- ContextMenuRegistry: 右键菜单项
- MenuBarRegistry: 菜单栏条目与自定义菜单分类
- PluginRegistry: 加载成功的插件

CapabilityRegistries 把它们打包，只构造一次，
注入给 ExtensionRegistry 和它发放的每个 CapabilityAPI。
只有这两者可以写入注册表。
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Hashable,
    List,
    Optional,
    Set,
    TypeVar,
    Union,
)

from .base import Plugin
from .hooks import DEFAULT_PRIORITY, FilterCallback, FilterType, HookCallback, HookType


logger = logging.getLogger(__name__)


async def _maybe_await(value: Any) -> Any:
    """如果是 awaitable 则等待其结果"""
    if inspect.isawaitable(value):
        return await value
    return value


# ==================== 注册项 ====================


class SlotType(str, Enum):
    """UI 插槽位置"""

    SIDEBAR = "sidebar"
    SIDEBAR_FOOTER = "sidebar-footer"
    TOOLBAR = "toolbar"
    STATUSBAR = "statusbar"
    EDITOR_TOOLBAR = "editor-toolbar"
    EDITOR_FOOTER = "editor-footer"
    PREVIEW_FOOTER = "preview-footer"
    MODAL = "modal"


class ContextMenuType(str, Enum):
    """可注册右键菜单项的菜单类型"""

    NOTE_TREE = "note-tree"
    FOLDER_TREE = "folder-tree"
    EDITOR = "editor"
    PREVIEW = "preview"
    WIKI_LINK = "wiki-link"
    EXTERNAL_LINK = "external-link"
    KANBAN_CARD = "kanban-card"
    TAB = "tab"
    GRAPH_NODE = "graph-node"


class MenuCategory(str, Enum):
    """内置菜单栏分类"""

    FILE = "file"
    EDIT = "edit"
    VIEW = "view"
    TOOLS = "tools"
    HELP = "help"


@dataclass
class Command:
    """命令"""

    id: str
    name: str
    execute: Callable[[], Any] = field(repr=False)
    owner: str
    description: Optional[str] = None
    shortcut: Optional[str] = None
    category: Optional[str] = None
    priority: int = 0


@dataclass
class HookRegistration:
    """动作钩子注册信息"""

    id: str
    hook_type: HookType
    callback: HookCallback = field(repr=False)
    owner: str
    priority: int = DEFAULT_PRIORITY


@dataclass
class FilterRegistration:
    """过滤器注册信息"""

    id: str
    filter_type: FilterType
    callback: FilterCallback = field(repr=False)
    owner: str
    priority: int = DEFAULT_PRIORITY


@dataclass
class SlotComponent:
    """插槽组件"""

    id: str
    slot: SlotType
    component: Any = field(repr=False)
    owner: str
    priority: int = 0


@dataclass
class ContextMenuContext:
    """
    右键菜单上下文

    传给菜单项的 execute 和 when。
    """

    type: ContextMenuType
    note_path: Optional[str] = None
    note_title: Optional[str] = None
    folder_path: Optional[str] = None
    link_target: Optional[str] = None
    link_text: Optional[str] = None
    selected_text: Optional[str] = None
    card_id: Optional[str] = None
    node_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ContextMenuItem:
    """右键菜单项"""

    id: str
    menu_type: ContextMenuType
    label: str
    execute: Callable[[ContextMenuContext], Any] = field(repr=False)
    owner: str
    icon: Optional[str] = None
    shortcut: Optional[str] = None
    when: Optional[Callable[[ContextMenuContext], bool]] = field(default=None, repr=False)
    priority: int = 0
    divider: bool = False


@dataclass
class MenuBarItem:
    """菜单栏条目"""

    id: str
    category: str
    label: str
    execute: Callable[[], Any] = field(repr=False)
    owner: str
    shortcut: Optional[str] = None
    icon: Optional[str] = None
    when: Optional[Callable[[], bool]] = field(default=None, repr=False)
    priority: int = 0
    divider: bool = False


@dataclass
class CustomMenuCategory:
    """扩展添加的菜单栏分类"""

    id: str
    label: str
    owner: str
    priority: int = 0


# ==================== 注册表基类 ====================

E = TypeVar("E")


class _OwnedRegistry(Generic[E]):
    """
    按分组存放注册项的注册表基类

    每个分组内以限定 id 为键，重复注册同一个 id 会替换原有条目。
    被挂起 (suspended) 的所有者的条目保留，但查询时不可见。
    """

    def __init__(self, suspended: Optional[Set[str]] = None):
        self._groups: Dict[Hashable, Dict[str, E]] = {}
        self._suspended: Set[str] = suspended if suspended is not None else set()

    def _add(self, group: Hashable, entry: E) -> None:
        self._groups.setdefault(group, {})[entry.id] = entry  # type: ignore[attr-defined]

    def _remove(self, group: Hashable, qualified_id: str) -> bool:
        entries = self._groups.get(group)
        if entries is None or qualified_id not in entries:
            return False
        del entries[qualified_id]
        return True

    def _remove_anywhere(self, qualified_id: str) -> bool:
        for group in list(self._groups):
            if self._remove(group, qualified_id):
                return True
        return False

    def _active(self, entries: List[E]) -> List[E]:
        return [e for e in entries if e.owner not in self._suspended]  # type: ignore[attr-defined]

    def _sorted(self, group: Hashable, include_suspended: bool = False) -> List[E]:
        entries = list(self._groups.get(group, {}).values())
        if not include_suspended:
            entries = self._active(entries)
        # 优先级高的在前，同优先级保持注册顺序
        return sorted(entries, key=lambda e: -e.priority)  # type: ignore[attr-defined]

    def _all(self) -> List[E]:
        return [e for entries in self._groups.values() for e in entries.values()]

    def owned_by(self, owner: str) -> List[E]:
        """获取某个所有者的全部注册项（包括挂起的）"""
        return [e for e in self._all() if e.owner == owner]  # type: ignore[attr-defined]

    def count_owned(self, owner: str) -> int:
        """统计某个所有者的注册项数量"""
        return len(self.owned_by(owner))

    def remove_owner(self, owner: str) -> int:
        """
        移除某个所有者的全部注册项

        Returns:
            int: 移除的数量
        """
        removed = 0
        for entries in self._groups.values():
            for qualified_id in [k for k, e in entries.items() if e.owner == owner]:  # type: ignore[attr-defined]
                del entries[qualified_id]
                removed += 1
        return removed

    def __len__(self) -> int:
        return len(self._all())


# ==================== 命令 ====================


class CommandRegistry(_OwnedRegistry[Command]):
    """命令注册表"""

    _GROUP = "commands"

    def register(self, command: Command) -> None:
        """注册命令（同 id 覆盖）"""
        self._add(self._GROUP, command)
        logger.debug(f"注册命令: {command.id} <- {command.owner}")

    def unregister(self, qualified_id: str) -> bool:
        """注销命令"""
        return self._remove(self._GROUP, qualified_id)

    def get(self, qualified_id: str) -> Optional[Command]:
        """获取可见的命令"""
        command = self._groups.get(self._GROUP, {}).get(qualified_id)
        if command is None or command.owner in self._suspended:
            return None
        return command

    def list(self) -> List[Command]:
        """列出所有可见命令"""
        return self._sorted(self._GROUP)

    def search(self, query: str) -> List[Command]:
        """按名称、描述、分类搜索命令（不区分大小写）"""
        needle = query.lower()
        return [
            cmd
            for cmd in self.list()
            if needle in cmd.name.lower()
            or needle in (cmd.description or "").lower()
            or needle in (cmd.category or "").lower()
        ]

    async def execute(self, qualified_id: str) -> bool:
        """
        执行命令

        Returns:
            bool: 命令存在并执行成功
        """
        command = self.get(qualified_id)
        if command is None:
            logger.warning(f"命令不存在或不可用: {qualified_id}")
            return False

        try:
            await _maybe_await(command.execute())
            return True
        except asyncio.CancelledError:
            raise
        except BaseException as e:
            logger.error(f"命令执行失败 {qualified_id} ({command.owner}): {e}")
            return False


# ==================== 钩子 / 过滤器 ====================


class HookRegistry(_OwnedRegistry[Union[HookRegistration, FilterRegistration]]):
    """
    钩子与过滤器注册表

    动作钩子和过滤器按各自的类型分组，优先级高的先执行。
    单个回调失败只记录日志，不影响后续回调。
    """

    # -------------------- 动作钩子 --------------------

    def register_hook(self, registration: HookRegistration) -> None:
        """注册动作钩子"""
        self._add(registration.hook_type, registration)
        logger.debug(
            f"注册钩子: {registration.hook_type.value} <- {registration.owner} "
            f"(priority={registration.priority})"
        )

    def unregister_hook(self, qualified_id: str) -> bool:
        """按限定 id 注销钩子"""
        return any(self._remove(t, qualified_id) for t in HookType)

    def unregister_callback(self, hook_type: HookType, callback: HookCallback) -> bool:
        """按回调函数注销钩子"""
        for registration in self._sorted(hook_type, include_suspended=True):
            if registration.callback is callback:
                return self._remove(hook_type, registration.id)
        return False

    def hook_registrations(self, hook_type: HookType) -> List[HookRegistration]:
        """获取某个钩子类型的可见注册"""
        return self._sorted(hook_type)  # type: ignore[return-value]

    async def trigger(self, hook_type: HookType, *args: Any) -> None:
        """
        触发动作钩子

        按优先级顺序执行所有可见回调。

        Args:
            hook_type: 钩子类型
            *args: 传给回调的参数
        """
        for registration in self.hook_registrations(hook_type):
            try:
                await _maybe_await(registration.callback(*args))
            except asyncio.CancelledError:
                raise
            except BaseException as e:
                logger.error(
                    f"钩子 {hook_type.value} 回调失败 ({registration.owner}): {e}"
                )

    # -------------------- 过滤器 --------------------

    def register_filter(self, registration: FilterRegistration) -> None:
        """注册过滤器"""
        self._add(registration.filter_type, registration)
        logger.debug(
            f"注册过滤器: {registration.filter_type.value} <- {registration.owner} "
            f"(priority={registration.priority})"
        )

    def unregister_filter(self, qualified_id: str) -> bool:
        """按限定 id 注销过滤器"""
        return any(self._remove(t, qualified_id) for t in FilterType)

    def filter_registrations(self, filter_type: FilterType) -> List[FilterRegistration]:
        """获取某个过滤器类型的可见注册"""
        return self._sorted(filter_type)  # type: ignore[return-value]

    async def apply_filter(self, filter_type: FilterType, data: Any, *args: Any) -> Any:
        """
        应用过滤器

        数据依次流经所有可见过滤器，失败的过滤器被跳过。

        Returns:
            Any: 过滤后的数据
        """
        result = data
        for registration in self.filter_registrations(filter_type):
            try:
                result = await _maybe_await(registration.callback(result, *args))
            except asyncio.CancelledError:
                raise
            except BaseException as e:
                logger.error(
                    f"过滤器 {filter_type.value} 执行失败 ({registration.owner}): {e}"
                )
        return result

    def plugin_hooks(self, owner: str) -> Dict[str, List[str]]:
        """获取某个所有者使用的钩子和过滤器类型"""
        hooks: List[str] = []
        filters: List[str] = []
        for registration in self.owned_by(owner):
            if isinstance(registration, HookRegistration):
                if registration.hook_type.value not in hooks:
                    hooks.append(registration.hook_type.value)
            elif registration.filter_type.value not in filters:
                filters.append(registration.filter_type.value)
        return {"hooks": hooks, "filters": filters}


# ==================== UI 插槽 ====================


class SlotRegistry(_OwnedRegistry[SlotComponent]):
    """UI 插槽注册表（优先级高的先渲染）"""

    def register(self, component: SlotComponent) -> None:
        """注册插槽组件"""
        self._add(component.slot, component)

    def unregister(self, slot: SlotType, qualified_id: str) -> bool:
        """注销插槽组件"""
        return self._remove(SlotType(slot), qualified_id)

    def components(self, slot: SlotType) -> List[SlotComponent]:
        """获取插槽中的可见组件"""
        return self._sorted(SlotType(slot))


# ==================== 右键菜单 ====================


class ContextMenuRegistry(_OwnedRegistry[ContextMenuItem]):
    """右键菜单注册表"""

    def register(self, item: ContextMenuItem) -> None:
        """注册菜单项"""
        self._add(item.menu_type, item)

    def unregister(self, menu_type: ContextMenuType, qualified_id: str) -> bool:
        """注销菜单项"""
        return self._remove(ContextMenuType(menu_type), qualified_id)

    def items(
        self, menu_type: ContextMenuType, context: Optional[ContextMenuContext] = None
    ) -> List[ContextMenuItem]:
        """
        获取菜单项

        提供 context 时按 when 条件过滤，when 抛出异常视为不显示。
        """
        items = self._sorted(ContextMenuType(menu_type))
        if context is None:
            return items

        visible = []
        for item in items:
            if item.when is None:
                visible.append(item)
                continue
            try:
                if item.when(context):
                    visible.append(item)
            except Exception as e:
                logger.debug(f"菜单项 when 条件失败 {item.id}: {e}")
        return visible


# ==================== 菜单栏 ====================


class MenuBarRegistry(_OwnedRegistry[MenuBarItem]):
    """
    菜单栏注册表

    条目既可以加到内置分类 (file/edit/view/tools/help)，
    也可以加到扩展自定义的分类（以限定 id 标识）。
    """

    def __init__(self, suspended: Optional[Set[str]] = None):
        super().__init__(suspended)
        self._categories: Dict[str, CustomMenuCategory] = {}

    @staticmethod
    def is_builtin_category(category: str) -> bool:
        """是否为内置分类"""
        return category in {c.value for c in MenuCategory}

    def register_item(self, item: MenuBarItem) -> None:
        """注册菜单栏条目"""
        self._add(item.category, item)

    def unregister_item(self, category: str, qualified_id: str) -> bool:
        """注销菜单栏条目"""
        return self._remove(category, qualified_id)

    def register_category(self, category: CustomMenuCategory) -> None:
        """注册自定义分类"""
        self._categories[category.id] = category

    def unregister_category(self, category_id: str) -> bool:
        """注销自定义分类，同时丢弃分类下的所有条目"""
        if category_id not in self._categories:
            return False
        del self._categories[category_id]
        self._groups.pop(category_id, None)
        return True

    def categories(self) -> List[CustomMenuCategory]:
        """获取可见的自定义分类"""
        visible = [c for c in self._categories.values() if c.owner not in self._suspended]
        return sorted(visible, key=lambda c: -c.priority)

    def items(self, category: str) -> List[MenuBarItem]:
        """获取分类下可见且满足 when 条件的条目"""
        visible = []
        for item in self._sorted(category):
            if item.when is None:
                visible.append(item)
                continue
            try:
                if item.when():
                    visible.append(item)
            except Exception as e:
                logger.debug(f"菜单栏条目 when 条件失败 {item.id}: {e}")
        return visible

    def owned_by(self, owner: str) -> List[Any]:
        """获取某个所有者的条目和自定义分类"""
        owned: List[Any] = super().owned_by(owner)
        owned.extend(c for c in self._categories.values() if c.owner == owner)
        return owned

    def remove_owner(self, owner: str) -> int:
        """移除某个所有者的条目和自定义分类"""
        removed = 0
        for category_id in [k for k, c in self._categories.items() if c.owner == owner]:
            removed += len(self._groups.get(category_id, {}))
            self.unregister_category(category_id)
            removed += 1
        return removed + super().remove_owner(owner)


# ==================== 插件 ====================


class PluginRegistry:
    """已加载插件表"""

    def __init__(self):
        self._plugins: Dict[str, Plugin] = {}

    def register(self, plugin: Plugin) -> None:
        """注册插件（同 id 覆盖）"""
        self._plugins[plugin.id] = plugin

    async def unregister(self, plugin_id: str) -> bool:
        """
        注销插件并执行其 cleanup

        cleanup 失败只记录日志，插件仍会被移除。
        """
        plugin = self._plugins.pop(plugin_id, None)
        if plugin is None:
            return False

        if plugin.cleanup is not None:
            try:
                await _maybe_await(plugin.cleanup())
            except Exception as e:
                logger.error(f"插件 cleanup 失败 {plugin_id}: {e}")
        return True

    def set_enabled(self, plugin_id: str, enabled: bool) -> bool:
        """设置插件启用状态"""
        plugin = self._plugins.get(plugin_id)
        if plugin is None:
            return False
        plugin.enabled = enabled
        return True

    def get(self, plugin_id: str) -> Optional[Plugin]:
        """获取插件"""
        return self._plugins.get(plugin_id)

    def list(self) -> List[Plugin]:
        """列出所有插件"""
        return list(self._plugins.values())

    def __contains__(self, plugin_id: object) -> bool:
        return plugin_id in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)


# ==================== 注册表集合 ====================


class CapabilityRegistries:
    """
    能力注册表集合

    所有注册表共享同一个挂起集合：挂起某个扩展后，
    它的注册项保留但在所有查询中不可见，恢复后直接重新生效。
    """

    def __init__(self):
        self._suspended: Set[str] = set()
        self.commands = CommandRegistry(self._suspended)
        self.hooks = HookRegistry(self._suspended)
        self.slots = SlotRegistry(self._suspended)
        self.context_menus = ContextMenuRegistry(self._suspended)
        self.menu_bar = MenuBarRegistry(self._suspended)
        self.plugins = PluginRegistry()

    def _owned_registries(self) -> List[_OwnedRegistry]:
        return [self.commands, self.hooks, self.slots, self.context_menus, self.menu_bar]

    def remove_owner(self, owner: str) -> int:
        """移除某个扩展在所有注册表中的注册项"""
        self._suspended.discard(owner)
        return sum(registry.remove_owner(owner) for registry in self._owned_registries())

    def count_owned(self, owner: str) -> int:
        """统计某个扩展在所有注册表中的注册项"""
        return sum(registry.count_owned(owner) for registry in self._owned_registries())

    def suspend(self, owner: str) -> None:
        """隐藏某个扩展的注册项"""
        self._suspended.add(owner)

    def resume(self, owner: str) -> None:
        """恢复某个扩展的注册项"""
        self._suspended.discard(owner)

    def is_suspended(self, owner: str) -> bool:
        """是否已挂起"""
        return owner in self._suspended
