"""
钩子与过滤器类型定义

提供扩展点的核心枚举：
- HookType: 动作钩子，在特定事件发生时调用
- FilterType: 过滤器钩子，可以修改流经的数据
- DEFAULT_PRIORITY: 默认优先级（数值越大越先执行）
"""

from enum import Enum
from typing import Any, Awaitable, Callable, Union


DEFAULT_PRIORITY = 10

HookCallback = Callable[..., Union[None, Awaitable[None]]]
FilterCallback = Callable[..., Any]


class HookType(str, Enum):
    """
    动作钩子类型

    扩展通过 kairo.register_hook(type, callback) 注册。
    """

    # ==================== 仓库相关钩子 ====================

    ON_VAULT_OPEN = "on_vault_open"
    """
    仓库打开后

    Args:
        data: dict - 包含 vault 信息 (name, path, note_count)
    """

    ON_VAULT_CLOSE = "on_vault_close"
    """仓库关闭时"""

    # ==================== 笔记相关钩子 ====================

    ON_NOTE_CREATE = "on_note_create"
    """
    笔记创建后

    Args:
        data: dict - 包含 path
    """

    ON_NOTE_SAVE = "on_note_save"
    """
    笔记保存后

    Args:
        data: dict - 包含 path
    """

    ON_NOTE_DELETE = "on_note_delete"
    """笔记删除后"""

    ON_NOTE_OPEN = "on_note_open"
    """
    笔记打开时

    Args:
        data: dict - 包含 path 和 note
    """

    ON_NOTE_CLOSE = "on_note_close"
    """笔记关闭时"""

    # ==================== 搜索相关钩子 ====================

    ON_SEARCH = "on_search"
    """
    搜索发起时

    Args:
        data: dict - 包含 query
    """

    ON_SEARCH_RESULT = "on_search_result"
    """搜索完成后，data 包含 query 和 results"""

    # ==================== 应用生命周期钩子 ====================

    ON_APP_INIT = "on_app_init"
    """应用初始化完成"""

    ON_APP_CLOSE = "on_app_close"
    """应用关闭时"""

    # ==================== 编辑器相关钩子 ====================

    ON_EDITOR_READY = "on_editor_ready"
    """编辑器就绪"""

    ON_EDITOR_CHANGE = "on_editor_change"
    """编辑器内容变化，data 包含 content"""

    ON_PREVIEW_RENDER = "on_preview_render"
    """预览渲染完成"""

    # ==================== 其他钩子 ====================

    ON_COMMAND_EXECUTE = "on_command_execute"
    """命令执行时，data 包含 command_id"""

    ON_PLUGIN_LOAD = "on_plugin_load"
    """插件加载后"""

    ON_PLUGIN_UNLOAD = "on_plugin_unload"
    """插件卸载后"""

    ON_SETTINGS_CHANGE = "on_settings_change"
    """设置变更"""


class FilterType(str, Enum):
    """
    过滤器钩子类型

    过滤器接收数据并返回（可能修改后的）数据，
    按优先级依次串联执行。
    """

    FILTER_NOTE_CONTENT = "filter_note_content"
    """笔记内容（str）"""

    FILTER_SEARCH_RESULTS = "filter_search_results"
    """搜索结果列表"""

    FILTER_PREVIEW_HTML = "filter_preview_html"
    """预览 HTML（str）"""

    FILTER_COMMANDS = "filter_commands"
    """命令面板中的命令列表"""

    FILTER_SIDEBAR_ITEMS = "filter_sidebar_items"
    """侧边栏条目"""

    FILTER_STATUSBAR_ITEMS = "filter_statusbar_items"
    """状态栏条目"""


def get_hook_description(hook_type: HookType) -> str:
    """
    获取钩子类型描述

    Args:
        hook_type: 钩子类型

    Returns:
        str: 钩子描述
    """
    descriptions = {
        HookType.ON_VAULT_OPEN: "仓库打开后",
        HookType.ON_VAULT_CLOSE: "仓库关闭时",
        HookType.ON_NOTE_CREATE: "笔记创建后",
        HookType.ON_NOTE_SAVE: "笔记保存后",
        HookType.ON_NOTE_DELETE: "笔记删除后",
        HookType.ON_NOTE_OPEN: "笔记打开时",
        HookType.ON_NOTE_CLOSE: "笔记关闭时",
        HookType.ON_SEARCH: "搜索发起时",
        HookType.ON_SEARCH_RESULT: "搜索完成后",
        HookType.ON_APP_INIT: "应用初始化完成",
        HookType.ON_APP_CLOSE: "应用关闭时",
        HookType.ON_EDITOR_READY: "编辑器就绪",
        HookType.ON_EDITOR_CHANGE: "编辑器内容变化",
        HookType.ON_PREVIEW_RENDER: "预览渲染完成",
        HookType.ON_COMMAND_EXECUTE: "命令执行时",
        HookType.ON_PLUGIN_LOAD: "插件加载后",
        HookType.ON_PLUGIN_UNLOAD: "插件卸载后",
        HookType.ON_SETTINGS_CHANGE: "设置变更",
    }
    return descriptions.get(hook_type, hook_type.name)
