"""
能力注册表单元测试

测试命令、钩子、过滤器、插槽、菜单注册表及挂起/恢复。
"""

import pytest

from kairo_desktop.extensions import (
    CapabilityRegistries,
    ContextMenuContext,
    ContextMenuType,
    FilterType,
    HookType,
    Plugin,
    SlotType,
)
from kairo_desktop.extensions.hooks import get_hook_description
from kairo_desktop.extensions.registries import (
    Command,
    ContextMenuItem,
    CustomMenuCategory,
    FilterRegistration,
    HookRegistration,
    MenuBarItem,
    SlotComponent,
)


def make_command(qualified_id, owner, **kwargs):
    return Command(
        id=qualified_id,
        name=kwargs.pop("name", qualified_id),
        execute=kwargs.pop("execute", lambda: None),
        owner=owner,
        **kwargs,
    )


class TestCommandRegistry:
    """命令注册表测试"""

    @pytest.mark.unit
    def test_register_replaces_same_id(self, registries):
        """测试重复注册同一限定 id 替换原条目"""
        registries.commands.register(make_command("a.x", "a", name="first"))
        registries.commands.register(make_command("a.x", "a", name="second"))

        assert len(registries.commands) == 1
        assert registries.commands.get("a.x").name == "second"

    @pytest.mark.unit
    def test_unregister_is_noop_for_unknown(self, registries):
        """测试注销不存在的 id 无副作用"""
        registries.commands.register(make_command("a.x", "a"))

        assert registries.commands.unregister("a.y") is False
        assert registries.commands.unregister("a.x") is True
        assert registries.commands.unregister("a.x") is False

    @pytest.mark.unit
    def test_search(self, registries):
        """测试按名称/描述/分类搜索"""
        registries.commands.register(make_command("a.count", "a", name="Count Words"))
        registries.commands.register(
            make_command("b.daily", "b", name="Daily", description="open today's note")
        )
        registries.commands.register(make_command("c.t", "c", name="T", category="Tools"))

        assert [c.id for c in registries.commands.search("words")] == ["a.count"]
        assert [c.id for c in registries.commands.search("TODAY")] == ["b.daily"]
        assert [c.id for c in registries.commands.search("tools")] == ["c.t"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_execute_sync_and_async(self, registries):
        """测试执行同步和异步命令"""
        calls = []

        async def async_execute():
            calls.append("async")

        registries.commands.register(make_command("a.sync", "a", execute=lambda: calls.append("sync")))
        registries.commands.register(make_command("a.async", "a", execute=async_execute))

        assert await registries.commands.execute("a.sync") is True
        assert await registries.commands.execute("a.async") is True
        assert calls == ["sync", "async"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_execute_failure_is_contained(self, registries):
        """测试命令抛出异常时返回 False"""

        def boom():
            raise RuntimeError("boom")

        registries.commands.register(make_command("a.boom", "a", execute=boom))

        assert await registries.commands.execute("a.boom") is False
        assert await registries.commands.execute("a.missing") is False


class TestHookRegistry:
    """钩子与过滤器测试"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_trigger_in_priority_order(self, registries):
        """测试按优先级从高到低触发，失败的回调不影响后续"""
        order = []

        def failing(*args):
            raise ValueError("bad hook")

        hooks = registries.hooks
        hooks.register_hook(HookRegistration("a.1", HookType.ON_NOTE_SAVE, lambda p: order.append(("low", p)), "a", 1))
        hooks.register_hook(HookRegistration("b.1", HookType.ON_NOTE_SAVE, failing, "b", 50))
        hooks.register_hook(HookRegistration("c.1", HookType.ON_NOTE_SAVE, lambda p: order.append(("high", p)), "c", 20))

        await hooks.trigger(HookType.ON_NOTE_SAVE, "note.md")

        assert order == [("high", "note.md"), ("low", "note.md")]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_apply_filter_chains(self, registries):
        """测试数据依次流经过滤器"""

        async def shout(text):
            return text.upper()

        hooks = registries.hooks
        hooks.register_filter(FilterRegistration("a.1", FilterType.FILTER_NOTE_CONTENT, lambda t: t + "!", "a", 5))
        hooks.register_filter(FilterRegistration("b.1", FilterType.FILTER_NOTE_CONTENT, shout, "b", 10))

        result = await hooks.apply_filter(FilterType.FILTER_NOTE_CONTENT, "hi")

        assert result == "HI!"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failing_filter_is_skipped(self, registries):
        """测试失败的过滤器被跳过，数据保持上一步的结果"""

        def broken(data):
            raise KeyError("nope")

        registries.hooks.register_filter(
            FilterRegistration("a.1", FilterType.FILTER_SEARCH_RESULTS, broken, "a")
        )

        assert await registries.hooks.apply_filter(FilterType.FILTER_SEARCH_RESULTS, [1]) == [1]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_keyboard_interrupt_in_hook_is_contained(self, registries):
        """测试回调抛出 KeyboardInterrupt 也只影响它自己"""
        seen = []

        def interrupt(*args):
            raise KeyboardInterrupt("from hook")

        hooks = registries.hooks
        hooks.register_hook(HookRegistration("a.1", HookType.ON_APP_INIT, interrupt, "a", 50))
        hooks.register_hook(HookRegistration("b.1", HookType.ON_APP_INIT, lambda: seen.append("b"), "b", 1))

        await hooks.trigger(HookType.ON_APP_INIT)

        assert seen == ["b"]

    @pytest.mark.unit
    @pytest.mark.parametrize("hook_type", list(HookType))
    def test_every_hook_has_description(self, hook_type):
        assert get_hook_description(hook_type) != hook_type.name

    @pytest.mark.unit
    def test_unregister_callback(self, registries):
        """测试按回调函数注销钩子"""
        callback = lambda: None  # noqa: E731
        registries.hooks.register_hook(HookRegistration("a.1", HookType.ON_APP_INIT, callback, "a"))

        assert registries.hooks.unregister_callback(HookType.ON_APP_INIT, callback) is True
        assert registries.hooks.hook_registrations(HookType.ON_APP_INIT) == []

    @pytest.mark.unit
    def test_plugin_hooks(self, registries):
        """测试统计所有者使用的钩子和过滤器类型"""
        registries.hooks.register_hook(HookRegistration("a.1", HookType.ON_APP_INIT, print, "a"))
        registries.hooks.register_filter(FilterRegistration("a.2", FilterType.FILTER_COMMANDS, print, "a"))

        assert registries.hooks.plugin_hooks("a") == {
            "hooks": ["on_app_init"],
            "filters": ["filter_commands"],
        }


class TestUiRegistries:
    """插槽与菜单测试"""

    @pytest.mark.unit
    def test_slot_components_sorted(self, registries):
        """测试插槽组件按优先级排序"""
        registries.slots.register(SlotComponent("a.w", SlotType.STATUSBAR, "A", "a", 1))
        registries.slots.register(SlotComponent("b.w", SlotType.STATUSBAR, "B", "b", 9))

        assert [c.component for c in registries.slots.components(SlotType.STATUSBAR)] == ["B", "A"]
        assert registries.slots.components(SlotType.SIDEBAR) == []

    @pytest.mark.unit
    def test_context_menu_when_filter(self, registries):
        """测试右键菜单按 when 条件过滤，when 抛出异常视为隐藏"""

        def broken_when(ctx):
            raise RuntimeError("bad")

        menus = registries.context_menus
        menus.register(ContextMenuItem("a.open", ContextMenuType.NOTE_TREE, "Open", print, "a"))
        menus.register(
            ContextMenuItem(
                "a.md", ContextMenuType.NOTE_TREE, "Markdown only", print, "a",
                when=lambda ctx: (ctx.note_path or "").endswith(".md"),
            )
        )
        menus.register(ContextMenuItem("b.bad", ContextMenuType.NOTE_TREE, "Bad", print, "b", when=broken_when))

        context = ContextMenuContext(type=ContextMenuType.NOTE_TREE, note_path="todo.txt")

        assert len(menus.items(ContextMenuType.NOTE_TREE)) == 3
        assert [i.id for i in menus.items(ContextMenuType.NOTE_TREE, context)] == ["a.open"]

    @pytest.mark.unit
    def test_removing_category_drops_items(self, registries):
        """测试删除自定义分类时丢弃其条目"""
        menu_bar = registries.menu_bar
        menu_bar.register_category(CustomMenuCategory("a.git", "Git", "a"))
        menu_bar.register_item(MenuBarItem("a.pull", "a.git", "Pull", print, "a"))

        assert [i.id for i in menu_bar.items("a.git")] == ["a.pull"]

        assert menu_bar.unregister_category("a.git") is True
        assert menu_bar.items("a.git") == []
        assert menu_bar.categories() == []

    @pytest.mark.unit
    def test_builtin_categories(self, registries):
        """测试内置分类"""
        assert registries.menu_bar.is_builtin_category("tools") is True
        assert registries.menu_bar.is_builtin_category("a.git") is False


class TestOwnership:
    """所有者级操作测试"""

    def _populate(self, registries, owner):
        registries.commands.register(make_command(f"{owner}.cmd", owner))
        registries.hooks.register_hook(HookRegistration(f"{owner}.h", HookType.ON_APP_INIT, print, owner))
        registries.slots.register(SlotComponent(f"{owner}.s", SlotType.SIDEBAR, None, owner))
        registries.menu_bar.register_category(CustomMenuCategory(f"{owner}.cat", "Cat", owner))
        registries.menu_bar.register_item(MenuBarItem(f"{owner}.item", f"{owner}.cat", "Item", print, owner))

    @pytest.mark.unit
    def test_remove_owner_cascades(self, registries):
        """测试移除所有者的全部注册项，不影响其他所有者"""
        self._populate(registries, "a")
        self._populate(registries, "b")

        assert registries.count_owned("a") == 5
        registries.remove_owner("a")

        assert registries.count_owned("a") == 0
        assert registries.count_owned("b") == 5

    @pytest.mark.unit
    def test_suspend_and_resume(self, registries):
        """测试挂起后不可见，恢复后重新生效"""
        self._populate(registries, "a")

        registries.suspend("a")
        assert registries.commands.get("a.cmd") is None
        assert registries.hooks.hook_registrations(HookType.ON_APP_INIT) == []
        assert registries.menu_bar.categories() == []
        # 挂起不删除
        assert registries.count_owned("a") == 5

        registries.resume("a")
        assert registries.commands.get("a.cmd") is not None
        assert registries.is_suspended("a") is False


class TestPluginRegistry:
    """插件表测试"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unregister_runs_cleanup(self):
        """测试注销插件时执行 cleanup，cleanup 失败也会移除"""
        registries = CapabilityRegistries()
        calls = []

        def failing_cleanup():
            calls.append("cleanup")
            raise RuntimeError("cleanup failed")

        registries.plugins.register(Plugin(id="a", name="A", version="1", cleanup=failing_cleanup))

        assert "a" in registries.plugins
        assert await registries.plugins.unregister("a") is True
        assert calls == ["cleanup"]
        assert "a" not in registries.plugins
        assert await registries.plugins.unregister("a") is False
