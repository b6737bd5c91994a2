"""
能力 API 单元测试

测试命名空间、注册/注销、状态快照、订阅和样式。
"""

import pytest

from kairo_desktop.extensions import ContextMenuType, HookType, LogLevel, SlotType
from kairo_desktop.extensions.api import API_SURFACE, ExtensionApi


class TestNamespacing:
    """限定 id 测试"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_same_local_id_does_not_collide(self, make_api, registries):
        """测试两个扩展注册同一本地 id 得到不同的限定 id，互不影响"""
        calls = []
        a = make_api("A")
        b = make_api("B")

        assert a.register_command(id="x", name="X", execute=lambda: calls.append("A")) == "x"
        b.register_command(id="x", name="X", execute=lambda: calls.append("B"))

        assert registries.commands.get("A.x").owner == "A"
        assert registries.commands.get("B.x").owner == "B"

        assert await registries.commands.execute("A.x") is True
        assert await registries.commands.execute("B.x") is True
        assert calls == ["A", "B"]

    @pytest.mark.unit
    def test_unregister_uses_local_id(self, make_api, registries):
        """测试用本地 id 注销，只影响自己的注册"""
        a = make_api("A")
        b = make_api("B")
        a.register_command(id="x", name="X", execute=print)
        b.register_command(id="x", name="X", execute=print)

        assert a.unregister_command("x") is True
        assert registries.commands.get("A.x") is None
        assert registries.commands.get("B.x") is not None

    @pytest.mark.unit
    @pytest.mark.parametrize("bad_id", ["", None, 3])
    def test_rejects_invalid_local_id(self, make_api, bad_id):
        """测试非法的本地 id"""
        with pytest.raises(ValueError):
            make_api("A").register_command(id=bad_id, name="X", execute=print)

    @pytest.mark.unit
    def test_rejects_non_callable_execute(self, make_api):
        """测试 execute 必须可调用"""
        with pytest.raises(TypeError):
            make_api("A").register_command(id="x", name="X", execute="not callable")


class TestHooksAndFilters:
    """钩子与过滤器测试"""

    @pytest.mark.unit
    def test_hook_ids_are_assigned(self, make_api, registries):
        """测试钩子的本地 id 由运行时分配"""
        api = make_api("A")

        first = api.register_hook("on_note_save", print)
        second = api.register_hook(HookType.ON_NOTE_SAVE, print, priority=50)

        assert first != second
        assert first.startswith("on_note_save.")
        ids = [r.id for r in registries.hooks.hook_registrations(HookType.ON_NOTE_SAVE)]
        assert ids == [f"A.{second}", f"A.{first}"]

        assert api.unregister_hook(first) is True
        assert api.unregister_hook(first) is False

    @pytest.mark.unit
    def test_unknown_hook_type(self, make_api):
        """测试未知钩子类型被拒绝"""
        with pytest.raises(ValueError):
            make_api("A").register_hook("on_everything", print)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_filter(self, make_api, registries):
        """测试注册过滤器"""
        api = make_api("A")
        filter_id = api.register_filter("filter_note_content", lambda text: text.strip())

        assert await registries.hooks.apply_filter("filter_note_content", "  hi  ") == "hi"
        assert api.unregister_filter(filter_id) is True


class TestUiRegistration:
    """插槽与菜单测试"""

    @pytest.mark.unit
    def test_slot(self, make_api, registries):
        """测试注册插槽组件"""
        api = make_api("A")
        api.register_slot("statusbar", "counter", {"text": "0 words"})

        components = registries.slots.components(SlotType.STATUSBAR)
        assert [c.id for c in components] == ["A.counter"]
        assert api.unregister_slot("statusbar", "counter") is True

    @pytest.mark.unit
    def test_context_menu_item(self, make_api, registries):
        """测试注册右键菜单项"""
        api = make_api("A")
        api.register_context_menu_item("editor", "copy-link", "Copy Link", print, divider=True)

        items = registries.context_menus.items(ContextMenuType.EDITOR)
        assert [i.id for i in items] == ["A.copy-link"]
        assert items[0].divider is True
        assert api.unregister_context_menu_item("editor", "copy-link") is True

    @pytest.mark.unit
    def test_menu_item_in_builtin_category(self, make_api, registries):
        """测试内置分类下的条目不加命名空间前缀到分类"""
        api = make_api("A")
        api.register_menu_item("tools", "stats", "Stats", print)

        assert [i.id for i in registries.menu_bar.items("tools")] == ["A.stats"]

    @pytest.mark.unit
    def test_menu_item_in_custom_category(self, make_api, registries):
        """测试自定义分类使用限定 id"""
        api = make_api("A")
        api.register_menu_category("git", "Git", priority=3)
        api.register_menu_item("git", "pull", "Pull", print)

        assert [c.id for c in registries.menu_bar.categories()] == ["A.git"]
        assert [i.id for i in registries.menu_bar.items("A.git")] == ["A.pull"]

        assert api.unregister_menu_category("git") is True
        assert registries.menu_bar.items("A.git") == []

    @pytest.mark.unit
    def test_menu_item_in_unknown_category(self, make_api):
        """测试未注册的分类被拒绝"""
        with pytest.raises(ValueError):
            make_api("A").register_menu_item("nowhere", "x", "X", print)

    @pytest.mark.unit
    def test_cannot_use_other_extensions_category(self, make_api):
        """测试不能向其他扩展的分类添加条目"""
        make_api("A").register_menu_category("git", "Git")

        with pytest.raises(ValueError):
            make_api("B").register_menu_item("git", "x", "X", print)


class TestState:
    """状态快照与订阅测试"""

    @pytest.mark.unit
    def test_get_state_is_a_copy(self, make_api, stores):
        """测试修改快照不影响宿主状态"""
        stores.get("notes").set_state(list=[{"path": "a.md"}])
        api = make_api("A")

        snapshot = api.get_state()
        snapshot["notes"]["list"].append({"path": "evil.md"})
        snapshot["ui"]["theme"] = "hacked"

        fresh = api.get_state()
        assert fresh["notes"]["list"] == [{"path": "a.md"}]
        assert fresh["ui"]["theme"] == "dark"
        assert set(fresh) == {"vault", "notes", "ui", "search"}

    @pytest.mark.unit
    def test_subscribe_and_unsubscribe(self, make_api, stores):
        """测试订阅命名存储"""
        seen = []
        api = make_api("A")

        unsubscribe = api.subscribe("search", lambda state: seen.append(state["query"]))
        stores.get("search").set_state(query="kairo")
        unsubscribe()
        stores.get("search").set_state(query="ignored")

        assert seen == ["kairo"]

    @pytest.mark.unit
    def test_unknown_store(self, make_api):
        """测试未知的存储名"""
        with pytest.raises(ValueError):
            make_api("A").subscribe("secrets", print)

    @pytest.mark.unit
    def test_dispose_drops_all_subscriptions(self, make_api, stores):
        """测试 dispose 取消所有订阅"""
        api = make_api("A")
        api.subscribe("notes", print)
        api.subscribe("ui", print)

        api.dispose()

        assert stores.get("notes").listener_count == 0
        assert stores.get("ui").listener_count == 0


class TestStylesAndLogging:
    """样式与日志测试"""

    @pytest.mark.unit
    def test_add_styles_while_suspended_stays_suspended(self, make_api, registries, styles):
        """测试扩展挂起期间注入的样式等到恢复后才生效"""
        api = make_api("A")
        api.add_styles(".a { color: red; }")
        registries.suspend("A")
        styles.suspend("A")

        api.add_styles(".a { color: blue; }")
        assert styles.get("A") is None

        registries.resume("A")
        styles.resume("A")
        assert styles.get("A") == ".a { color: blue; }"

    @pytest.mark.unit
    def test_subscription_paused_while_suspended(self, make_api, registries, stores):
        seen = []
        make_api("A").subscribe("ui", lambda state: seen.append(state["theme"]))

        registries.suspend("A")
        stores.get("ui").set_state(theme="light")
        registries.resume("A")
        stores.get("ui").set_state(theme="dark")

        assert seen == ["dark"]

    @pytest.mark.unit
    def test_add_styles_replaces_previous_block(self, make_api, styles):
        """测试同一扩展最多一个样式块"""
        api = make_api("A")
        api.add_styles(".a { color: red; }")
        api.add_styles(".a { color: blue; }")

        assert styles.active_styles == {"A": ".a { color: blue; }"}

        api.remove_styles()
        api.remove_styles()
        assert styles.has("A") is False

    @pytest.mark.unit
    def test_log_is_bound_to_extension(self, make_api, logs):
        """测试日志绑定扩展 id，详情被序列化"""
        api = make_api("A")
        api.log.warn("careful", {"words": 3})

        entry = logs.entries[0]
        assert entry.extension_id == "A"
        assert entry.level == LogLevel.WARN
        assert entry.details == '{"words": 3}'


class TestFacade:
    """交给扩展代码的对象测试"""

    @pytest.mark.unit
    def test_facade_exposes_only_public_surface(self, make_api):
        """测试 facade 只包含公开方法"""
        facade = make_api("A").facade()

        assert isinstance(facade, ExtensionApi)
        assert set(vars(facade)) == set(API_SURFACE) | {"log", "extension_id"}
        assert not hasattr(facade, "_registries")
        assert facade.extension_id == "A"
