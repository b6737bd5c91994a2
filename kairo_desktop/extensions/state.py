"""
宿主状态存储

扩展只能读取宿主状态的快照，不能修改：
- Store: 单个命名存储，支持 set_state / subscribe
- HostStores: 固定的一组命名存储 (vault, notes, ui, search)

笔记、仓库、界面、搜索的真实数据由宿主维护，
宿主在数据变化时调用 Store.set_state 推送过来。
"""

import copy
import logging
from typing import Any, Callable, Dict, List


logger = logging.getLogger(__name__)

StoreListener = Callable[[Dict[str, Any]], None]

STORE_NAMES = ("vault", "notes", "ui", "search")


def _default_state(name: str) -> Dict[str, Any]:
    defaults: Dict[str, Dict[str, Any]] = {
        "vault": {"name": None, "path": None, "note_count": 0},
        "notes": {
            "list": [],
            "current": None,
            "has_unsaved_changes": False,
            "editor_content": "",
        },
        "ui": {"is_sidebar_collapsed": False, "main_view_mode": "editor", "theme": "dark"},
        "search": {"query": "", "results": []},
    }
    return defaults[name]


class Store:
    """
    命名存储

    所有读取都返回深拷贝，监听器收到的也是拷贝，
    扩展无法通过快照修改宿主状态。
    """

    def __init__(self, name: str, initial: Dict[str, Any]):
        self._name = name
        self._state: Dict[str, Any] = copy.deepcopy(initial)
        self._listeners: List[StoreListener] = []

    @property
    def name(self) -> str:
        """存储名"""
        return self._name

    def get_state(self) -> Dict[str, Any]:
        """获取状态快照"""
        return copy.deepcopy(self._state)

    def set_state(self, **changes: Any) -> None:
        """更新状态并通知监听器（由宿主调用）"""
        self._state.update(copy.deepcopy(changes))
        for listener in list(self._listeners):
            try:
                listener(self.get_state())
            except BaseException as e:
                logger.error(f"存储 {self._name} 的监听器失败: {e}")

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """
        订阅状态变化

        Returns:
            取消订阅函数（重复调用无副作用）
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        """当前监听器数量"""
        return len(self._listeners)


class HostStores:
    """宿主命名存储集合"""

    def __init__(self):
        self._stores: Dict[str, Store] = {
            name: Store(name, _default_state(name)) for name in STORE_NAMES
        }

    def get(self, name: str) -> Store:
        """
        获取命名存储

        Raises:
            ValueError: 未知的存储名
        """
        store = self._stores.get(name)
        if store is None:
            raise ValueError(
                f"未知的存储: {name!r}，可用: {', '.join(STORE_NAMES)}"
            )
        return store

    def snapshot(self) -> Dict[str, Any]:
        """组装所有存储的状态快照"""
        return {name: store.get_state() for name, store in self._stores.items()}

    def subscribe(self, name: str, listener: StoreListener) -> Callable[[], None]:
        """订阅某个命名存储"""
        return self.get(name).subscribe(listener)
