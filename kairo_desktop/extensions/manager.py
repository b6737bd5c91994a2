"""
扩展管理器

负责扩展的完整生命周期管理：
- 扩展发现与加载（同目录重复加载即热重载）
- 扩展启用/禁用（挂起或恢复注册项与样式）
- 扩展卸载与删除
- 调试控制台日志

所有公开方法都在边界处捕获异常，失败信息写入日志存储和 Extension.error，
不会向宿主抛出。
"""

import asyncio
import inspect
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from ..config import RuntimeConfig
from .api import CapabilityAPI, ExtensionApi, create_capability_api
from .base import Extension, Plugin
from .errors import (
    EvaluationError,
    ExtensionConflictError,
    ExtensionError,
    ManifestError,
    PolicyBlockedError,
)
from .hooks import HookType
from .host import ExtensionHost, LocalExtensionHost, get_extensions_path
from .logs import SYSTEM_EXTENSION_ID, ExtensionLog, LogLevel, LogStore
from .manifest import ManifestLoader
from .registries import CapabilityRegistries
from .sandbox import SandboxEvaluator
from .settings import SettingsStore
from .state import HostStores
from .styles import StyleManager
from .validator import CodeValidator


logger = logging.getLogger(__name__)

DEFAULT_INITIALIZE_TIMEOUT = 10.0


def _accepts_api(func: Callable[..., Any]) -> bool:
    """扩展导出的函数是否接受能力 API 参数"""
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return True
    try:
        signature.bind(None)
    except TypeError:
        return False
    return True


def _same_folder(a: str, b: str) -> bool:
    return Path(a).resolve() == Path(b).resolve()


def _host_cancelled() -> bool:
    """当前任务是否被宿主取消（而不是扩展自己抛出 CancelledError）"""
    task = asyncio.current_task()
    cancelling = getattr(task, "cancelling", None)
    if cancelling is None:
        # Python 3.11 之前无法区分，按宿主取消处理
        return True
    return cancelling() > 0


def _failure(stage: str, extension_id: str, error: BaseException) -> EvaluationError:
    return EvaluationError(f"{stage} 失败: {type(error).__name__}: {error}", extension_id)


async def _guard(awaitable: Any, extension_id: str, stage: str) -> Any:
    """
    在扩展协程内部把异常转换为 EvaluationError

    wait_for 可能把协程包装成独立任务，KeyboardInterrupt 等异常
    越过任务边界时会被事件循环重新抛出。
    """
    try:
        return await awaitable
    except asyncio.CancelledError:
        raise
    except BaseException as e:
        raise _failure(stage, extension_id, e) from e


class ExtensionRegistry:
    """
    扩展管理器

    独占 id -> Extension 映射，驱动扩展的生命周期:
        扫描 -> 解析 manifest -> 检查设置 -> 读取源码 -> 校验 -> 沙箱执行
        -> initialize(api) -> 注册为 Plugin -> 已加载

    Example:
        ```python
        registry = ExtensionRegistry(LocalExtensionHost())

        # 打开仓库：加载设置并扫描 <vault>/.kairo/extensions
        await registry.open_vault("/path/to/vault")

        # 禁用 / 启用
        await registry.disable_extension("word-count")
        await registry.enable_extension("word-count")

        # 执行扩展注册的命令
        await registry.registries.commands.execute("word-count.show-stats")
        ```
    """

    def __init__(
        self,
        host: ExtensionHost,
        registries: Optional[CapabilityRegistries] = None,
        styles: Optional[StyleManager] = None,
        stores: Optional[HostStores] = None,
        logs: Optional[LogStore] = None,
        settings: Optional[SettingsStore] = None,
        evaluator: Optional[SandboxEvaluator] = None,
        initialize_timeout: Optional[float] = DEFAULT_INITIALIZE_TIMEOUT,
    ):
        """
        初始化扩展管理器

        Args:
            host: 宿主文件系统接口
            registries: 能力注册表集合
            styles: 样式管理器
            stores: 宿主命名存储
            logs: 日志存储
            settings: 扩展设置存储
            evaluator: 沙箱执行器
            initialize_timeout: initialize/cleanup 超时（秒），None 表示不限制
        """
        self._host = host
        self._registries = registries if registries is not None else CapabilityRegistries()
        self._styles = styles if styles is not None else StyleManager()
        self._stores = stores if stores is not None else HostStores()
        # LogStore 定义了 __len__，空存储为假值
        self._logs = logs if logs is not None else LogStore()
        self._settings = settings if settings is not None else SettingsStore(host, self._logs)
        self._evaluator = evaluator if evaluator is not None else SandboxEvaluator()
        self._manifest_loader = ManifestLoader(host)
        self._initialize_timeout = initialize_timeout

        self._extensions: Dict[str, Extension] = {}
        self._apis: Dict[str, CapabilityAPI] = {}
        self._vault: Optional[str] = None

        logger.info(f"扩展管理器初始化: api_name={self._evaluator.api_name}")

    @classmethod
    def from_config(
        cls, config: RuntimeConfig, host: Optional[ExtensionHost] = None
    ) -> "ExtensionRegistry":
        """根据运行时配置创建扩展管理器"""
        sandbox = config.sandbox
        return cls(
            host or LocalExtensionHost(),
            logs=LogStore(
                max_logs=config.console.max_logs,
                console_open=config.console.open_on_start,
            ),
            evaluator=SandboxEvaluator(
                validator=CodeValidator(sandbox.max_source_bytes),
                api_name=sandbox.api_name,
                allow_dynamic_code=sandbox.allow_dynamic_code,
            ),
            initialize_timeout=sandbox.initialize_timeout,
        )

    # ==================== 属性 ====================

    @property
    def registries(self) -> CapabilityRegistries:
        """能力注册表集合"""
        return self._registries

    @property
    def styles(self) -> StyleManager:
        """样式管理器"""
        return self._styles

    @property
    def stores(self) -> HostStores:
        """宿主命名存储"""
        return self._stores

    @property
    def logs(self) -> LogStore:
        """日志存储"""
        return self._logs

    @property
    def settings(self) -> SettingsStore:
        """扩展设置存储"""
        return self._settings

    @property
    def vault(self) -> Optional[str]:
        """当前打开的仓库"""
        return self._vault

    @property
    def extensions(self) -> Dict[str, Extension]:
        """所有已注册的扩展"""
        return self._extensions.copy()

    def get_extension(self, extension_id: str) -> Optional[Extension]:
        """获取扩展记录"""
        return self._extensions.get(extension_id)

    def list_extensions(self) -> List[Dict[str, Any]]:
        """列出所有扩展信息"""
        return [ext.to_dict() for ext in self._extensions.values()]

    # ==================== 仓库 ====================

    async def open_vault(self, vault_path: str) -> List[str]:
        """
        打开仓库

        卸载当前所有扩展，加载仓库的扩展设置，
        然后扫描 <vault>/.kairo/extensions。

        Args:
            vault_path: 仓库路径

        Returns:
            List[str]: 成功加载的扩展 id
        """
        if self._vault is not None:
            await self._registries.hooks.trigger(HookType.ON_VAULT_CLOSE, {"path": self._vault})
        for extension_id in list(self._extensions):
            await self._teardown(extension_id)
        self._extensions.clear()

        self._vault = vault_path
        await self._settings.load(vault_path)
        self._stores.get("vault").set_state(name=Path(vault_path).name, path=vault_path)

        loaded = await self.load_extensions_from_folder(get_extensions_path(vault_path))
        await self._registries.hooks.trigger(
            HookType.ON_VAULT_OPEN, self._stores.get("vault").get_state()
        )
        return loaded

    # ==================== 扩展发现与加载 ====================

    async def load_extensions_from_folder(self, folder_path: str) -> List[str]:
        """
        发现并加载目录下的所有扩展

        按目录列表顺序逐个加载，单个扩展失败不影响其他扩展。

        Args:
            folder_path: 扩展根目录

        Returns:
            List[str]: 成功加载的扩展 id
        """
        self._logs.info(SYSTEM_EXTENSION_ID, f"扫描扩展目录: {folder_path}")

        try:
            folders = await self._host.list_extension_folders(folder_path)
        except Exception as e:
            self._logs.error(SYSTEM_EXTENSION_ID, f"扫描扩展目录失败: {folder_path}", str(e))
            return []

        self._logs.info(SYSTEM_EXTENSION_ID, f"发现 {len(folders)} 个扩展")

        loaded = []
        for folder in folders:
            extension = await self._load(folder)
            if extension is not None and extension.loaded:
                loaded.append(extension.id)

        logger.info(f"加载了 {len(loaded)} 个扩展: {loaded}")
        return loaded

    async def load_extension(self, extension_path: str) -> bool:
        """
        加载单个扩展

        同一目录的扩展已注册时先卸载再重新加载；
        其他目录声明了相同 id 时拒绝加载。

        Args:
            extension_path: 扩展目录

        Returns:
            bool: 扩展是否注册成功且没有错误（被禁用或被策略阻止也算成功）
        """
        extension = await self._load(extension_path)
        return extension is not None and extension.error is None

    async def _load(self, extension_path: str) -> Optional[Extension]:
        try:
            manifest = await self._manifest_loader.load(extension_path)
        except ManifestError as e:
            self._logs.error(
                SYSTEM_EXTENSION_ID, f"读取扩展 manifest 失败: {extension_path}", e.message
            )
            return None

        try:
            existing = self._extensions.get(manifest.id)
            if existing is not None:
                if not _same_folder(existing.install_path, extension_path):
                    raise ExtensionConflictError(
                        f"扩展 id 已被 {existing.install_path} 注册，拒绝加载 {extension_path}",
                        manifest.id,
                    )
                self._logs.info(manifest.id, "扩展已注册，重新加载")
                await self._teardown(manifest.id)
        except ExtensionConflictError as e:
            self._logs.error(SYSTEM_EXTENSION_ID, f"扩展 id 冲突: {manifest.id}", e.message)
            return None

        extension = Extension(
            manifest=manifest,
            install_path=extension_path,
            enabled=self._settings.is_enabled(manifest.id),
        )
        self._extensions[manifest.id] = extension

        if not extension.enabled:
            self._logs.info(manifest.id, "扩展已禁用，跳过加载")
            return extension

        await self._activate(extension)
        return extension

    async def _activate(self, extension: Extension) -> bool:
        """读取、校验、执行扩展代码并调用 initialize"""
        extension_id = extension.id
        extension.loading = True
        extension.error = None
        extension.policy_blocked = False

        self._logs.info(extension_id, f"正在加载扩展: {extension}")

        api = create_capability_api(
            extension_id, self._registries, self._styles, self._stores, self._logs
        )
        facade = api.facade()

        try:
            entry = ManifestLoader.entry_path(extension.install_path, extension.manifest)
            source = await self._host.read_file_text(entry)
            result = self._evaluator.evaluate(source, facade, extension_id)
            if result.initialize is not None:
                await self._call_extension(result.initialize, facade, extension_id, "initialize")
        except PolicyBlockedError as e:
            self._discard(extension_id, api)
            extension.policy_blocked = True
            self._logs.warn(extension_id, "宿主策略禁止执行扩展代码，扩展未加载", e.message)
            return False
        except ExtensionError as e:
            self._discard(extension_id, api)
            extension.error = e.message
            self._logs.error(extension_id, "加载扩展失败", e.message)
            return False
        except Exception as e:
            self._discard(extension_id, api)
            extension.error = f"{type(e).__name__}: {e}"
            self._logs.error(extension_id, "加载扩展失败", extension.error)
            return False
        finally:
            extension.loading = False

        self._apis[extension_id] = api
        self._registries.plugins.register(
            Plugin.from_manifest(
                extension.manifest, cleanup=self._bind_cleanup(result.cleanup, facade, extension_id)
            )
        )
        extension.loaded = True

        await self._registries.hooks.trigger(HookType.ON_PLUGIN_LOAD, extension_id)
        self._logs.info(
            extension_id,
            f"扩展已加载: {extension}",
            f"{self._registries.count_owned(extension_id)} 个注册项",
        )
        return True

    async def _call_extension(
        self,
        func: Callable[..., Any],
        facade: ExtensionApi,
        extension_id: str,
        stage: str,
    ) -> None:
        """
        调用扩展导出的函数，返回可等待对象时在超时限制内等待

        Raises:
            EvaluationError: 函数抛出异常或超时
        """
        try:
            outcome = func(facade) if _accepts_api(func) else func()
            if inspect.isawaitable(outcome):
                guarded = _guard(outcome, extension_id, stage)
                if self._initialize_timeout is None:
                    await guarded
                else:
                    await asyncio.wait_for(guarded, self._initialize_timeout)
        except EvaluationError:
            raise
        except asyncio.TimeoutError:
            raise EvaluationError(
                f"{stage} 超时 ({self._initialize_timeout}s)", extension_id
            ) from None
        except asyncio.CancelledError:
            if _host_cancelled():
                raise
            raise EvaluationError(f"{stage} 被取消", extension_id) from None
        except BaseException as e:
            raise _failure(stage, extension_id, e) from e

    def _bind_cleanup(
        self,
        cleanup: Optional[Callable[..., Any]],
        facade: ExtensionApi,
        extension_id: str,
    ) -> Optional[Callable[[], Any]]:
        if cleanup is None:
            return None

        async def run_cleanup() -> None:
            try:
                await self._call_extension(cleanup, facade, extension_id, "cleanup")
            except EvaluationError as e:
                self._logs.error(extension_id, "扩展 cleanup 失败", e.message)

        return run_cleanup

    def _discard(self, extension_id: str, api: CapabilityAPI) -> None:
        """撤销加载失败的扩展已经做出的注册"""
        api.dispose()
        self._registries.remove_owner(extension_id)
        self._styles.remove(extension_id)

    async def _teardown(self, extension_id: str) -> None:
        """执行 cleanup，移除注册项、样式和订阅"""
        # cleanup 在注册项移除之前执行
        await self._registries.plugins.unregister(extension_id)

        api = self._apis.pop(extension_id, None)
        if api is not None:
            api.dispose()

        removed = self._registries.remove_owner(extension_id)
        self._styles.remove(extension_id)
        if api is not None:
            await self._registries.hooks.trigger(HookType.ON_PLUGIN_UNLOAD, extension_id)

        extension = self._extensions.get(extension_id)
        if extension is not None:
            extension.loaded = False
            extension.policy_blocked = False

        logger.debug(f"已清理扩展 {extension_id}: 移除 {removed} 个注册项")

    # ==================== 卸载 / 删除 ====================

    async def unload_extension(self, extension_id: str) -> bool:
        """
        卸载扩展

        执行 cleanup 并移除所有注册项和样式，扩展记录保留。

        Returns:
            bool: 是否成功卸载
        """
        if extension_id not in self._extensions:
            self._logs.warn(SYSTEM_EXTENSION_ID, f"扩展不存在: {extension_id}")
            return False

        try:
            await self._teardown(extension_id)
        except Exception as e:
            self._logs.error(extension_id, "卸载扩展失败", str(e))
            return False

        self._logs.info(extension_id, "扩展已卸载")
        return True

    async def remove_extension(self, extension_id: str) -> bool:
        """
        删除扩展

        卸载扩展，删除记录和设置键，并通过宿主删除扩展目录。

        Returns:
            bool: 是否全部成功
        """
        if extension_id not in self._extensions:
            self._logs.warn(SYSTEM_EXTENSION_ID, f"扩展不存在: {extension_id}")
            return False

        try:
            await self._teardown(extension_id)
        except Exception as e:
            self._logs.error(extension_id, "卸载扩展失败", str(e))

        del self._extensions[extension_id]
        await self._settings.remove(extension_id)

        if self._vault is not None:
            try:
                await self._host.remove_extension(self._vault, extension_id)
            except Exception as e:
                self._logs.error(extension_id, "删除扩展目录失败", str(e))
                return False

        self._logs.info(extension_id, "扩展已删除")
        return True

    # ==================== 扩展启用/禁用 ====================

    async def enable_extension(self, extension_id: str) -> bool:
        """
        启用扩展

        已加载过的扩展直接恢复注册项和样式；
        从未成功加载的扩展（包括之前出错的）会执行一次完整加载。

        Returns:
            bool: 是否成功启用
        """
        extension = self._extensions.get(extension_id)
        if extension is None:
            self._logs.warn(SYSTEM_EXTENSION_ID, f"扩展不存在: {extension_id}")
            return False

        extension.enabled = True
        await self._settings.set_enabled(extension_id, True)

        if extension.loaded:
            self._registries.resume(extension_id)
            self._styles.resume(extension_id)
            self._registries.plugins.set_enabled(extension_id, True)
            self._logs.info(extension_id, "扩展已启用")
            return True

        if not await self._activate(extension):
            return False

        self._logs.info(extension_id, "扩展已启用")
        return True

    async def disable_extension(self, extension_id: str) -> bool:
        """
        禁用扩展

        注册项和样式被挂起但不删除，也不执行 cleanup。重复调用无副作用。

        Returns:
            bool: 是否成功禁用
        """
        extension = self._extensions.get(extension_id)
        if extension is None:
            self._logs.warn(SYSTEM_EXTENSION_ID, f"扩展不存在: {extension_id}")
            return False

        extension.enabled = False
        await self._settings.set_enabled(extension_id, False)

        if extension.loaded:
            self._registries.suspend(extension_id)
            self._styles.suspend(extension_id)
            self._registries.plugins.set_enabled(extension_id, False)

        self._logs.info(extension_id, "扩展已禁用")
        return True

    # ==================== 调试控制台 ====================

    def log(
        self,
        level: Union[LogLevel, str],
        extension_id: str,
        message: str,
        details: Optional[str] = None,
    ) -> ExtensionLog:
        """追加一条日志"""
        return self._logs.log(level, extension_id, message, details)

    def clear_logs(self) -> None:
        """清空日志"""
        self._logs.clear()

    def toggle_console(self) -> bool:
        """切换调试控制台"""
        return self._logs.toggle_console()

    def set_console_open(self, open_: bool) -> None:
        """设置调试控制台可见性"""
        self._logs.set_console_open(open_)
