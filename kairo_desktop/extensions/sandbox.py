"""
扩展沙箱执行器

在受限作用域中执行已校验的扩展源码，返回模块导出。

执行方式:
    源码在一个全新的命名空间中执行，命名空间只包含能力 API (kairo)、
    导出对象 (exports)，以及所有被屏蔽的全局标识符（绑定为 None）。
    命名空间的 __builtins__ 是宿主内置函数去掉被屏蔽标识符后的副本，
    因此扩展代码无法通过名字解析到宿主真实的全局对象。

注意:
    这不是语义级沙箱。扩展代码仍以宿主权限运行，
    屏蔽标识符加源码拒绝列表只是减速带，不是信任边界。
"""

import builtins
import functools
import logging
import os
import types
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Optional

from .errors import EvaluationError, PolicyBlockedError
from .validator import CodeValidator


logger = logging.getLogger(__name__)

DEFAULT_API_NAME = "kairo"
EXPORTS_NAME = "exports"

# 设置为 1/true/yes/on 时禁止动态代码
DISABLE_DYNAMIC_CODE_ENV = "KAIRO_DISABLE_DYNAMIC_CODE"

BLOCKED_GLOBALS: FrozenSet[str] = frozenset(
    {
        # 代码构造
        "eval",
        "exec",
        "compile",
        "__import__",
        "breakpoint",
        # 反射属性访问
        "getattr",
        "setattr",
        "delattr",
        # 存储 / IO 句柄
        "open",
        "input",
        "memoryview",
        # 网络
        "socket",
        "urllib",
        "http",
        "httpx",
        "requests",
        "websockets",
        # 全局对象别名
        "globals",
        "locals",
        "vars",
        "builtins",
        # 模块系统 / 进程
        "sys",
        "os",
        "importlib",
        "subprocess",
        "__loader__",
        "__spec__",
        "__file__",
        "__package__",
        "__path__",
        "__cached__",
        "exit",
        "quit",
        "help",
        "copyright",
        "credits",
        "license",
    }
)


@functools.lru_cache(maxsize=None)
def dynamic_code_allowed() -> bool:
    """
    检测运行环境是否允许构造新的可执行代码

    进程级，只计算一次并缓存。宿主可以通过审计钩子
    (sys.addaudithook) 拒绝 compile/exec，或设置环境变量
    KAIRO_DISABLE_DYNAMIC_CODE 直接禁止。

    Returns:
        bool: 是否允许动态代码
    """
    flag = os.environ.get(DISABLE_DYNAMIC_CODE_ENV, "").strip().lower()
    if flag in ("1", "true", "yes", "on"):
        logger.info(f"动态代码已被环境变量 {DISABLE_DYNAMIC_CODE_ENV} 禁止")
        return False

    namespace: Dict[str, Any] = {"__builtins__": {}}
    try:
        probe = compile("probe = 1", "<kairo-policy-probe>", "exec")
        exec(probe, namespace)
    except Exception as e:
        logger.warning(f"宿主策略禁止动态代码: {type(e).__name__}: {e}")
        return False

    return namespace.get("probe") == 1


def build_safe_builtins() -> Dict[str, Any]:
    """构建去掉被屏蔽标识符的内置函数字典（每次返回新副本）"""
    return {
        name: value
        for name, value in vars(builtins).items()
        if name not in BLOCKED_GLOBALS
    }


class ExtensionExports(types.SimpleNamespace):
    """扩展写入导出内容的空对象"""


@dataclass
class SandboxExecutionResult:
    """
    沙箱执行结果

    只在扩展加载期间以闭包形式持有。

    Attributes:
        initialize: 扩展导出的初始化函数
        cleanup: 扩展导出的清理函数
        exports: 扩展写入的完整导出对象
    """

    initialize: Optional[Callable[..., Any]] = None
    cleanup: Optional[Callable[..., Any]] = None
    exports: Optional[ExtensionExports] = None


class SandboxEvaluator:
    """
    沙箱执行器

    执行前依次检查：宿主策略是否允许动态代码 -> 源码校验。
    两者都通过后才会编译并执行源码。

    Example:
        ```python
        evaluator = SandboxEvaluator()
        result = evaluator.evaluate(source, api, "word-count")
        if result.initialize:
            await result.initialize(api)
        ```
    """

    def __init__(
        self,
        validator: Optional[CodeValidator] = None,
        api_name: str = DEFAULT_API_NAME,
        allow_dynamic_code: bool = True,
        policy_check: Callable[[], bool] = dynamic_code_allowed,
    ):
        """
        初始化沙箱执行器

        Args:
            validator: 源码校验器，默认使用 500 KiB 上限
            api_name: 能力 API 在扩展代码中的名字
            allow_dynamic_code: 配置层面的总开关
            policy_check: 宿主策略检测函数
        """
        if api_name in BLOCKED_GLOBALS or api_name == EXPORTS_NAME:
            raise ValueError(f"api_name 不可用: {api_name}")

        self._validator = validator or CodeValidator()
        self._api_name = api_name
        self._allow_dynamic_code = allow_dynamic_code
        self._policy_check = policy_check

    @property
    def validator(self) -> CodeValidator:
        """源码校验器"""
        return self._validator

    @property
    def api_name(self) -> str:
        """能力 API 名字"""
        return self._api_name

    def is_permitted(self) -> bool:
        """当前环境是否允许执行扩展代码"""
        return self._allow_dynamic_code and self._policy_check()

    def build_scope(self, api: Any, exports: ExtensionExports, extension_id: str) -> Dict[str, Any]:
        """构建扩展代码的执行命名空间"""
        scope: Dict[str, Any] = {name: None for name in BLOCKED_GLOBALS}
        scope.update(
            {
                "__builtins__": build_safe_builtins(),
                "__name__": f"kairo_extension:{extension_id}",
                "__doc__": None,
                self._api_name: api,
                EXPORTS_NAME: exports,
            }
        )
        return scope

    def evaluate(self, source: str, api: Any, extension_id: str) -> SandboxExecutionResult:
        """
        在沙箱中执行扩展源码

        Args:
            source: 扩展源码
            api: 该扩展的能力 API 实例
            extension_id: 扩展 id

        Returns:
            SandboxExecutionResult: 扩展导出的 initialize / cleanup

        Raises:
            PolicyBlockedError: 宿主策略禁止动态代码
            ValidationError: 源码校验失败
            EvaluationError: 顶层代码执行失败
        """
        if not self.is_permitted():
            raise PolicyBlockedError("宿主策略禁止执行动态代码", extension_id)

        self._validator.validate(source, extension_id)

        exports = ExtensionExports()
        scope = self.build_scope(api, exports, extension_id)

        try:
            code = compile(source, f"<extension:{extension_id}>", "exec", dont_inherit=True)
            exec(code, scope)
        except BaseException as e:
            # 扩展可以抛出 KeyboardInterrupt 等非 Exception 异常
            raise EvaluationError(
                f"执行扩展代码失败: {type(e).__name__}: {e}", extension_id
            ) from e

        initialize = vars(exports).get("initialize")
        cleanup = vars(exports).get("cleanup")

        return SandboxExecutionResult(
            initialize=initialize if callable(initialize) else None,
            cleanup=cleanup if callable(cleanup) else None,
            exports=exports,
        )
