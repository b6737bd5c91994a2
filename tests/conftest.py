"""
pytest 配置和共享 fixtures

提供测试所需的共享注册表、内存宿主和磁盘上的扩展目录。
"""

import json
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

# 将 kairo_desktop 添加到路径
sys.path.insert(0, str(Path(__file__).parent.parent))

from kairo_desktop.extensions import (
    CapabilityRegistries,
    ExtensionHost,
    ExtensionRegistry,
    HostStores,
    LocalExtensionHost,
    LogStore,
    SandboxEvaluator,
    StyleManager,
    create_capability_api,
    get_extensions_path,
)


# ============ 宿主 ============


class InMemoryExtensionHost(ExtensionHost):
    """内存宿主，记录每次调用，可模拟写入失败"""

    def __init__(self):
        self.folders: Dict[str, List[str]] = {}
        self.files: Dict[str, str] = {}
        self.settings: Dict[str, str] = {}
        self.removed: List[str] = []
        self.fail_save = False

    def add_extension(self, root: str, name: str, manifest: dict, source: str) -> str:
        folder = f"{root}/{name}"
        self.folders.setdefault(root, []).append(folder)
        self.files[f"{folder}/manifest.json"] = json.dumps(manifest)
        self.files[f"{folder}/{manifest.get('main', 'main.py')}"] = source
        return folder

    async def list_extension_folders(self, root: str) -> List[str]:
        return list(self.folders.get(root, []))

    async def read_extension_manifest(self, folder: str) -> str:
        path = f"{folder}/manifest.json"
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    async def read_file_text(self, path: str) -> str:
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    async def read_extension_settings(self, vault: str) -> Optional[str]:
        return self.settings.get(vault)

    async def save_extension_settings(self, vault: str, text: str) -> None:
        if self.fail_save:
            raise OSError("磁盘已满")
        self.settings[vault] = text

    async def remove_extension(self, vault: str, extension_id: str) -> None:
        self.removed.append(extension_id)


@pytest.fixture
def memory_host() -> InMemoryExtensionHost:
    """内存宿主"""
    return InMemoryExtensionHost()


# ============ 共享服务 ============


@pytest.fixture
def registries() -> CapabilityRegistries:
    return CapabilityRegistries()


@pytest.fixture
def styles() -> StyleManager:
    return StyleManager()


@pytest.fixture
def stores() -> HostStores:
    return HostStores()


@pytest.fixture
def logs() -> LogStore:
    return LogStore()


@pytest.fixture
def make_api(registries, styles, stores, logs) -> Callable:
    """按扩展 id 创建能力 API"""

    def factory(extension_id: str):
        return create_capability_api(extension_id, registries, styles, stores, logs)

    return factory


@pytest.fixture
def evaluator() -> SandboxEvaluator:
    """不受环境变量影响的沙箱执行器"""
    return SandboxEvaluator(policy_check=lambda: True)


# ============ 磁盘上的仓库与扩展 ============


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    """创建临时仓库目录"""
    vault_dir = tmp_path / "vault"
    Path(get_extensions_path(str(vault_dir))).mkdir(parents=True)
    return vault_dir


@pytest.fixture
def write_extension(vault: Path) -> Callable[..., Path]:
    """在仓库扩展目录下写入一个扩展"""

    def factory(
        extension_id: str,
        source: str = "",
        folder: Optional[str] = None,
        **manifest_overrides,
    ) -> Path:
        ext_dir = Path(get_extensions_path(str(vault))) / (folder or extension_id)
        ext_dir.mkdir(parents=True, exist_ok=True)
        manifest = {
            "id": extension_id,
            "name": extension_id.replace("-", " ").title(),
            "version": "1.0.0",
            "main": "main.py",
        }
        manifest.update(manifest_overrides)
        manifest = {k: v for k, v in manifest.items() if v is not None}
        (ext_dir / "manifest.json").write_text(json.dumps(manifest), encoding="utf-8")
        (ext_dir / "main.py").write_text(source, encoding="utf-8")
        return ext_dir

    return factory


@pytest.fixture
def extension_registry(registries, styles, stores, logs, evaluator) -> ExtensionRegistry:
    """基于本地文件系统的扩展管理器"""
    host = LocalExtensionHost()
    return ExtensionRegistry(
        host,
        registries=registries,
        styles=styles,
        stores=stores,
        logs=logs,
        evaluator=evaluator,
        initialize_timeout=0.5,
    )


# 一个注册命令的最小扩展
COMMAND_EXTENSION = """
def initialize(api):
    api.register_command(id="x", name="X", execute=lambda: "ran")

exports.initialize = initialize
"""


@pytest.fixture
def command_source() -> str:
    return COMMAND_EXTENSION
