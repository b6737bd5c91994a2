"""
宿主文件系统接口

扩展运行时只通过这组窄接口访问宿主：
- ExtensionHost: 抽象基类
- LocalExtensionHost: 基于本地文件系统的实现

目录布局:
    <vault>/.kairo/extensions/<id>/manifest.json
    <vault>/.kairo/extension-settings.json
"""

import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from .manifest import MANIFEST_FILENAME, is_valid_extension_id


logger = logging.getLogger(__name__)

KAIRO_DIR = ".kairo"
EXTENSIONS_DIR = "extensions"
SETTINGS_FILENAME = "extension-settings.json"


def get_extensions_path(vault_path: str) -> str:
    """获取仓库的扩展目录路径"""
    return str(Path(vault_path) / KAIRO_DIR / EXTENSIONS_DIR)


class ExtensionHost(ABC):
    """
    宿主接口抽象基类

    所有方法都是异步的，是扩展加载流程中唯一的挂起点。
    """

    @abstractmethod
    async def list_extension_folders(self, root: str) -> List[str]:
        """
        列出包含 manifest.json 的扩展目录

        Args:
            root: 扩展根目录

        Returns:
            List[str]: 扩展目录路径（目录不存在时为空列表）
        """
        pass

    @abstractmethod
    async def read_extension_manifest(self, folder: str) -> str:
        """读取扩展目录下的 manifest.json 文本"""
        pass

    @abstractmethod
    async def read_file_text(self, path: str) -> str:
        """读取文本文件（扩展入口源码）"""
        pass

    @abstractmethod
    async def read_extension_settings(self, vault: str) -> Optional[str]:
        """读取仓库的扩展设置文本，不存在时返回 None"""
        pass

    @abstractmethod
    async def save_extension_settings(self, vault: str, text: str) -> None:
        """保存仓库的扩展设置文本"""
        pass

    @abstractmethod
    async def remove_extension(self, vault: str, extension_id: str) -> None:
        """从仓库中删除扩展目录"""
        pass


class LocalExtensionHost(ExtensionHost):
    """
    本地文件系统宿主

    目录按名称排序后返回，保证扫描顺序稳定。
    """

    async def list_extension_folders(self, root: str) -> List[str]:
        root_path = Path(root)
        if not root_path.exists():
            return []
        if not root_path.is_dir():
            raise NotADirectoryError(f"路径不是目录: {root}")

        return [
            str(entry)
            for entry in sorted(root_path.iterdir(), key=lambda p: p.name)
            if entry.is_dir() and (entry / MANIFEST_FILENAME).exists()
        ]

    async def read_extension_manifest(self, folder: str) -> str:
        manifest_path = Path(folder) / MANIFEST_FILENAME
        if not manifest_path.exists():
            raise FileNotFoundError(f"{MANIFEST_FILENAME} 不存在: {folder}")
        return manifest_path.read_text(encoding="utf-8")

    async def read_file_text(self, path: str) -> str:
        file_path = Path(path)
        if not file_path.is_file():
            raise FileNotFoundError(f"文件不存在: {path}")
        return file_path.read_text(encoding="utf-8")

    async def read_extension_settings(self, vault: str) -> Optional[str]:
        settings_path = Path(vault) / KAIRO_DIR / SETTINGS_FILENAME
        if not settings_path.exists():
            return None
        return settings_path.read_text(encoding="utf-8")

    async def save_extension_settings(self, vault: str, text: str) -> None:
        settings_path = Path(vault) / KAIRO_DIR / SETTINGS_FILENAME
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        settings_path.write_text(text, encoding="utf-8")

    async def remove_extension(self, vault: str, extension_id: str) -> None:
        if not is_valid_extension_id(extension_id):
            raise ValueError(f"无效的扩展 id: {extension_id!r}")

        extensions_root = Path(get_extensions_path(vault)).resolve()
        target = (extensions_root / extension_id).resolve()
        if target.parent != extensions_root:
            raise PermissionError(f"拒绝访问扩展目录之外的路径: {target}")

        if target.exists():
            shutil.rmtree(target)
            logger.info(f"已删除扩展目录: {target}")
