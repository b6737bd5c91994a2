"""
扩展 manifest 定义与加载

- ExtensionManifest: manifest.json 的数据模型（pydantic 校验）
- ManifestLoader: 读取并校验单个扩展目录的 manifest 与入口声明
"""

import logging
import re
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ManifestError

if TYPE_CHECKING:
    from .host import ExtensionHost


logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"

# 扩展 id 同时用作限定 id 前缀和目录名
EXTENSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def is_valid_extension_id(extension_id: str) -> bool:
    """检查扩展 id 是否只包含字母、数字、连字符和下划线（1-64 位）"""
    return bool(EXTENSION_ID_PATTERN.match(extension_id or ""))


class ExtensionManifest(BaseModel):
    """
    扩展 manifest

    Attributes:
        id: 全局唯一、稳定的扩展标识符
        name: 显示名称
        version: 版本号（不透明字符串，从不解析或比较）
        main: 入口文件，相对扩展目录的路径
        description: 功能描述
        author: 作者
        dependencies: 声明的依赖扩展 id（仅声明，不做解析）
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    version: str = Field(min_length=1)
    main: str = Field(min_length=1)
    description: Optional[str] = None
    author: Optional[str] = None
    dependencies: List[str] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        if not is_valid_extension_id(value):
            raise ValueError(
                "id 只能包含字母、数字、连字符和下划线，长度 1-64"
            )
        return value

    @field_validator("dependencies", mode="before")
    @classmethod
    def _default_dependencies(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("main")
    @classmethod
    def _check_main(cls, value: str) -> str:
        path = PurePosixPath(value.replace("\\", "/"))
        if path.is_absolute() or ".." in path.parts or value.startswith(("/", "\\")):
            raise ValueError("main 必须是扩展目录内的相对路径")
        return value

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return self.model_dump()


class ManifestLoader:
    """
    manifest 加载器

    通过宿主接口读取扩展目录下的 manifest.json 并校验必填字段
    (id, name, version, main)。任何失败都抛出 ManifestError，
    此时尚未创建任何 Extension 记录。
    """

    def __init__(self, host: "ExtensionHost"):
        self._host = host

    async def load(self, folder: str) -> ExtensionManifest:
        """
        读取并解析扩展目录的 manifest

        Args:
            folder: 扩展目录路径

        Returns:
            ExtensionManifest: 校验通过的 manifest

        Raises:
            ManifestError: 读取失败、JSON 格式错误或缺少必填字段
        """
        try:
            text = await self._host.read_extension_manifest(folder)
        except Exception as e:
            raise ManifestError(f"无法读取 manifest: {e}", folder=folder) from e

        return self.parse(text, folder)

    @staticmethod
    def parse(text: str, folder: Optional[str] = None) -> ExtensionManifest:
        """
        解析 manifest 文本

        Raises:
            ManifestError: JSON 格式错误或字段校验失败
        """
        try:
            return ExtensionManifest.model_validate_json(text)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'manifest'}: {err['msg']}"
                for err in e.errors()
            )
            raise ManifestError(
                f"manifest 无效 (需要 id, name, version, main): {problems}",
                folder=folder,
            ) from e

    @staticmethod
    def entry_path(folder: str, manifest: ExtensionManifest) -> str:
        """获取入口文件完整路径"""
        return str(Path(folder) / manifest.main)
