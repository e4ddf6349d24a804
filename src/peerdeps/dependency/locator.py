# -*- coding: utf-8 -*-
"""
清单定位

从模块所在目录开始逐级向上查找最近的清单文件，
并可选地确认找到的清单确实描述了发起查找的模块。
"""

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, Optional, Sequence, Union

from ..exceptions import ManifestIdentityError, ManifestNotFoundError
from ..loader import MANIFEST_FILENAMES, ModuleLoader
from .manifest import ManifestReader


@dataclass(frozen=True)
class LocatedManifest:
    """定位到的清单：文件路径与解析后的内容（只读快照）"""

    path: Path
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def directory(self) -> Path:
        return self.path.parent

    @property
    def name(self) -> Optional[str]:
        return self.data.get("name")


def module_origin(module: ModuleType) -> Path:
    """
    获取模块所在目录

    普通模块取 __file__ 所在目录，命名空间包取 __path__ 的第一项。
    """
    filename = getattr(module, "__file__", None)
    if filename:
        return Path(filename).resolve().parent

    search_path = list(getattr(module, "__path__", None) or [])
    if search_path:
        return Path(search_path[0]).resolve()

    raise ManifestNotFoundError(f"模块 {module.__name__} 没有文件位置，无法查找清单")


class ManifestLocator:
    """
    清单定位器

    负责向上遍历目录查找清单，并执行归属校验。
    """

    def __init__(
        self,
        loader: ModuleLoader,
        manifest_filenames: Sequence[str] = MANIFEST_FILENAMES,
    ):
        self._loader = loader
        self._filenames = tuple(manifest_filenames)
        self._logger = logging.getLogger(__name__)

    def find(self, start: Union[str, Path]) -> Path:
        """
        查找最近的清单文件

        Args:
            start: 起始目录；若为文件则从其所在目录开始

        Returns:
            清单文件路径

        Raises:
            ManifestNotFoundError: 直到文件系统根目录都没有找到清单
        """
        directory = Path(start).resolve()
        if directory.is_file():
            directory = directory.parent

        while True:
            for filename in self._filenames:
                candidate = directory / filename
                if candidate.is_file():
                    return candidate

            parent = directory.parent
            if parent == directory:
                raise ManifestNotFoundError(
                    f"从 {start} 向上直到根目录都没有找到清单文件 ({', '.join(self._filenames)})"
                )
            directory = parent

    def locate(
        self,
        start: Union[str, Path],
        identity_check: bool = True,
        module: Optional[ModuleType] = None,
        expected_name: Optional[str] = None,
    ) -> LocatedManifest:
        """
        定位并读取清单

        Args:
            start: 起始位置
            identity_check: 是否确认清单描述的是 module
            module: 发起查找的模块，identity_check 为 True 时必需
            expected_name: 清单中没有 name 时用于校验的名称

        Returns:
            LocatedManifest 实例

        Raises:
            ManifestNotFoundError: 没有找到清单
            ManifestIdentityError: 找到的清单不属于 module
        """
        path = self.find(start)
        located = LocatedManifest(path, ManifestReader.load_from_file(path))
        self._logger.debug(f"找到清单 {path}")

        if identity_check:
            if module is None:
                raise ValueError("启用归属校验时必须提供发起查找的模块")
            self._verify_identity(located, module, expected_name)

        return located

    def _verify_identity(
        self,
        located: LocatedManifest,
        module: ModuleType,
        expected_name: Optional[str],
    ) -> None:
        """通过加载器把清单名称解析回模块，确认与发起查找的模块是同一个对象"""
        name = located.name or expected_name
        if not name:
            raise ManifestIdentityError(
                f"清单 {located.path} 没有 name 字段，无法确认它描述的是 {module.__name__}"
            )

        top_level = module.__name__.partition(".")[0]
        expected = sys.modules.get(top_level, module)

        try:
            resolved = self._loader.load(name)
        except Exception as e:
            raise ManifestIdentityError(
                f"找到的清单 {located.path} 声明的组件 {name} 无法加载，"
                f"不能解析到 {module.__name__}: {e}"
            ) from e

        if resolved is not expected:
            raise ManifestIdentityError(
                f"没有找到解析到 {module.__name__} 的清单 (找到的是: {located.directory})"
            )
