# -*- coding: utf-8 -*-
"""
模块加载器

按名称获取组件的导出接口或其自身的清单。
加载器必须可靠地区分“确实不存在”（ModuleMissingError）与其他加载失败。
"""

import importlib
import importlib.metadata
import importlib.util
import logging
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, Optional, Sequence

from packaging.utils import canonicalize_name

from .exceptions import ModuleMissingError

MANIFEST_FILENAMES = (
    "package_manifest.yaml",
    "package_manifest.yml",
    "package_manifest.json",
    "pyproject.toml",
)


class ModuleLoader(ABC):
    """
    模块加载器基类

    子类需要实现 load 与 load_manifest，两者在目标确实不存在时
    都必须抛出 ModuleMissingError。
    """

    def import_name(self, name: str) -> str:
        """把发行包名转换为导入名"""
        return name.replace("-", "_")

    @abstractmethod
    def load(self, name: str, submodule: Optional[str] = None) -> ModuleType:
        """加载模块并返回其导出接口"""
        pass

    @abstractmethod
    def load_manifest(self, name: str) -> Dict[str, Any]:
        """读取组件自身的清单"""
        pass

    def manifest_path(self, name: str) -> Optional[str]:
        """返回探测时预期的清单位置；无法确定时返回 None"""
        return None

    @staticmethod
    def _is_missing(error: ModuleNotFoundError, target: str) -> bool:
        """缺失的是目标本身或其父包，而不是目标内部的某个导入"""
        missing = error.name
        if not missing:
            return False
        return target == missing or target.startswith(missing + ".")


class ImportlibLoader(ModuleLoader):
    """基于 importlib 与 importlib.metadata 的默认加载器"""

    def __init__(self):
        self._logger = logging.getLogger(__name__)

    def import_name(self, name: str) -> str:
        canonical = canonicalize_name(name)
        candidates = []
        for top_level, dists in importlib.metadata.packages_distributions().items():
            if any(canonicalize_name(d) == canonical for d in dists):
                candidates.append(top_level)

        fallback = super().import_name(name)
        if not candidates or fallback in candidates:
            return fallback
        # 一个发行包可能提供多个顶层包，优先取公开包名中排序最前的一个
        public = sorted(c for c in candidates if not c.startswith("_"))
        return (public or sorted(candidates))[0]

    def load(self, name: str, submodule: Optional[str] = None) -> ModuleType:
        target = self.import_name(name)
        if submodule:
            target = f"{target}.{submodule}"

        try:
            return importlib.import_module(target)
        except ModuleNotFoundError as e:
            if self._is_missing(e, target):
                raise ModuleMissingError(f"模块 {target} 不存在", name=target) from e
            raise

    def load_manifest(self, name: str) -> Dict[str, Any]:
        try:
            dist = importlib.metadata.distribution(name)
        except importlib.metadata.PackageNotFoundError as e:
            raise ModuleMissingError(f"发行包 {name} 未安装", name=name) from e

        metadata = dist.metadata
        return {
            "name": metadata["Name"],
            "version": metadata["Version"],
            "requires": list(dist.requires or []),
            "path": self._dist_path(dist),
        }

    def manifest_path(self, name: str) -> Optional[str]:
        try:
            dist = importlib.metadata.distribution(name)
        except importlib.metadata.PackageNotFoundError:
            return None
        return self._dist_path(dist)

    @staticmethod
    def _dist_path(dist: importlib.metadata.Distribution) -> Optional[str]:
        """已安装发行包的 METADATA 文件位置"""
        for file in dist.files or []:
            if file.name == "METADATA" and file.parent.name.endswith(".dist-info"):
                return str(dist.locate_file(file))

        # 没有 RECORD 时按 .dist-info 目录的命名规则推断
        name = canonicalize_name(dist.metadata["Name"]).replace("-", "_")
        try:
            site = Path(dist.locate_file(""))
        except NotImplementedError:
            return None
        candidate = site / f"{name}-{dist.version}.dist-info" / "METADATA"
        return str(candidate) if candidate.is_file() else None

    def __repr__(self) -> str:
        return "ImportlibLoader()"


class DirectoryLoader(ModuleLoader):
    """
    目录加载器

    从 root/<name>/ 加载随应用一起分发（vendored）的组件，
    该目录同时包含清单文件和 __init__.py。
    """

    def __init__(
        self,
        root: Path,
        manifest_filenames: Sequence[str] = MANIFEST_FILENAMES,
    ):
        self.root = Path(root)
        self.manifest_filenames = tuple(manifest_filenames)
        self._logger = logging.getLogger(__name__)

    def _component_dir(self, name: str) -> Path:
        for candidate in (name, self.import_name(name)):
            path = self.root / candidate
            if path.is_dir():
                return path
        raise ModuleMissingError(f"目录 {self.root} 中不存在组件 {name}", name=name)

    def load(self, name: str, submodule: Optional[str] = None) -> ModuleType:
        package_name = self.import_name(name)
        package = sys.modules.get(package_name)
        if package is None:
            package = self._load_package(name, package_name)
        if not submodule:
            return package

        target = f"{package_name}.{submodule}"
        try:
            return importlib.import_module(target)
        except ModuleNotFoundError as e:
            if self._is_missing(e, target):
                raise ModuleMissingError(f"模块 {target} 不存在", name=target) from e
            raise

    def _load_package(self, name: str, package_name: str) -> ModuleType:
        component_dir = self._component_dir(name)
        init_file = component_dir / "__init__.py"
        if not init_file.exists():
            raise ModuleMissingError(f"组件 {name} 缺少 __init__.py", name=package_name)

        spec = importlib.util.spec_from_file_location(
            package_name, init_file, submodule_search_locations=[str(component_dir)]
        )
        if not spec or not spec.loader:
            raise ModuleMissingError(f"无法为组件 {name} 创建模块规格", name=package_name)

        module = importlib.util.module_from_spec(spec)
        sys.modules[package_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            del sys.modules[package_name]
            raise

        self._logger.debug(f"已从 {component_dir} 加载组件 {name}")
        return module

    def load_manifest(self, name: str) -> Dict[str, Any]:
        from .dependency.manifest import ManifestReader

        path = self._find_manifest(self._component_dir(name))
        if path is None:
            raise ModuleMissingError(f"组件 {name} 缺少清单文件", name=name)
        return ManifestReader.load_from_file(path)

    def manifest_path(self, name: str) -> Optional[str]:
        try:
            component_dir = self._component_dir(name)
        except ModuleMissingError:
            return str(self.root / name / self.manifest_filenames[0])
        path = self._find_manifest(component_dir)
        return str(path or component_dir / self.manifest_filenames[0])

    def _find_manifest(self, directory: Path) -> Optional[Path]:
        for filename in self.manifest_filenames:
            candidate = directory / filename
            if candidate.is_file():
                return candidate
        return None

    def __repr__(self) -> str:
        return f"DirectoryLoader({self.root})"
