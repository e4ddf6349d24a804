# -*- coding: utf-8 -*-
"""
按需加载网关

组件注册时定位自身清单、提取可选依赖、定位宿主应用清单；
之后每次调用都先解析依赖状态，再通过加载器真正加载依赖。
"""

import importlib
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, List, Optional, Tuple, Union

from ..config import PeerRequireOptions
from ..exceptions import (
    DependencyLoadError,
    DependencyNotDeclaredError,
    DependencyNotInstalledError,
    InvalidVersionError,
    MissingRegistrationNameError,
    MissingVersionError,
    ModuleMissingError,
    NonStringVersionError,
    PeerRequireError,
    VersionMismatchError,
)
from ..loader import ImportlibLoader, ModuleLoader
from .locator import LocatedManifest, ManifestLocator, module_origin
from .manifest import PackageManifest, extract_dependencies
from .resolver import DependencyResolver, ResolutionResult
from .version_range import parse_version

Component = Union[ModuleType, str]


class PeerRequire:
    """
    组件的可选依赖网关

    以函数方式调用: peer_require("PyYAML", optional=True)
    """

    def __init__(
        self,
        name: str,
        manifest_path: Path,
        dependencies: Dict[str, str],
        resolver: DependencyResolver,
        loader: ModuleLoader,
        consumer_manifest_path: Optional[Path] = None,
    ):
        self.name = name
        self.manifest_path = manifest_path
        self.consumer_manifest_path = consumer_manifest_path
        self._dependencies = dict(dependencies)
        self._resolver = resolver
        self._loader = loader
        self._logger = logging.getLogger(__name__)

    @property
    def dependencies(self) -> Dict[str, str]:
        """声明的 依赖名 -> 版本范围（副本）"""
        return dict(self._dependencies)

    def __call__(
        self, name: str, optional: bool = False, dont_throw: bool = False
    ) -> Optional[ModuleType]:
        """
        加载可选依赖

        Args:
            name: 依赖名，可带子模块路径（"pkg.sub" 或 "pkg/sub"）
            optional: 依赖未安装时返回 None 而不是抛出异常
            dont_throw: 任何调用期错误都返回 None

        Returns:
            依赖模块，或 None

        Raises:
            PeerRequireError: dont_throw 为 False 时的各类调用期错误
        """
        try:
            return self._require(name, optional)
        except PeerRequireError as e:
            if dont_throw:
                self._logger.debug(f"已忽略 {self.name} 加载 {name} 时的错误: {e}")
                return None
            raise

    def resolve(self, name: str) -> ResolutionResult:
        """只读取清单的探测，不加载依赖，也不会抛出异常"""
        return self._resolver.resolve(name)

    def check_all(self) -> List[ResolutionResult]:
        """解析所有声明的依赖"""
        return [self._resolver.resolve(name) for name in sorted(self._dependencies)]

    def _require(self, name: str, optional: bool) -> Optional[ModuleType]:
        result = self._resolver.resolve(name)
        dependency = result.name

        if result.is_installed is None:
            raise DependencyLoadError(
                f'组件 "{self.name}" 读取依赖 "{dependency}" 的清单失败: {result.error}',
                dependency,
                self.name,
            ) from result.error

        if not result.is_installed:
            if optional:
                return None
            if not result.declared_by_consumer:
                raise DependencyNotDeclaredError(dependency, self.name, result.supported_range)
            raise DependencyNotInstalledError(dependency, self.name, result.supported_range)

        package, _ = self._resolver.split_request(name)
        try:
            module = self._loader.load(package, result.submodule)
        except ModuleMissingError as e:
            if optional:
                return None
            raise DependencyNotInstalledError(
                dependency, self.name, result.supported_range, reason="找不到模块"
            ) from e
        except Exception as e:
            raise DependencyLoadError(
                f'组件 "{self.name}" 加载依赖 "{dependency}" 失败: {e}', dependency, self.name
            ) from e

        if result.supported_range is None:
            # 没有版本约束
            return module

        raw_version = result.raw_version
        if raw_version is None or raw_version == "":
            raise MissingVersionError(
                f'依赖 "{dependency}" 在 {result.manifest_path} 中没有版本信息 '
                f'(组件 "{self.name}" 需要 {result.supported_range})',
                dependency,
                self.name,
            )

        if not isinstance(raw_version, str):
            raise NonStringVersionError(
                f'依赖 "{dependency}" 的版本不是字符串: {raw_version!r}', dependency, self.name
            )

        if parse_version(raw_version) is None:
            raise InvalidVersionError(
                f'依赖 "{dependency}" 的版本 {raw_version!r} 不是合法的版本号', dependency, self.name
            )

        if not result.is_valid:
            raise VersionMismatchError(dependency, self.name, result.supported_range, raw_version)

        return module

    def __repr__(self) -> str:
        return f"PeerRequire({self.name}, dependencies={len(self._dependencies)})"


def as_module(component: Component) -> ModuleType:
    """接受模块对象或模块名"""
    if isinstance(component, ModuleType):
        return component
    module = sys.modules.get(component)
    if module is None:
        module = importlib.import_module(component)
    return module


def locate_component(
    module: ModuleType,
    options: PeerRequireOptions,
    loader: ModuleLoader,
) -> Tuple[LocatedManifest, str]:
    """
    定位组件自身的清单并确定注册名

    Returns:
        (组件清单, 注册名)

    Raises:
        RegistrationError: 清单缺失、归属不符、格式错误或缺少注册名
    """
    locator = ManifestLocator(loader, options.manifest_filenames)
    located = locator.locate(
        module_origin(module),
        identity_check=options.identity_check,
        module=module,
        expected_name=options.name,
    )
    manifest = PackageManifest.from_mapping(located.data, located.path)

    name = options.name or manifest.name
    if not name:
        raise MissingRegistrationNameError(
            f"模块 {module.__name__} 的清单 {located.path} 没有 name 字段，且未提供显式注册名"
        )
    return located, name


def build_peer_require(
    located: LocatedManifest,
    name: str,
    options: PeerRequireOptions,
    loader: ModuleLoader,
) -> PeerRequire:
    """提取声明的依赖、定位宿主应用清单，并创建网关"""
    dependencies = extract_dependencies(located.data, options.sections)

    # 宿主应用清单不做归属校验
    locator = ManifestLocator(loader, options.manifest_filenames)
    consumer = locator.locate(options.consumer_root(), identity_check=False)
    resolver = DependencyResolver(
        dependencies, consumer.data, loader, options.consumer_sections
    )

    return PeerRequire(
        name,
        located.path,
        dependencies,
        resolver,
        loader,
        consumer_manifest_path=consumer.path,
    )


def create_peer_require(
    component: Component,
    options: Optional[PeerRequireOptions] = None,
    loader: Optional[ModuleLoader] = None,
    **option_kwargs: Any,
) -> PeerRequire:
    """
    为组件创建网关

    注册顺序：定位组件清单（带归属校验）→ 确定注册名 → 提取声明的依赖
    → 定位宿主应用清单（不做归属校验）。

    Args:
        component: 发起注册的模块，或其模块名
        options: 注册选项
        loader: 模块加载器，默认 ImportlibLoader
        **option_kwargs: 未提供 options 时用于构建 PeerRequireOptions

    Returns:
        PeerRequire 实例

    Raises:
        RegistrationError: 清单缺失、归属不符、版本范围无效或缺少注册名
    """
    options = options or PeerRequireOptions(**option_kwargs)
    loader = loader or ImportlibLoader()
    located, name = locate_component(as_module(component), options, loader)
    return build_peer_require(located, name, options, loader)
