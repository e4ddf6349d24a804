# -*- coding: utf-8 -*-
"""
依赖解析引擎

只读取依赖自身的清单（不执行依赖代码），判断依赖是否已安装、版本是否满足声明的范围。
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from packaging.utils import canonicalize_name

from ..config import CONSUMER_SECTIONS
from ..exceptions import ModuleMissingError
from ..loader import ModuleLoader
from .manifest import declared_names
from .version_range import parse_version, satisfies

_SUBPATH = re.compile(r"[./]")


@dataclass(frozen=True)
class ResolutionResult:
    """
    一次解析的结果

    Attributes:
        name: 规范化后的依赖名
        supported_range: 组件声明的版本范围，None 表示没有约束
        installed_version: 已安装的合法版本号
        is_installed: True / False，None 表示读取清单时出现了意外错误
        is_valid: 依赖是否可用
        manifest_path: 探测依赖清单时预期的位置
        declared_by_consumer: 宿主应用是否声明了该依赖
        raw_version: 依赖清单中原始的 version 字段
        error: is_installed 为 None 时的原始异常
        submodule: 请求中依赖名之后的子模块路径
    """

    name: str
    supported_range: Optional[str]
    installed_version: Optional[str]
    is_installed: Optional[bool]
    is_valid: bool
    manifest_path: Optional[str] = None
    declared_by_consumer: bool = True
    raw_version: Any = None
    error: Optional[BaseException] = None
    submodule: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """诊断用的纯字典表示"""
        return {
            "name": self.name,
            "supported_range": self.supported_range,
            "installed_version": self.installed_version,
            "is_installed": self.is_installed,
            "is_valid": self.is_valid,
            "manifest_path": self.manifest_path,
            "declared_by_consumer": self.declared_by_consumer,
            "error": str(self.error) if self.error else None,
        }


class DependencyResolver:
    """
    依赖解析器

    宿主应用清单中的声明优先于磁盘上的实际情况：
    宿主没有声明的依赖一律视为未安装。
    """

    def __init__(
        self,
        declared: Mapping[str, str],
        consumer_manifest: Mapping[str, Any],
        loader: ModuleLoader,
        consumer_sections: Sequence[str] = CONSUMER_SECTIONS,
    ):
        """
        初始化依赖解析器

        Args:
            declared: 组件声明的 依赖名 -> 版本范围
            consumer_manifest: 宿主应用的清单
            loader: 模块加载器
            consumer_sections: 宿主清单中声明依赖的节
        """
        self._declared = dict(declared)
        self._consumer_names = declared_names(consumer_manifest, consumer_sections)
        self._loader = loader
        self._logger = logging.getLogger(__name__)

    @property
    def consumer_names(self) -> frozenset:
        return frozenset(self._consumer_names)

    def split_request(self, request: str) -> Tuple[str, Optional[str]]:
        """
        拆分请求为 (依赖名, 子模块)

        完整请求本身就是已知依赖时原样使用，否则在第一个 "." 或 "/" 处截断。
        """
        key = canonicalize_name(request)
        if key in self._declared or key in self._consumer_names:
            return request, None

        parts = _SUBPATH.split(request, maxsplit=1)
        if len(parts) == 1 or not parts[1]:
            return parts[0], None
        return parts[0], parts[1].replace("/", ".")

    def resolve(self, request: str) -> ResolutionResult:
        """
        解析依赖状态，不会抛出异常

        Args:
            request: 依赖名，可带子模块路径

        Returns:
            ResolutionResult 实例
        """
        name, submodule = self.split_request(request)
        key = canonicalize_name(name)
        supported_range = self._declared.get(key)
        manifest_path = self._manifest_path(name)

        if key not in self._consumer_names:
            self._logger.debug(f"宿主应用没有声明依赖 {name}，视为未安装")
            return ResolutionResult(
                name=key,
                supported_range=supported_range,
                installed_version=None,
                is_installed=False,
                is_valid=False,
                manifest_path=manifest_path,
                declared_by_consumer=False,
                submodule=submodule,
            )

        try:
            manifest = self._loader.load_manifest(name)
        except ModuleMissingError:
            return ResolutionResult(
                name=key,
                supported_range=supported_range,
                installed_version=None,
                is_installed=False,
                is_valid=False,
                manifest_path=manifest_path,
                submodule=submodule,
            )
        except Exception as e:
            self._logger.warning(f"读取依赖 {name} 的清单时出现意外错误: {e}")
            return ResolutionResult(
                name=key,
                supported_range=supported_range,
                installed_version=None,
                is_installed=None,
                is_valid=False,
                manifest_path=manifest_path,
                error=e,
                submodule=submodule,
            )

        raw_version = manifest.get("version")
        installed_version = raw_version.strip() if parse_version(raw_version) else None

        if supported_range is None:
            is_valid = True
        else:
            is_valid = installed_version is not None and satisfies(installed_version, supported_range)

        return ResolutionResult(
            name=key,
            supported_range=supported_range,
            installed_version=installed_version,
            is_installed=True,
            is_valid=is_valid,
            manifest_path=manifest_path,
            raw_version=raw_version,
            submodule=submodule,
        )

    def _manifest_path(self, name: str) -> Optional[str]:
        try:
            return self._loader.manifest_path(name)
        except Exception as e:
            self._logger.debug(f"无法确定依赖 {name} 的清单位置: {e}")
            return None
