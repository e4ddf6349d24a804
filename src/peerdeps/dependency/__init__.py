# -*- coding: utf-8 -*-
"""
可选依赖解析

提供版本范围校验、清单定位、依赖提取、依赖解析、按需加载网关与注册表。
"""

from .gateway import PeerRequire, create_peer_require
from .locator import LocatedManifest, ManifestLocator
from .manifest import ManifestReader, PackageManifest, extract_dependencies
from .registry import PeerRequireRegistry, get_registered, get_registry, register
from .resolver import DependencyResolver, ResolutionResult
from .version_range import VersionRange, parse_range, satisfies, valid_range

__all__ = [
    "VersionRange",
    "parse_range",
    "valid_range",
    "satisfies",
    "ManifestLocator",
    "LocatedManifest",
    "ManifestReader",
    "PackageManifest",
    "extract_dependencies",
    "DependencyResolver",
    "ResolutionResult",
    "PeerRequire",
    "create_peer_require",
    "PeerRequireRegistry",
    "get_registry",
    "register",
    "get_registered",
]
