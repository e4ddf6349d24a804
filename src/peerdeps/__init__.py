# -*- coding: utf-8 -*-
"""
peerdeps: 组件可选依赖的运行时解析与按需加载
"""

__author__ = "peerdeps"
__version__ = "1.0.0"

from .config import PeerRequireOptions
from .dependency import (
    DependencyResolver,
    PeerRequire,
    PeerRequireRegistry,
    ResolutionResult,
    create_peer_require,
    get_registered,
    get_registry,
    register,
    satisfies,
    valid_range,
)

# 异常
from .exceptions import (
    DependencyLoadError,
    DependencyNotDeclaredError,
    DependencyNotInstalledError,
    InvalidRangeError,
    InvalidVersionError,
    ManifestFormatError,
    ManifestIdentityError,
    ManifestNotFoundError,
    MissingRegistrationNameError,
    MissingVersionError,
    NonStringVersionError,
    PeerDepsError,
    PeerRequireError,
    RegistrationError,
    VersionMismatchError,
)
from .loader import DirectoryLoader, ImportlibLoader, ModuleLoader

__all__ = [
    # 核心组件
    "PeerRequire",
    "PeerRequireOptions",
    "PeerRequireRegistry",
    "DependencyResolver",
    "ResolutionResult",
    "create_peer_require",
    "get_registry",
    "register",
    "get_registered",
    "valid_range",
    "satisfies",
    # 加载器
    "ModuleLoader",
    "ImportlibLoader",
    "DirectoryLoader",
    # 异常
    "PeerDepsError",
    "RegistrationError",
    "ManifestNotFoundError",
    "ManifestIdentityError",
    "ManifestFormatError",
    "InvalidRangeError",
    "MissingRegistrationNameError",
    "PeerRequireError",
    "DependencyNotInstalledError",
    "DependencyNotDeclaredError",
    "DependencyLoadError",
    "MissingVersionError",
    "InvalidVersionError",
    "NonStringVersionError",
    "VersionMismatchError",
]
