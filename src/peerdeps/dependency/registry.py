# -*- coding: utf-8 -*-
"""
网关注册表

进程级缓存：每个注册名只创建一次网关，重复注册直接返回已有的网关。
"""

import logging
import threading
from typing import Any, Dict, List, Optional

from ..config import PeerRequireOptions
from ..loader import ImportlibLoader, ModuleLoader
from .gateway import Component, PeerRequire, as_module, build_peer_require, locate_component


class PeerRequireRegistry:
    """
    网关注册表

    负责网关的注册、查询与注销。同一注册名的写操作由一把可重入锁串行化。
    """

    def __init__(self):
        """初始化网关注册表"""
        self._logger = logging.getLogger(__name__)
        self._lock = threading.RLock()

        # 注册名 -> 网关
        self._gateways: Dict[str, PeerRequire] = {}

        # 模块名 -> 注册名
        self._by_module: Dict[str, str] = {}

    def register(
        self,
        component: Component,
        options: Optional[PeerRequireOptions] = None,
        loader: Optional[ModuleLoader] = None,
        **option_kwargs: Any,
    ) -> PeerRequire:
        """
        注册组件并返回其网关

        已知的显式注册名或已注册过的模块不会再扫描清单；
        新定位到的注册名若已存在，直接返回已有网关而不再提取依赖。

        Args:
            component: 发起注册的模块，或其模块名
            options: 注册选项
            loader: 模块加载器，默认 ImportlibLoader
            **option_kwargs: 未提供 options 时用于构建 PeerRequireOptions

        Returns:
            PeerRequire 实例

        Raises:
            RegistrationError: 首次注册失败
        """
        options = options or PeerRequireOptions(**option_kwargs)
        module = as_module(component)

        with self._lock:
            cached = self._cached(module.__name__, options.name)
            if cached is not None:
                return cached

            loader = loader or ImportlibLoader()
            located, name = locate_component(module, options, loader)

            existing = self._gateways.get(name)
            if existing is not None:
                self._logger.debug(f"组件 {name} 已注册，复用已有网关")
                self._by_module[module.__name__] = name
                return existing

            gateway = build_peer_require(located, name, options, loader)
            self._gateways[name] = gateway
            self._by_module[module.__name__] = name

            self._logger.info(
                f"组件 {name} 注册成功，声明了 {len(gateway.dependencies)} 个可选依赖"
            )
            return gateway

    def _cached(self, module_name: str, explicit_name: Optional[str]) -> Optional[PeerRequire]:
        if explicit_name is not None and explicit_name in self._gateways:
            self._logger.debug(f"组件 {explicit_name} 已注册，跳过清单扫描")
            return self._gateways[explicit_name]

        name = self._by_module.get(module_name)
        if explicit_name is None and name is not None:
            self._logger.debug(f"模块 {module_name} 已注册为 {name}，跳过清单扫描")
            return self._gateways[name]
        return None

    def get(self, name: str) -> Optional[PeerRequire]:
        """按注册名获取网关"""
        return self._gateways.get(name)

    def has(self, name: str) -> bool:
        """检查注册名是否存在"""
        return name in self._gateways

    def list_components(self) -> List[str]:
        """列出所有注册名"""
        return sorted(self._gateways)

    def unregister(self, name: str) -> bool:
        """
        注销组件

        Args:
            name: 注册名

        Returns:
            注销是否成功
        """
        with self._lock:
            if name not in self._gateways:
                self._logger.warning(f"尝试注销不存在的组件: {name}")
                return False

            del self._gateways[name]
            for module_name in [m for m, n in self._by_module.items() if n == name]:
                del self._by_module[module_name]

            self._logger.info(f"组件 {name} 注销成功")
            return True

    def clear(self) -> None:
        """清空注册表"""
        with self._lock:
            self._gateways.clear()
            self._by_module.clear()
        self._logger.info("注册表已清空")

    def __len__(self) -> int:
        return len(self._gateways)

    def __contains__(self, name: str) -> bool:
        return self.has(name)


# 进程级默认注册表
_default_registry = PeerRequireRegistry()


def get_registry() -> PeerRequireRegistry:
    """获取默认注册表"""
    return _default_registry


def register(
    component: Component,
    options: Optional[PeerRequireOptions] = None,
    loader: Optional[ModuleLoader] = None,
    **option_kwargs: Any,
) -> PeerRequire:
    """在默认注册表中注册组件"""
    return _default_registry.register(component, options, loader, **option_kwargs)


def get_registered(name: str) -> Optional[PeerRequire]:
    """从默认注册表中按注册名查找网关"""
    return _default_registry.get(name)
