# -*- coding: utf-8 -*-
"""
全局测试配置
提供基本的测试环境设置和共享fixture
"""

import json
import sys
import tempfile
import types
from pathlib import Path
from typing import Any, Dict, Optional

import pytest
import yaml
from packaging.utils import canonicalize_name

from peerdeps.exceptions import ModuleMissingError
from peerdeps.loader import ModuleLoader


class StubLoader(ModuleLoader):
    """
    内存中的模块加载器

    modules: 导入名 -> 模块对象（或加载时要抛出的异常）
    manifests: 依赖名 -> 清单字典（或读取时要抛出的异常）
    """

    def __init__(
        self,
        modules: Optional[Dict[str, Any]] = None,
        manifests: Optional[Dict[str, Any]] = None,
    ):
        self.modules = dict(modules or {})
        self.manifests = dict(manifests or {})
        self.load_calls = []
        self.manifest_calls = []

    def load(self, name, submodule=None):
        target = self.import_name(name)
        if submodule:
            target = f"{target}.{submodule}"
        self.load_calls.append(target)

        value = self.modules.get(target)
        if value is None:
            raise ModuleMissingError(f"模块 {target} 不存在", name=target)
        if isinstance(value, BaseException):
            raise value
        return value

    def load_manifest(self, name):
        self.manifest_calls.append(name)
        # 发行包名不区分大小写与分隔符
        key = canonicalize_name(name)
        value = next((v for k, v in self.manifests.items() if canonicalize_name(k) == key), None)
        if value is None:
            raise ModuleMissingError(f"发行包 {name} 未安装", name=name)
        if isinstance(value, BaseException):
            raise value
        return value

    def manifest_path(self, name):
        return f"/site-packages/{name}/METADATA"


def write_manifest(directory: Path, data: Dict[str, Any], filename: str = "package_manifest.yaml") -> Path:
    """在目录中写入清单文件"""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    with open(path, "w", encoding="utf-8") as f:
        if filename.endswith(".json"):
            json.dump(data, f)
        else:
            yaml.safe_dump(data, f, allow_unicode=True)
    return path


def make_module(name: str, directory: Optional[Path] = None) -> types.ModuleType:
    """创建一个带 __file__ 的模块对象"""
    module = types.ModuleType(name)
    if directory is not None:
        directory.mkdir(parents=True, exist_ok=True)
        init_file = directory / "__init__.py"
        init_file.touch()
        module.__file__ = str(init_file)
    return module


@pytest.fixture
def temp_dir():
    """临时目录"""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td).resolve()


@pytest.fixture
def stub_loader():
    """空的内存加载器"""
    return StubLoader()


@pytest.fixture
def app_layout(temp_dir):
    """
    宿主应用与组件的目录布局

    app/
        package_manifest.yaml        宿主清单，声明 pyyaml、requests、numpy
        vendor/my_component/
            package_manifest.yaml    组件清单，声明可选依赖
            __init__.py
    """
    app_dir = temp_dir / "app"
    write_manifest(
        app_dir,
        {
            "name": "app",
            "version": "1.0.0",
            "dependencies": {"PyYAML": "^6.0.0", "requests": "*"},
            "dev_dependencies": {"numpy": ">=1.20"},
        },
    )

    component_dir = app_dir / "vendor" / "my_component"
    write_manifest(
        component_dir,
        {
            "name": "my_component",
            "version": "0.3.0",
            "optional_peer_dependencies": {
                "pyyaml": "^6.0.0",
                "requests": "~2.31.0",
                "numpy": "*",
                "rich": ">=13.0",
            },
        },
    )
    component = make_module("my_component", component_dir)

    return types.SimpleNamespace(
        root=temp_dir,
        app_dir=app_dir,
        component_dir=component_dir,
        component=component,
    )


@pytest.fixture
def clean_modules():
    """测试结束后移除测试期间导入的 peerdeps_* 临时模块"""
    before = set(sys.modules)
    yield
    for name in set(sys.modules) - before:
        if name.startswith("peerdeps_"):
            del sys.modules[name]
