# -*- coding: utf-8 -*-
"""
按需加载网关测试
"""

import types

import pytest
from conftest import StubLoader, make_module, write_manifest

from peerdeps.config import PeerRequireOptions
from peerdeps.dependency.gateway import PeerRequire, as_module, create_peer_require
from peerdeps.exceptions import (
    DependencyLoadError,
    DependencyNotDeclaredError,
    DependencyNotInstalledError,
    InvalidRangeError,
    InvalidVersionError,
    ManifestIdentityError,
    ManifestNotFoundError,
    MissingRegistrationNameError,
    MissingVersionError,
    NonStringVersionError,
    PeerRequireError,
    RegistrationError,
    VersionMismatchError,
)

yaml_module = types.ModuleType("yaml")
requests_module = types.ModuleType("requests")
adapters_module = types.ModuleType("requests.adapters")
numpy_module = types.ModuleType("numpy")


@pytest.fixture
def loader(app_layout):
    """加载器：组件本身、PyYAML 6.0.1、requests 2.31.4，numpy 未安装"""
    return StubLoader(
        modules={
            "my_component": app_layout.component,
            "PyYAML": yaml_module,
            "requests": requests_module,
            "requests.adapters": adapters_module,
            "numpy": numpy_module,
        },
        manifests={
            "PyYAML": {"name": "PyYAML", "version": "6.0.1"},
            "requests": {"name": "requests", "version": "2.31.4"},
        },
    )


@pytest.fixture
def peer_require(app_layout, loader):
    return create_peer_require(app_layout.component, loader=loader, consumer=app_layout.app_dir)


class TestCreatePeerRequire:
    """测试网关的创建"""

    def test_registration(self, peer_require, app_layout):
        assert isinstance(peer_require, PeerRequire)
        assert peer_require.name == "my_component"
        assert peer_require.manifest_path == app_layout.component_dir / "package_manifest.yaml"
        assert peer_require.consumer_manifest_path == app_layout.app_dir / "package_manifest.yaml"
        assert set(peer_require.dependencies) == {"pyyaml", "requests", "numpy", "rich"}

    def test_dependencies_are_a_copy(self, peer_require):
        peer_require.dependencies["injected"] = "*"
        assert "injected" not in peer_require.dependencies

    def test_snapshot_taken_at_registration(self, peer_require, app_layout):
        """注册后修改清单文件不影响已提取的依赖"""
        write_manifest(app_layout.component_dir, {"name": "my_component", "optional_peer_dependencies": {}})
        assert "rich" in peer_require.dependencies

    def test_explicit_name(self, app_layout, loader):
        gateway = create_peer_require(
            app_layout.component, loader=loader, consumer=app_layout.app_dir, name="custom"
        )
        assert gateway.name == "custom"

    def test_options_object(self, app_layout, loader):
        options = PeerRequireOptions(consumer=app_layout.app_dir, sections=["missing_section"])
        gateway = create_peer_require(app_layout.component, options, loader)
        assert gateway.dependencies == {}

    def test_missing_name(self, temp_dir):
        component_dir = temp_dir / "nameless"
        write_manifest(component_dir, {"version": "1.0.0"})
        component = make_module("nameless", component_dir)

        with pytest.raises(MissingRegistrationNameError):
            create_peer_require(
                component, loader=StubLoader(), identity_check=False, consumer=component_dir
            )

    def test_identity_mismatch(self, app_layout):
        """组件清单解析到的是另一个模块"""
        loader = StubLoader(modules={"my_component": types.ModuleType("my_component")})
        with pytest.raises(ManifestIdentityError):
            create_peer_require(app_layout.component, loader=loader, consumer=app_layout.app_dir)

    def test_identity_check_disabled(self, app_layout):
        gateway = create_peer_require(
            app_layout.component, loader=StubLoader(), identity_check=False, consumer=app_layout.app_dir
        )
        assert gateway.name == "my_component"

    def test_invalid_range(self, temp_dir):
        component_dir = temp_dir / "bad_component"
        write_manifest(
            component_dir,
            {"name": "bad_component", "optional_peer_dependencies": {"rich": "not-a-version"}},
        )
        component = make_module("bad_component", component_dir)
        loader = StubLoader(modules={"bad_component": component})

        with pytest.raises(InvalidRangeError) as exc_info:
            create_peer_require(component, loader=loader, consumer=component_dir)
        assert exc_info.value.dependency == "rich"
        assert isinstance(exc_info.value, RegistrationError)

    def test_consumer_manifest_not_found(self, temp_dir):
        component_dir = temp_dir / "comp"
        write_manifest(component_dir, {"name": "comp"}, "peerdeps_test_manifest.json")
        component = make_module("comp", component_dir)
        consumer_dir = temp_dir / "consumer"
        consumer_dir.mkdir()

        with pytest.raises(ManifestNotFoundError):
            create_peer_require(
                component,
                loader=StubLoader(modules={"comp": component}),
                consumer=consumer_dir,
                manifest_filenames=("peerdeps_test_manifest.json",),
            )

    def test_consumer_from_environment(self, app_layout, loader, monkeypatch):
        monkeypatch.setenv("PEERDEPS_CONSUMER_ROOT", str(app_layout.app_dir))
        gateway = create_peer_require(app_layout.component, loader=loader)
        assert gateway.consumer_manifest_path == app_layout.app_dir / "package_manifest.yaml"

    def test_extracts_once(self, app_layout, loader, mocker):
        from peerdeps.dependency import gateway as gateway_module

        spy = mocker.spy(gateway_module, "extract_dependencies")
        peer_require = create_peer_require(app_layout.component, loader=loader, consumer=app_layout.app_dir)
        peer_require("PyYAML")
        peer_require("requests")
        assert spy.call_count == 1


class TestPeerRequireCall:
    """测试网关调用"""

    def test_installed_and_valid(self, peer_require):
        assert peer_require("PyYAML") is yaml_module
        assert peer_require("requests") is requests_module

    def test_submodule_request(self, peer_require, loader):
        assert peer_require("requests.adapters") is adapters_module
        assert peer_require("requests/adapters") is adapters_module
        assert loader.load_calls[-1] == "requests.adapters"

    def test_not_declared_by_consumer(self, peer_require):
        """宿主没有声明的依赖即使可以加载也视为未安装"""
        with pytest.raises(DependencyNotDeclaredError) as exc_info:
            peer_require("rich")
        assert exc_info.value.dependency == "rich"
        assert exc_info.value.requirer == "my_component"
        assert 'pip install "rich>=13.0.0"' in str(exc_info.value)

    def test_not_installed(self, peer_require):
        with pytest.raises(DependencyNotInstalledError) as exc_info:
            peer_require("numpy")
        assert not isinstance(exc_info.value, DependencyNotDeclaredError)
        assert isinstance(exc_info.value, ImportError)
        assert 'pip install "numpy"' in str(exc_info.value)

    def test_not_installed_optional(self, peer_require):
        assert peer_require("numpy", optional=True) is None
        assert peer_require("rich", optional=True) is None

    def test_not_installed_dont_throw(self, peer_require):
        assert peer_require("numpy", dont_throw=True) is None

    def test_module_missing_after_manifest_found(self, peer_require, loader):
        """清单存在但模块本身找不到"""
        loader.manifests["numpy"] = {"version": "1.26.0"}
        del loader.modules["numpy"]

        with pytest.raises(DependencyNotInstalledError):
            peer_require("numpy")
        assert peer_require("numpy", optional=True) is None

    def test_load_error_propagates(self, peer_require, loader):
        loader.modules["requests"] = RuntimeError("broken import")

        with pytest.raises(DependencyLoadError) as exc_info:
            peer_require("requests")
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        # optional 只抑制未安装
        with pytest.raises(DependencyLoadError):
            peer_require("requests", optional=True)
        assert peer_require("requests", dont_throw=True) is None

    def test_manifest_read_error(self, peer_require, loader):
        error = PermissionError("denied")
        loader.manifests["requests"] = error

        with pytest.raises(DependencyLoadError) as exc_info:
            peer_require("requests")
        assert exc_info.value.__cause__ is error
        assert peer_require("requests", dont_throw=True) is None

    def test_version_mismatch(self, peer_require, loader):
        loader.manifests["requests"] = {"version": "2.28.0"}

        with pytest.raises(VersionMismatchError) as exc_info:
            peer_require("requests", optional=True)
        assert exc_info.value.actual == "2.28.0"
        assert exc_info.value.required == peer_require.dependencies["requests"]
        assert "2.28.0" in str(exc_info.value)
        assert peer_require("requests", dont_throw=True) is None

    def test_missing_version(self, peer_require, loader):
        loader.manifests["numpy"] = {"name": "numpy"}

        with pytest.raises(MissingVersionError) as exc_info:
            peer_require("numpy")
        assert not isinstance(exc_info.value, InvalidVersionError)
        assert peer_require("numpy", dont_throw=True) is None

    def test_invalid_version(self, peer_require, loader):
        """版本存在但格式错误与版本缺失是不同的情况"""
        loader.manifests["numpy"] = {"version": "banana"}

        with pytest.raises(InvalidVersionError):
            peer_require("numpy")

    def test_non_string_version(self, peer_require, loader):
        loader.manifests["numpy"] = {"version": 2}

        with pytest.raises(NonStringVersionError):
            peer_require("numpy")

    def test_no_range_returns_module(self, app_layout, loader):
        """组件没有声明范围时直接返回模块，不检查版本"""
        loader.manifests["numpy"] = {"name": "numpy"}
        gateway = create_peer_require(
            app_layout.component, loader=loader, consumer=app_layout.app_dir, sections=["other"]
        )
        assert gateway("numpy") is numpy_module

    def test_dont_throw_covers_all_call_errors(self, peer_require, loader):
        loader.manifests["numpy"] = {"version": "banana"}
        for name in ("rich", "numpy"):
            assert peer_require(name, dont_throw=True) is None

    def test_all_errors_are_peer_require_errors(self, peer_require):
        with pytest.raises(PeerRequireError):
            peer_require("rich")


class TestPeerRequireIntrospection:
    """测试 resolve 与 check_all"""

    def test_resolve_does_not_load(self, peer_require, loader):
        result = peer_require.resolve("requests")
        assert result.is_valid is True
        assert loader.load_calls == ["my_component"]

    def test_resolve_never_raises(self, peer_require):
        assert peer_require.resolve("rich").is_installed is False
        assert peer_require.resolve("unknown").supported_range is None

    def test_check_all(self, peer_require):
        results = peer_require.check_all()
        assert [r.name for r in results] == ["numpy", "pyyaml", "requests", "rich"]
        assert [r.is_valid for r in results] == [False, True, True, False]

    def test_repr(self, peer_require):
        assert "my_component" in repr(peer_require)


class TestAsModule:
    """测试 as_module"""

    def test_module_object(self):
        module = types.ModuleType("x")
        assert as_module(module) is module

    def test_module_name(self):
        import json

        assert as_module("json") is json
