# -*- coding: utf-8 -*-
"""
组件清单

负责清单文件的读取、组件自身清单的校验，以及从清单中提取可选依赖的版本范围。
"""

import json
import tomllib
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Set

import yaml
from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..exceptions import InvalidRangeError, ManifestFormatError
from .version_range import parse_version, valid_range


class PackageManifest(BaseModel):
    """
    组件清单模型

    只校验本系统关心的字段，其余节（依赖声明等）原样保留。
    """

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = Field(default=None, description="组件名称")
    version: Optional[str] = Field(default=None, description="组件版本 (语义化版本)")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        """验证组件名称"""
        if v is not None and not v.strip():
            raise ValueError("组件名称不能为空字符串")
        return v

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v):
        """验证版本格式"""
        if v is None:
            return v
        if parse_version(v) is None:
            raise ValueError(f"无效的版本格式: {v!r}")
        return v

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], source: Optional[Path] = None) -> "PackageManifest":
        """从已解析的清单构建模型，校验失败时抛出 ManifestFormatError"""
        try:
            return cls(**dict(data))
        except ValidationError as e:
            where = f" {source}" if source else ""
            raise ManifestFormatError(f"清单{where}校验失败: {e}") from e


class ManifestReader:
    """
    清单读取器

    支持 YAML、JSON 与 pyproject.toml 三种格式，统一返回嵌套字典。
    """

    @staticmethod
    def load_from_file(manifest_path: Path) -> Dict[str, Any]:
        """从文件加载清单"""
        manifest_path = Path(manifest_path)
        if not manifest_path.exists():
            raise FileNotFoundError(f"清单文件不存在: {manifest_path}")

        suffix = manifest_path.suffix.lower()
        try:
            if suffix in (".yaml", ".yml"):
                with open(manifest_path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f)
            elif suffix == ".json":
                with open(manifest_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            elif suffix == ".toml":
                with open(manifest_path, "rb") as f:
                    data = tomllib.load(f)
            else:
                raise ManifestFormatError(f"不支持的清单文件格式: {manifest_path.suffix}")
        except (yaml.YAMLError, json.JSONDecodeError, tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
            raise ManifestFormatError(f"解析清单失败 {manifest_path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ManifestFormatError(f"清单 {manifest_path} 的顶层必须是映射")

        if manifest_path.name == "pyproject.toml":
            return ManifestReader.normalize_pyproject(data)
        return data

    @staticmethod
    def normalize_pyproject(data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        把 pyproject.toml 整理成与 YAML 清单相同的结构

        - name/version 取自 [project]，缺失时取 [tool.poetry]
        - dependencies / optional_dependencies / dev_dependencies 为 名称 -> 版本规范
        - [tool.peerdeps] 表合并到顶层
        - 保留原始的 project 与 tool 表，便于按点号路径查找
        """
        project = data.get("project") or {}
        tool = data.get("tool") or {}
        poetry = tool.get("poetry") or {}

        manifest: Dict[str, Any] = dict(tool.get("peerdeps") or {})
        manifest["project"] = project
        manifest["tool"] = tool

        name = project.get("name") or poetry.get("name")
        version = project.get("version") or poetry.get("version")
        if name is not None:
            manifest["name"] = name
        if version is not None:
            manifest["version"] = version

        dependencies = _requirements_to_map(project.get("dependencies") or [])
        dependencies.update(_poetry_to_map(poetry.get("dependencies") or {}))
        manifest["dependencies"] = dependencies

        optional: Dict[str, str] = {}
        for requirements in (project.get("optional-dependencies") or {}).values():
            optional.update(_requirements_to_map(requirements))
        manifest["optional_dependencies"] = optional

        dev: Dict[str, str] = {}
        for requirements in (data.get("dependency-groups") or {}).values():
            # include-group 条目是字典，这里只取字符串形式的依赖
            dev.update(_requirements_to_map(r for r in requirements if isinstance(r, str)))
        for group in (poetry.get("group") or {}).values():
            dev.update(_poetry_to_map(group.get("dependencies") or {}))
        dev.update(_poetry_to_map(poetry.get("dev-dependencies") or {}))
        manifest["dev_dependencies"] = dev

        return manifest


def lookup_section(manifest: Mapping[str, Any], section: str) -> Any:
    """按节名查找，先精确匹配，再按点号路径逐层查找"""
    if section in manifest:
        return manifest[section]

    node: Any = manifest
    for part in section.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def extract_dependencies(manifest: Mapping[str, Any], sections: Sequence[str]) -> Dict[str, str]:
    """
    从清单中提取可选依赖的版本范围

    按 sections 的顺序扫描，后出现的节覆盖前面节中的同名依赖。
    每个版本范围都会立即校验。

    Args:
        manifest: 已解析的清单
        sections: 要扫描的节名列表

    Returns:
        规范化依赖名 -> 规范化版本范围

    Raises:
        InvalidRangeError: 任一版本范围无效
    """
    dependencies: Dict[str, str] = {}

    for section in sections:
        entries = lookup_section(manifest, section)
        if not entries:
            continue

        for name, raw_range in _iter_entries(entries):
            sanitised = valid_range(raw_range)
            if sanitised is None:
                raise InvalidRangeError(name, raw_range)
            dependencies[canonicalize_name(name)] = sanitised

    return dependencies


def declared_names(manifest: Mapping[str, Any], sections: Sequence[str]) -> Set[str]:
    """列出宿主应用在依赖声明节中出现过的所有依赖（规范化名称）"""
    names: Set[str] = set()
    for section in sections:
        entries = lookup_section(manifest, section)
        if not entries:
            continue
        if isinstance(entries, Mapping):
            names.update(canonicalize_name(name) for name in entries)
        elif isinstance(entries, list):
            names.update(_requirements_to_map(e for e in entries if isinstance(e, str)))
    return names


def _iter_entries(entries: Any) -> Iterable[tuple]:
    """把一个节统一展开为 (依赖名, 原始版本范围)"""
    if isinstance(entries, Mapping):
        for name, value in entries.items():
            if isinstance(value, Mapping):
                # poetry 风格: name = { version = "^1.2", optional = true }
                value = value.get("version", "*")
            yield str(name), value
    elif isinstance(entries, list):
        for entry in entries:
            try:
                requirement = Requirement(entry)
            except (InvalidRequirement, TypeError) as e:
                raise InvalidRangeError(str(entry), entry) from e
            yield requirement.name, str(requirement.specifier) or "*"
    else:
        raise ManifestFormatError(f"依赖节必须是映射或列表，实际为 {type(entries).__name__}")


def _requirements_to_map(requirements: Iterable[str]) -> Dict[str, str]:
    """PEP 508 依赖列表 -> 名称到版本规范的映射，无法解析的条目被忽略"""
    result: Dict[str, str] = {}
    for entry in requirements:
        try:
            requirement = Requirement(entry)
        except InvalidRequirement:
            continue
        result[canonicalize_name(requirement.name)] = str(requirement.specifier) or "*"
    return result


def _poetry_to_map(dependencies: Mapping[str, Any]) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for name, value in dependencies.items():
        if name == "python":
            continue
        if isinstance(value, Mapping):
            value = value.get("version", "*")
        elif isinstance(value, list):
            # 多约束形式，只记录名称
            value = "*"
        result[canonicalize_name(name)] = str(value)
    return result
