# -*- coding: utf-8 -*-
"""
peerdeps 注册配置
提供基于 Pydantic 的注册选项校验，支持环境变量解析和多环境配置
"""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .loader import MANIFEST_FILENAMES

T = TypeVar("T", bound="PeerRequireOptions")

# 环境变量引用: ${VAR} 或带默认值的 ${VAR:-default}，可出现在字符串任意位置
ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")

# 选择配置环境块的环境变量
APP_ENV_VAR = "APP_ENV"

# 宿主应用根目录的默认来源
CONSUMER_ROOT_ENV = "PEERDEPS_CONSUMER_ROOT"

# 组件清单中默认扫描的节
DEFAULT_SECTIONS = ["optional_peer_dependencies"]

# 宿主清单中声明依赖的节：常规、开发、可选
CONSUMER_SECTIONS = ["dependencies", "dev_dependencies", "optional_dependencies"]


class PeerRequireOptions(BaseModel):
    """
    组件注册选项

    1. **严格模式验证**：禁止额外字段，防止选项拼写错误
    2. **环境变量展开**：字符串中的 "${VAR}" 与 "${VAR:-default}" 在校验前展开
    3. **多环境配置**：配置文件按 APP_ENV 选择环境块，命令行参数优先
    """

    sections: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SECTIONS),
        description="扫描的依赖节，后面的节优先级更高",
    )
    name: Optional[str] = Field(default=None, description="显式注册名，覆盖清单中的 name")
    identity_check: bool = Field(default=True, description="是否确认清单属于发起注册的模块")
    consumer: Optional[Path] = Field(default=None, description="宿主应用的目录或其中的文件")
    manifest_filenames: Tuple[str, ...] = Field(
        default=MANIFEST_FILENAMES, description="按顺序尝试的清单文件名"
    )
    consumer_sections: List[str] = Field(
        default_factory=lambda: list(CONSUMER_SECTIONS),
        description="宿主清单中声明依赖的节",
    )

    # Pydantic v2 配置
    model_config = ConfigDict(
        extra="forbid", validate_assignment=True  # 禁止额外字段  # 赋值时验证
    )

    @model_validator(mode="before")
    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """在字段校验之前展开字符串中的环境变量引用"""
        if not isinstance(data, dict):
            return data
        return {key: expand_env_vars(value) for key, value in data.items()}

    @field_validator("sections", "manifest_filenames")
    @classmethod
    def validate_not_empty(cls, v):
        if not v:
            raise ValueError("列表不能为空")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError("注册名不能为空字符串")
        return v

    def consumer_root(self) -> Path:
        """宿主应用的查找起点：显式配置 > 环境变量 > 当前工作目录"""
        if self.consumer is not None:
            return self.consumer
        env_root = os.getenv(CONSUMER_ROOT_ENV)
        if env_root:
            return Path(env_root)
        return Path.cwd()

    @classmethod
    def load_from_dict(
        cls: Type[T],
        config_data: Mapping[str, Any],
        env: Optional[str] = None,
        **overrides: Any,
    ) -> T:
        """
        按 default 块 < 环境块 < 显式覆盖 的顺序合并选项

        配置结构示例：
        {
            "default": {"consumer": "${APP_ROOT:-.}"},
            "testing": {"identity_check": false}
        }

        Args:
            config_data: 按环境分块的配置
            env: 目标环境，为 None 时取 APP_ENV，默认 development
            **overrides: 优先级最高的选项，通常来自命令行
        """
        env = env or os.getenv(APP_ENV_VAR, "development")

        merged: Dict[str, Any] = {}
        for layer in (config_data.get("default"), config_data.get(env), overrides):
            if layer is None:
                continue
            if not isinstance(layer, Mapping):
                raise ValueError(f"配置块必须是映射，实际为 {type(layer).__name__}")
            merged.update(copy.deepcopy(dict(layer)))
        return cls(**merged)

    @classmethod
    def load_from_file(
        cls: Type[T],
        config_path: Union[str, Path],
        env: Optional[str] = None,
        **overrides: Any,
    ) -> T:
        """
        从 YAML、JSON 或 TOML 文件加载选项

        pyproject.toml 中读取 [tool.peerdeps.options] 表，其余文件整个作为配置。
        """
        from .dependency.manifest import ManifestReader

        config_path = Path(config_path)
        data = ManifestReader.load_from_file(config_path)
        if config_path.name == "pyproject.toml":
            data = data.get("options") or {}
        return cls.load_from_dict(data, env, **overrides)


def expand_env_vars(value: Any) -> Any:
    """
    递归展开环境变量引用

    Raises:
        ValueError: 引用的环境变量未设置且没有默认值
    """
    if isinstance(value, str):
        return ENV_VAR_PATTERN.sub(_env_value, value)
    if isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(expand_env_vars(v) for v in value)
    return value


def _env_value(match: "re.Match[str]") -> str:
    name, default = match.group(1), match.group(2)
    resolved = os.getenv(name, default)
    if resolved is None:
        raise ValueError(f"环境变量 '{name}' 未设置")
    return resolved
