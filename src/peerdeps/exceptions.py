# -*- coding: utf-8 -*-
"""
peerdeps 核心异常
"""

from typing import Optional


class PeerDepsError(Exception):
    """所有 peerdeps 自定义异常的基类。"""

    pass


# region 注册期异常（不可抑制）


class RegistrationError(PeerDepsError):
    """组件注册失败的基类。组件自身配置错误，必须在注册时显式失败。"""

    pass


class ManifestNotFoundError(RegistrationError, FileNotFoundError):
    """向上遍历到文件系统根目录仍未找到清单文件时引发。"""

    pass


class ManifestIdentityError(RegistrationError):
    """找到了清单文件，但它描述的并不是发起查找的模块。"""

    pass


class ManifestFormatError(RegistrationError, ValueError):
    """清单文件无法解析，或其中的字段不合法时引发。"""

    pass


class InvalidRangeError(RegistrationError, ValueError):
    """依赖声明了无效的版本范围时引发。"""

    def __init__(self, dependency: str, raw_range: object):
        self.dependency = dependency
        self.raw_range = raw_range
        super().__init__(f'依赖 "{dependency}" 的版本范围 {raw_range!r} 不是有效的版本范围')


class MissingRegistrationNameError(RegistrationError):
    """既没有显式名称，清单中也没有 name 字段时引发。"""

    pass


# endregion

# region 调用期异常（可通过 dont_throw 抑制）


class PeerRequireError(PeerDepsError):
    """按需加载可选依赖失败的基类。"""

    def __init__(self, message: str, dependency: str, requirer: Optional[str] = None):
        self.dependency = dependency
        self.requirer = requirer
        super().__init__(message)


class DependencyNotInstalledError(PeerRequireError, ImportError):
    """依赖未安装时引发，消息中附带安装建议。"""

    def __init__(
        self,
        dependency: str,
        requirer: Optional[str] = None,
        required: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        self.required = required
        requirement = f"{dependency}{_pip_range(required)}"
        message = f'组件 "{requirer}" 需要的依赖 "{dependency}" 未安装'
        if reason:
            message += f" ({reason})"
        message += f'，请安装: pip install "{requirement}"'
        super().__init__(message, dependency, requirer)


class DependencyNotDeclaredError(DependencyNotInstalledError):
    """宿主应用的清单中没有声明该依赖，视为未安装。"""

    def __init__(
        self,
        dependency: str,
        requirer: Optional[str] = None,
        required: Optional[str] = None,
    ):
        super().__init__(
            dependency,
            requirer,
            required,
            reason="宿主应用清单中未声明该依赖",
        )


class DependencyLoadError(PeerRequireError, ImportError):
    """依赖已安装，但加载时出现了“未找到”以外的错误。"""

    pass


class MissingVersionError(PeerRequireError):
    """依赖的清单中缺少版本信息时引发。"""

    pass


class InvalidVersionError(MissingVersionError):
    """依赖的版本号存在，但不是合法的版本格式。"""

    pass


class NonStringVersionError(PeerRequireError, TypeError):
    """依赖清单中的版本字段不是字符串时引发。"""

    pass


class VersionMismatchError(PeerRequireError):
    """已安装版本不满足声明的版本范围时引发。"""

    def __init__(
        self,
        dependency: str,
        requirer: Optional[str],
        required: str,
        actual: str,
    ):
        self.required = required
        self.actual = actual
        super().__init__(
            f'组件 "{requirer}" 需要依赖 "{dependency}" 满足 {required}，'
            f"但已安装的版本为 {actual}",
            dependency,
            requirer,
        )


# endregion

# region 加载器信号


class ModuleMissingError(PeerDepsError, ModuleNotFoundError):
    """加载器确认目标模块或其清单确实不存在时引发。

    与依赖内部的语法错误、初始化错误等其他加载失败严格区分。
    """

    pass


# endregion


def _pip_range(required: Optional[str]) -> str:
    """把规范化的版本范围转换成 pip 可读的后缀"""
    if not required or required == "*":
        return ""
    if "||" in required:
        # pip 不支持并集，只给出第一个分支
        required = required.split("||", 1)[0].strip()
    return required
