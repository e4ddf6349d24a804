# -*- coding: utf-8 -*-
"""
版本范围校验

在 packaging 之上提供语义化版本范围的解析与匹配。
同时接受 npm 风格的范围（~1.2.0、^1.2、1.2.x、1.0 - 2.0、a || b）
和 PEP 440 版本规范（>=1.2,<2、~=1.4）。

预发布版本（1.2.3-beta.2）只有在同一 主.次.修订 上存在带预发布标记的比较子句时才会匹配。
预发布标记只支持 PEP 440 能表示的形式（alpha、a、beta、b、c、rc、pre、preview、dev、post），
1.0.0-foo 这类任意标记被视为无效版本。
"""

import re
from dataclasses import dataclass
from typing import Any, List, Optional, Set, Tuple

from packaging import specifiers, version

# 单个版本（可能是部分版本或 x 通配）: 主版本[.次版本[.修订号]][预发布/构建后缀]
_PARTIAL = re.compile(
    r"^v?(?P<major>\d+|[xX*])"
    r"(?:\.(?P<minor>\d+|[xX*]))?"
    r"(?:\.(?P<patch>\d+|[xX*]))?"
    r"(?P<rest>[-+.]?[0-9A-Za-z][0-9A-Za-z.+-]*)?$"
)
_HYPHEN = re.compile(r"^(?P<low>\S+)\s+-\s+(?P<high>\S+)$")
_OPERATORS = ("===", "~=", "==", "!=", "<=", ">=", "<", ">", "=", "~", "^")
_WILDCARDS = ("x", "X", "*")


@dataclass(frozen=True)
class VersionRange:
    """版本范围：若干 SpecifierSet 的并集"""

    alternatives: Tuple[specifiers.SpecifierSet, ...]

    def __contains__(self, item: Any) -> bool:
        parsed = item if isinstance(item, version.Version) else parse_version(item)
        if parsed is None:
            return False

        for alt in self.alternatives:
            # 预发布版本只能匹配同一 主.次.修订 上带预发布标记的比较子句
            if parsed.is_prerelease and _release(parsed) not in _prerelease_releases(alt):
                continue
            if alt.contains(parsed, prereleases=True):
                return True
        return False

    def __str__(self) -> str:
        parts = [str(alt) or "*" for alt in self.alternatives]
        return " || ".join(parts)


def parse_version(value: Any) -> Optional[version.Version]:
    """解析版本号；缺失、非字符串或格式不合法时返回 None"""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return version.Version(value.strip())
    except version.InvalidVersion:
        return None


def _release(parsed: version.Version) -> Tuple[int, int, int]:
    """补齐到三段的发布号"""
    return tuple((list(parsed.release) + [0, 0, 0])[:3])


def _prerelease_releases(alt: specifiers.SpecifierSet) -> Set[Tuple[int, int, int]]:
    releases = set()
    for spec in alt:
        bound = parse_version(spec.version)
        if bound is not None and bound.is_prerelease:
            releases.add(_release(bound))
    return releases


def parse_range(expr: Any) -> VersionRange:
    """
    解析版本范围表达式

    Args:
        expr: 版本范围表达式

    Returns:
        VersionRange 实例

    Raises:
        ValueError: 表达式无法解析
    """
    if not isinstance(expr, str):
        raise ValueError(f"版本范围必须是字符串: {expr!r}")

    alternatives = []
    for branch in expr.split("||"):
        clauses = _translate_branch(branch.strip())
        try:
            alternatives.append(specifiers.SpecifierSet(",".join(clauses)))
        except specifiers.InvalidSpecifier as e:
            raise ValueError(f"无效的版本范围 {expr!r}: {e}") from e

    return VersionRange(tuple(alternatives))


def valid_range(expr: Any) -> Optional[str]:
    """校验版本范围，返回规范化后的字符串；无效时返回 None"""
    try:
        return str(parse_range(expr))
    except ValueError:
        return None


def satisfies(value: Any, expr: Any) -> bool:
    """判断版本是否落在范围内；版本或范围无效时返回 False"""
    try:
        return value in parse_range(expr)
    except ValueError:
        return False


def _translate_branch(branch: str) -> List[str]:
    """把一个分支（不含 ||）翻译为 PEP 440 子句列表"""
    if branch in ("", *_WILDCARDS):
        return []

    hyphen = _HYPHEN.match(branch)
    if hyphen:
        return _hyphen_range(hyphen.group("low"), hyphen.group("high"))

    clauses: List[str] = []
    for token in _tokenize(branch):
        clauses.extend(_translate_comparator(token))
    return clauses


def _tokenize(branch: str) -> List[str]:
    """按空白和逗号切分比较子句，并把悬空的运算符与其后的版本号合并"""
    raw = [t for t in re.split(r"[\s,]+", branch) if t]
    tokens: List[str] = []
    pending = ""
    for token in raw:
        if token in _OPERATORS:
            pending += token
            continue
        tokens.append(pending + token)
        pending = ""
    if pending:
        raise ValueError(f"运算符 {pending!r} 后缺少版本号")
    return tokens


def _split_operator(token: str) -> Tuple[str, str]:
    for op in _OPERATORS:
        if token.startswith(op):
            return op, token[len(op):].strip()
    return "", token


def _parse_partial(text: str) -> Tuple[List[int], str]:
    """解析部分版本，返回已给出的数字分量与后缀"""
    match = _PARTIAL.match(text)
    if not match:
        raise ValueError(f"无效的版本: {text!r}")

    numbers: List[int] = []
    for part in ("major", "minor", "patch"):
        value = match.group(part)
        if value is None or value in _WILDCARDS:
            break
        numbers.append(int(value))

    rest = match.group("rest") or ""
    if rest and len(numbers) < 3:
        raise ValueError(f"部分版本不能带预发布后缀: {text!r}")
    if rest:
        # 校验完整版本（含预发布/构建后缀）能被 PEP 440 接受
        if parse_version(_join(numbers) + rest) is None:
            raise ValueError(f"无效的版本: {text!r}")
    return numbers, rest


def _join(numbers: List[int]) -> str:
    padded = list(numbers) + [0] * (3 - len(numbers))
    return ".".join(str(n) for n in padded)


def _bump(numbers: List[int], index: int) -> str:
    """把第 index 个分量加一，其后分量清零"""
    bumped = list(numbers[: index + 1])
    bumped[index] += 1
    return _join(bumped)


def _partial_bounds(numbers: List[int]) -> List[str]:
    """部分版本 1.2 / 1.2.x 对应的区间"""
    if not numbers:
        return []
    if len(numbers) == 3:
        return [f"=={_join(numbers)}"]
    return [f">={_join(numbers)}", f"<{_bump(numbers, len(numbers) - 1)}"]


def _translate_comparator(token: str) -> List[str]:
    op, text = _split_operator(token)
    if text in _WILDCARDS or (text and text[0] in _WILDCARDS and op not in ("~=", "===")):
        if op in ("", "=", "==", ">=", "~", "^"):
            return []
        if op in ("<", ">", "!="):
            # "<*" 与 ">*" 无法满足
            return ["<0.0.0a0"]
        raise ValueError(f"无效的比较子句: {token!r}")

    if op in ("~=", "==="):
        return [f"{op}{text}"]

    numbers, rest = _parse_partial(text)
    full = _join(numbers) + rest

    if op == "~":
        if len(numbers) == 1:
            return [f">={full}", f"<{_bump(numbers, 0)}"]
        return [f">={full}", f"<{_bump(numbers, 1)}"]

    if op == "^":
        return _caret(numbers, full)

    if op in ("", "=", "=="):
        if len(numbers) < 3:
            return _partial_bounds(numbers)
        return [f"=={full}"]

    if op == "!=":
        if len(numbers) < 3:
            return [f"!={'.'.join(str(n) for n in numbers)}.*"]
        return [f"!={full}"]

    if len(numbers) < 3:
        # 部分版本的开区间/闭区间需要按 npm 语义取整
        if op == ">":
            return [f">={_bump(numbers, len(numbers) - 1)}"]
        if op == "<=":
            return [f"<{_bump(numbers, len(numbers) - 1)}"]
    return [f"{op}{full}"]


def _caret(numbers: List[int], full: str) -> List[str]:
    """^ 范围：允许不改变最左侧非零分量的升级"""
    if len(numbers) == 1:
        return [f">={full}", f"<{_bump(numbers, 0)}"]
    major, minor = numbers[0], numbers[1]
    if major != 0:
        return [f">={full}", f"<{_bump(numbers, 0)}"]
    if len(numbers) == 2 or minor != 0:
        return [f">={full}", f"<{_bump(numbers, 1)}"]
    return [f">={full}", f"<{_bump(numbers, 2)}"]


def _hyphen_range(low: str, high: str) -> List[str]:
    """闭区间 A - B，上界为部分版本时向上取整"""
    low_numbers, low_rest = _parse_partial(low)
    high_numbers, high_rest = _parse_partial(high)

    clauses = []
    if low_numbers:
        clauses.append(f">={_join(low_numbers)}{low_rest}")
    if not high_numbers:
        return clauses
    if len(high_numbers) == 3:
        clauses.append(f"<={_join(high_numbers)}{high_rest}")
    else:
        clauses.append(f"<{_bump(high_numbers, len(high_numbers) - 1)}")
    return clauses
