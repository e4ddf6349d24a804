# -*- coding: utf-8 -*-
"""
peerdeps 命令行接口
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import PeerRequireOptions
from .dependency.gateway import as_module
from .dependency.locator import ManifestLocator, module_origin
from .dependency.manifest import extract_dependencies
from .dependency.resolver import DependencyResolver, ResolutionResult
from .exceptions import RegistrationError
from .loader import ImportlibLoader


def _status(result: ResolutionResult) -> str:
    if result.is_installed is None:
        return "异常"
    if not result.is_installed:
        return "未声明" if not result.declared_by_consumer else "未安装"
    return "可用" if result.is_valid else "版本不符"


def _print_results(component: str, results: List[ResolutionResult]) -> None:
    """格式化并打印检查结果。"""
    print(f"\n--- {component} 可选依赖检查 ---")
    if not results:
        print("未声明任何可选依赖")

    for result in results:
        required = result.supported_range or "*"
        installed = result.installed_version or "-"
        print(f"{result.name:<24} {required:<20} {installed:<12} {_status(result)}")
        if result.error is not None:
            print(f"    {result.error}")

    print("-" * 22)


def _exit_code(results: List[ResolutionResult], strict: bool) -> int:
    for result in results:
        if result.is_installed is None:
            return 1
        if result.is_installed and not result.is_valid:
            return 1
        if strict and not result.is_installed:
            return 1
    return 0


def check(args: argparse.Namespace) -> int:
    """检查组件声明的可选依赖在宿主应用中的状态"""
    option_kwargs = {}
    if args.consumer:
        option_kwargs["consumer"] = Path(args.consumer)
    if args.section:
        option_kwargs["sections"] = args.section
    if args.config:
        options = PeerRequireOptions.load_from_file(args.config, args.env, **option_kwargs)
    else:
        options = PeerRequireOptions(**option_kwargs)
    loader = ImportlibLoader()

    module = as_module(args.component)
    locator = ManifestLocator(loader, options.manifest_filenames)
    located = locator.locate(module_origin(module), identity_check=False)
    dependencies = extract_dependencies(located.data, options.sections)
    consumer = locator.locate(options.consumer_root(), identity_check=False)

    resolver = DependencyResolver(dependencies, consumer.data, loader, options.consumer_sections)
    results = [resolver.resolve(name) for name in sorted(dependencies)]

    if args.json:
        report = {
            "component": args.component,
            "manifest": str(located.path),
            "consumer_manifest": str(consumer.path),
            "dependencies": [result.to_dict() for result in results],
        }
        print(json.dumps(report, ensure_ascii=False, indent=2))
    else:
        print(f"组件清单: {located.path}")
        print(f"宿主清单: {consumer.path}")
        _print_results(args.component, results)

    return _exit_code(results, args.strict)


def main(argv: Optional[List[str]] = None) -> None:
    """命令行主入口"""
    parser = argparse.ArgumentParser(
        prog="peerdeps",
        description="peerdeps - 组件可选依赖检查工具",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser("check", help="检查组件的可选依赖")
    check_parser.add_argument("component", help="组件的模块名")
    check_parser.add_argument("--consumer", help="宿主应用目录或其中的文件")
    check_parser.add_argument(
        "--section", action="append", help="扫描的依赖节，可重复，后面的节优先"
    )
    check_parser.add_argument("--config", help="选项配置文件 (YAML、JSON、TOML 或 pyproject.toml)")
    check_parser.add_argument("--env", help="配置文件中使用的环境块，默认取 APP_ENV")
    check_parser.add_argument("--strict", action="store_true", help="存在未安装的依赖时也返回非零")
    check_parser.add_argument("--json", action="store_true", help="以 JSON 输出")
    check_parser.add_argument("--verbose", "-v", action="store_true", help="输出调试日志")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        sys.exit(check(args))
    except (RegistrationError, ImportError, ValueError, OSError) as e:
        print(f"检查失败: {e}", file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        print("\n用户中断", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
