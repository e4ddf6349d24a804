#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Setup script for peerdeps
"""

import sys
from pathlib import Path

try:
    from setuptools import find_packages, setup
except ImportError:
    print("Error: setuptools is required to install peerdeps")
    print("Please install setuptools first: pip install setuptools")
    sys.exit(1)

# Determine the directory containing this setup.py file
here = Path(__file__).parent.absolute()


# Read version from __init__.py
def get_version():
    init_file = here / "src" / "peerdeps" / "__init__.py"
    if init_file.exists():
        with open(init_file, "r", encoding="utf-8") as f:
            for line in f:
                if line.startswith("__version__"):
                    return line.split("=")[1].strip().strip('"').strip("'")
    return "1.0.0"


# Read the README file
def get_long_description():
    readme_file = here / "README.md"
    if readme_file.exists():
        with open(readme_file, "r", encoding="utf-8") as f:
            return f.read()
    return ""


# Core dependencies
INSTALL_REQUIRES = [
    "packaging>=23.0",
    "pydantic>=2.0,<3.0",
    "PyYAML>=6.0",
]

# Optional dependencies
EXTRAS_REQUIRE = {
    "dev": [
        "pytest>=8.2.1",
        "pytest-cov>=5.0.0",
        "pytest-mock>=3.12.0",
    ],
}

setup(
    name="peerdeps",
    version=get_version(),
    description="组件可选依赖的运行时解析与按需加载：版本范围校验、清单定位与优雅降级",
    long_description=get_long_description(),
    long_description_content_type="text/markdown",
    license="MIT",
    # Package discovery
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    # Dependencies
    python_requires=">=3.11",
    install_requires=INSTALL_REQUIRES,
    extras_require=EXTRAS_REQUIRE,
    # Entry points
    entry_points={
        "console_scripts": [
            "peerdeps=peerdeps.cli:main",
        ],
    },
    # Classification
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    keywords=[
        "dependencies",
        "optional",
        "peer",
        "semver",
        "manifest",
    ],
    # Build options
    zip_safe=False,
)
