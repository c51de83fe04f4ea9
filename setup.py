#!/usr/bin/env python3
# setup.py：安装 vuln-list 批量更新工具
#
# 安装方式：
#   pip install -e .
#   pip install -e ".[test]"
#
# 启动方式：
#   vuln-list-sync
#   python main.py

from setuptools import setup, find_packages

try:
    with open("README.md", "r", encoding="utf-8") as fh:
        long_description = fh.read()
except FileNotFoundError:
    long_description = "Batch update orchestrator for vuln-list data repositories"

setup(
    name="vuln-list-sync",
    version="1.0.0",
    description="Run vuln-list update targets and commit results per repository",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages("src"),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[
        "colorama>=0.4.6",
        "keyring>=25.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "vuln-list-sync=vuln_list_sync.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "Topic :: Security",
        "Topic :: Software Development :: Version Control :: Git",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
