#!/usr/bin/env python3
"""Setup script for account_migration package.
"""

from setuptools import find_packages, setup

setup(
    name="account-migration",
    version="1.0.0",
    description="Resumable migration and unification of exported user accounts",
    author="Account Migration Team",
    packages=find_packages(include=["account_migration*"]),
    python_requires=">=3.10",
    install_requires=[
        "pandas>=1.5.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "hypothesis>=6.0.0",
            "black>=23.0.0",
            "ruff>=0.1.0",
            "mypy>=1.5.0",
            "pandas-stubs>=2.0.0",
            "types-PyYAML>=6.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "account-migration=account_migration.migrate:main",
        ],
    },
)
