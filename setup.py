#!/usr/bin/env python3
"""Setup script for cdbg-bootstrap."""

from setuptools import setup, find_packages

setup(
    name="cdbg-bootstrap",
    version="0.1.0",
    description="Provisions the Cloud Debugger Java agent before application launch",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11.4",
    install_requires=[
        "httpx>=0.26.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.7.0",
        "structlog>=24.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "cdbg-bootstrap=cdbg_bootstrap.__main__:run",
        ],
    },
)
