#!/usr/bin/env python3
"""Setup script for the Aria language client package."""

import sys

from setuptools import find_packages, setup

# Read version from the package
with open("arialsp/__init__.py") as f:
    for line in f:
        if line.startswith("__version__"):
            version = line.split("=")[1].strip().strip('"').strip("'")
            break
    else:
        version = "0.0.0"

# Read long description from README
with open("README.md") as f:
    long_description = f.read()

# Display warning about external dependencies
print("""
IMPORTANT: This package launches the Aria language server, which is not installed via pip.
Build it with `cargo build -p lsp` or point aria.lsp.serverPath / ARIA_LSP_PATH at a binary.
""", file=sys.stderr)

setup(
    name="arialsp",
    version=version,
    description="Language client and inlay hints overlay for the Aria language server",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pygls>=2.0.0",
        "pathspec>=0.11",
        "lsprotocol>=2025.0.0",
        "pydantic>=2.0.0",
        "click>=8.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "arialsp=arialsp.cli:main",
            "arialsp-service=arialsp.service:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
)
