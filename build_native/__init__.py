"""
build_native - Build system for multi-architecture native packages.

This package provides:
1. A CLI tool: `python -m build_native` to compile one descriptor
2. The build matrix and manifest assembler behind `nativepack build`

Usage:
    python -m build_native --source ./src --output ./out             # host architecture, release
    python -m build_native --source ./src --output ./out --arch arm64 --configuration debug
"""

from .compiler import (
    ArtifactBuilder,
    ScriptToolchain,
    Toolchain,
    get_platform_info,
    read_source_version,
    record_source_version,
)
from .matrix import AllSucceeded, BuildMatrix, PartialFailure
from .manifest import ManifestAssembler
from .pipeline import package_release

__all__ = [
    "AllSucceeded",
    "ArtifactBuilder",
    "BuildMatrix",
    "ManifestAssembler",
    "PartialFailure",
    "ScriptToolchain",
    "Toolchain",
    "get_platform_info",
    "package_release",
    "read_source_version",
    "record_source_version",
]
__version__ = "1.0.0"
