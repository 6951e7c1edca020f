"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module defines the build target descriptors used by both the package
build (as build keys) and consumers (as resolution keys).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Tuple


class Architecture(Enum):
    """CPU architectures a native artifact is compiled for."""

    X86 = "x86"
    X64 = "x64"
    ARM = "arm"
    ARM64 = "arm64"


class Configuration(Enum):
    """Build configurations. Release is the only one consumers can rely on."""

    DEBUG = "debug"
    RELEASE = "release"


# Wheel-style platform tag per architecture. Keep in sync with Architecture.
PLATFORM_TAGS: Dict[Architecture, str] = {
    Architecture.X86: "win32",
    Architecture.X64: "win_amd64",
    Architecture.ARM: "win_arm32",
    Architecture.ARM64: "win_arm64",
}

# Names seen in the wild (platform.machine(), ARCHITECTURE env var, RIDs)
_ARCHITECTURE_ALIASES: Dict[str, Architecture] = {
    "x86": Architecture.X86,
    "win32": Architecture.X86,
    "i386": Architecture.X86,
    "i686": Architecture.X86,
    "x64": Architecture.X64,
    "amd64": Architecture.X64,
    "x86_64": Architecture.X64,
    "win64": Architecture.X64,
    "arm": Architecture.ARM,
    "arm32": Architecture.ARM,
    "armv7l": Architecture.ARM,
    "arm64": Architecture.ARM64,
    "aarch64": Architecture.ARM64,
}

_ARCHITECTURE_ORDER = list(Architecture)
_CONFIGURATION_ORDER = list(Configuration)


def parse_architecture(name: str) -> Architecture:
    """
    Map an architecture name or alias to an Architecture.

    Raises:
        ValueError: If the name is not a known architecture.
    """
    key = name.strip().strip("\"'").lower()
    try:
        return _ARCHITECTURE_ALIASES[key]
    except KeyError:
        raise ValueError(
            f"Unknown architecture '{name}'. "
            f"Expected one of: {', '.join(a.value for a in Architecture)}"
        ) from None


def parse_configuration(name: str) -> Configuration:
    """
    Map a configuration name (case-insensitive) to a Configuration.

    Raises:
        ValueError: If the name is not a known configuration.
    """
    key = name.strip().strip("\"'").lower()
    for configuration in Configuration:
        if configuration.value == key:
            return configuration
    raise ValueError(
        f"Unknown configuration '{name}'. "
        f"Expected one of: {', '.join(c.value for c in Configuration)}"
    )


@dataclass(frozen=True)
class ArchitectureDescriptor:
    """
    Identifies one build target: an (architecture, configuration) pair.

    Immutable and hashable, so it can key both the build matrix and the
    package manifest.
    """

    architecture: Architecture
    configuration: Configuration = Configuration.RELEASE

    @classmethod
    def parse(cls, text: str) -> "ArchitectureDescriptor":
        """
        Parse "x64-release", "arm64-debug" or a bare "x64" (release).

        Raises:
            ValueError: If either part is unknown.
        """
        arch_part, sep, config_part = text.strip().partition("-")
        architecture = parse_architecture(arch_part)
        if not sep:
            return cls(architecture)
        return cls(architecture, parse_configuration(config_part))

    def sort_key(self) -> Tuple[int, int]:
        return (
            _ARCHITECTURE_ORDER.index(self.architecture),
            _CONFIGURATION_ORDER.index(self.configuration),
        )

    def relative_dir(self) -> str:
        """Package sub-path holding this descriptor's binary."""
        return f"{self.architecture.value}/{self.configuration.value}"

    @property
    def platform_tag(self) -> str:
        return PLATFORM_TAGS[self.architecture]

    def __str__(self) -> str:
        return f"{self.architecture.value}-{self.configuration.value}"


REQUIRED_DESCRIPTORS: FrozenSet[ArchitectureDescriptor] = frozenset(
    ArchitectureDescriptor(arch, Configuration.RELEASE) for arch in Architecture
)


def all_descriptors() -> List[ArchitectureDescriptor]:
    """Every architecture x configuration pair, in sort order."""
    return sort_descriptors(
        ArchitectureDescriptor(arch, config)
        for arch in Architecture
        for config in Configuration
    )


def sort_descriptors(descriptors) -> List[ArchitectureDescriptor]:
    return sorted(descriptors, key=ArchitectureDescriptor.sort_key)


def format_descriptors(descriptors) -> str:
    return ", ".join(str(d) for d in sort_descriptors(descriptors))
