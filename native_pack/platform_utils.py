"""
Platform detection utilities for native_pack.

This module works out which descriptor the current build targets. Both the
build CLI (host defaults) and the consumer placement step use it.
"""

import os
import platform
from typing import Mapping, Optional, Tuple

from native_pack.descriptor import (
    ArchitectureDescriptor,
    Configuration,
    parse_architecture,
    parse_configuration,
)
from native_pack.exceptions import UnsupportedArchitecture
from native_pack.logging import logger


def _clean(value: Optional[str]) -> Optional[str]:
    # Build systems sometimes pass quoted values through ("x64")
    if value is None:
        return None
    value = value.strip().strip("\"'")
    return value or None


def detect_target(environ: Optional[Mapping[str, str]] = None) -> ArchitectureDescriptor:
    """
    Detect the consumer's target descriptor.

    The ARCHITECTURE environment variable wins over the host machine type;
    CONFIGURATION defaults to release.

    Raises:
        UnsupportedArchitecture: If the architecture is not one we package.
        ValueError: If CONFIGURATION is set to an unknown value.
    """
    env = os.environ if environ is None else environ

    raw_arch = _clean(env.get("ARCHITECTURE")) or platform.machine()
    raw_config = _clean(env.get("CONFIGURATION"))

    configuration = parse_configuration(raw_config) if raw_config else Configuration.RELEASE

    try:
        architecture = parse_architecture(raw_arch)
    except ValueError:
        raise UnsupportedArchitecture(
            None,
            message=f"Unsupported architecture '{raw_arch}'; expected one of x86, x64, arm, arm64.",
        ) from None

    target = ArchitectureDescriptor(architecture, configuration)
    logger.debug("Detected target %s (raw architecture %r)", target, raw_arch)
    return target


def get_platform_info(environ: Optional[Mapping[str, str]] = None) -> Tuple[str, str]:
    """
    Get architecture and platform tag for the detected target.

    Returns:
        Tuple of (architecture, platform_tag)
    """
    target = detect_target(environ)
    return target.architecture.value, target.platform_tag
