"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module initializes the native_pack package.
"""

__version__ = "1.0.0"

from .descriptor import (
    Architecture,
    Configuration,
    ArchitectureDescriptor,
    REQUIRED_DESCRIPTORS,
    all_descriptors,
)

from .exceptions import (
    NativePackError,
    InvalidVersion,
    ManifestError,
    BuildFailure,
    MatrixFailure,
    IncompleteMatrix,
    VersionMismatch,
    UnsupportedArchitecture,
    ArtifactIntegrityError,
    PlacementIOFailure,
    ResolutionFallbackWarning,
)

from .artifacts import (
    Artifact,
    BuildResult,
    ConsumerContext,
    PackageManifest,
    PlacementResult,
    compute_sha256,
)

from .config import Settings, get_settings

from .logging import logger, setup_logging

from .platform_utils import detect_target

from .resolver import resolve, place, resolve_and_place
