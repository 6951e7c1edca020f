"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module selects the architecture-correct artifact from a package
manifest and places it in a consumer's output directory.
"""

import os
import shutil
import tempfile
import warnings
from pathlib import Path
from typing import Tuple, Union

from native_pack.artifacts import (
    Artifact,
    ConsumerContext,
    PackageManifest,
    PlacementResult,
    compute_sha256,
)
from native_pack.descriptor import ArchitectureDescriptor, Configuration
from native_pack.exceptions import (
    ArtifactIntegrityError,
    PlacementIOFailure,
    ResolutionFallbackWarning,
    UnsupportedArchitecture,
)
from native_pack.logging import logger


def resolve(manifest: PackageManifest, target: ArchitectureDescriptor) -> Tuple[Artifact, bool]:
    """
    Select the artifact serving a consumer's target descriptor.

    An exact {architecture, configuration} match wins. A debug target with
    no debug artifact is served the release artifact of the same
    architecture, with a warning. Nothing ever falls back across
    architectures: native binaries are not interchangeable between
    instruction sets.

    Args:
        manifest: The package manifest.
        target: The consumer's target descriptor.

    Returns:
        Tuple of (artifact, fell_back)

    Raises:
        UnsupportedArchitecture: If no usable artifact exists for the target.
    """
    artifact = manifest.get(target)
    if artifact is not None:
        logger.debug("Resolved %s to %s", target, artifact.binary_path)
        return artifact, False

    if target.configuration is Configuration.DEBUG:
        release = manifest.get(ArchitectureDescriptor(target.architecture, Configuration.RELEASE))
        if release is not None:
            message = (
                f"No debug artifact for {target.architecture.value}; "
                f"using the release artifact {release.binary_path}"
            )
            logger.warning(message)
            warnings.warn(message, ResolutionFallbackWarning, stacklevel=2)
            return release, True
    elif target.configuration is Configuration.RELEASE:
        # Debug builds are optional and never stand in for release
        pass
    else:
        raise AssertionError(f"Unhandled configuration: {target.configuration!r}")

    logger.error("No artifact for target %s in %s %s", target, manifest.name, manifest.version)
    raise UnsupportedArchitecture(target, manifest.descriptors())


def _verify_packaged(manifest: PackageManifest, artifact: Artifact) -> Path:
    source = manifest.artifact_path(artifact)
    try:
        actual = compute_sha256(source)
    except FileNotFoundError:
        raise ArtifactIntegrityError(
            artifact.descriptor, artifact.content_hash, None, str(source)
        ) from None
    except OSError as e:
        raise PlacementIOFailure(artifact.descriptor, str(source), e) from e
    if actual != artifact.content_hash:
        raise ArtifactIntegrityError(
            artifact.descriptor, artifact.content_hash, actual, str(source)
        )
    return source


def place(
    manifest: PackageManifest,
    artifact: Artifact,
    output_directory: Union[str, Path],
    fell_back: bool = False,
) -> PlacementResult:
    """
    Copy a resolved artifact's binary into the output directory, keeping its
    declared file name.

    Re-running with an unchanged artifact and output directory is a no-op:
    an existing destination whose SHA-256 matches is left untouched. The
    copy goes to a temporary file first and is renamed into place, so an
    interrupted placement never leaves a partial binary behind.

    Raises:
        ArtifactIntegrityError: If the packaged binary does not match the manifest.
        PlacementIOFailure: On any file system error while placing.
    """
    output_directory = Path(output_directory)
    destination = output_directory / artifact.file_name

    try:
        if destination.is_file() and compute_sha256(destination) == artifact.content_hash:
            logger.debug("%s already up to date, skipping copy", destination)
            return PlacementResult(artifact, destination, copied=False, fell_back=fell_back)
    except OSError as e:
        raise PlacementIOFailure(artifact.descriptor, str(destination), e) from e

    source = _verify_packaged(manifest, artifact)

    tmp_path = None
    try:
        output_directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{artifact.file_name}.", suffix=".tmp", dir=output_directory
        )
        with os.fdopen(fd, "wb") as dst, open(source, "rb") as src:
            shutil.copyfileobj(src, dst)
        shutil.copymode(source, tmp_path)
        os.replace(tmp_path, destination)
        tmp_path = None
    except OSError as e:
        logger.error("Placement of %s at %s failed: %s", artifact.descriptor, destination, e)
        raise PlacementIOFailure(artifact.descriptor, str(destination), e) from e
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)

    logger.info("Placed %s binary at %s", artifact.descriptor, destination)
    return PlacementResult(artifact, destination, copied=True, fell_back=fell_back)


def resolve_and_place(manifest: PackageManifest, context: ConsumerContext) -> PlacementResult:
    """
    Resolve the consumer's target against the manifest and place the binary.

    This is the single consumer-facing operation; any failure aborts the
    consumer's build.
    """
    trace_id = logger.generate_trace_id(f"PLACE-{context.target}")
    logger.set_trace_id(trace_id)
    try:
        artifact, fell_back = resolve(manifest, context.target)
        return place(manifest, artifact, context.output_directory, fell_back=fell_back)
    finally:
        logger.clear_trace_id()
