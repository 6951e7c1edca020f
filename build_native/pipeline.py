"""
End-to-end release packaging: build matrix, then manifest assembly.
"""

import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union

from native_pack.artifacts import PackageManifest
from native_pack.config import Settings, get_settings
from native_pack.descriptor import REQUIRED_DESCRIPTORS, all_descriptors
from native_pack.exceptions import MatrixFailure, VersionMismatch
from native_pack.logging import logger

from .compiler import ArtifactBuilder, Toolchain, read_source_version, validate_version
from .manifest import ManifestAssembler
from .matrix import BuildMatrix, PartialFailure


def package_release(
    source_dir: Union[str, Path],
    staging_dir: Union[str, Path],
    toolchain: Toolchain,
    version: Optional[str] = None,
    build_dir: Optional[Union[str, Path]] = None,
    include_debug: Optional[bool] = None,
    settings: Optional[Settings] = None,
) -> PackageManifest:
    """
    Build every required descriptor and package the results.

    The source version is read from the source tree once and passed
    explicitly to the builder and the assembler. When ``version`` is given
    it is the version the package declares, and it must agree with the
    recorded source version.

    Args:
        source_dir: Native source tree, including its VERSION record.
        staging_dir: Where the package is written.
        toolchain: Compiles one descriptor.
        version: Declared package version; defaults to the source version.
        build_dir: Per-descriptor build output, kept after the run. When
                   omitted a hidden scratch directory beside staging_dir
                   is used and removed afterwards.
        include_debug: Also build debug artifacts.
        settings: Overrides the global settings.

    Raises:
        MatrixFailure: If any build failed. The assembler is not run and no
                       package is produced.
        VersionMismatch: If the declared version differs from the recorded
                         source version. Nothing is built.
        InvalidVersion, IncompleteMatrix: From version checks and assembly.
    """
    settings = settings or get_settings()
    if include_debug is None:
        include_debug = settings.include_debug

    source_dir = Path(source_dir)
    staging_dir = Path(staging_dir)

    source_version = read_source_version(source_dir, settings.version_file)
    declared_version = validate_version(version) if version is not None else source_version
    if declared_version != source_version:
        logger.error("Declared version %s does not match source version %s", declared_version, source_version)
        raise VersionMismatch(declared_version, source_version)
    logger.info("Packaging %s %s from %s", settings.library_name, declared_version, source_dir)

    scratch_dir = None
    if build_dir is None:
        staging_dir.parent.mkdir(parents=True, exist_ok=True)
        scratch_dir = tempfile.mkdtemp(prefix=f".{staging_dir.name}.build.", dir=staging_dir.parent)
        build_dir = scratch_dir

    try:
        descriptors = all_descriptors() if include_debug else REQUIRED_DESCRIPTORS
        builder = ArtifactBuilder(
            source_dir, build_dir, toolchain, settings.binary_name, source_version
        )
        outcome = BuildMatrix(builder, descriptors, settings.max_workers).run()

        if isinstance(outcome, PartialFailure):
            raise MatrixFailure(outcome.failures)

        assembler = ManifestAssembler(declared_version, name=settings.library_name)
        return assembler.assemble(outcome, staging_dir)
    finally:
        if scratch_dir is not None:
            shutil.rmtree(scratch_dir, ignore_errors=True)
