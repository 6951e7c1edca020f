"""
Package manifest assembly.

Turns a fully successful build matrix into the package's staging layout:

    <staging>/manifest.json
    <staging>/<arch>/<configuration>/<binary>
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Iterable, Union

from native_pack.artifacts import MANIFEST_FILE_NAME, Artifact, PackageManifest, compute_sha256
from native_pack.descriptor import REQUIRED_DESCRIPTORS, ArchitectureDescriptor, sort_descriptors
from native_pack.exceptions import ArtifactIntegrityError, IncompleteMatrix, VersionMismatch
from native_pack.logging import logger

from .compiler import validate_version
from .matrix import AllSucceeded


class ManifestAssembler:
    """
    Builds the PackageManifest for one release.

    The declared version is fixed at construction and checked against the
    source version every artifact was compiled from; a package whose
    version disagrees with the code it ships is never written.
    """

    def __init__(
        self,
        version: str,
        name: str = "native",
        required: Iterable[ArchitectureDescriptor] = REQUIRED_DESCRIPTORS,
    ) -> None:
        self.version = validate_version(version)
        self.name = name
        self.required = frozenset(required)

    def validate(self, outcome: AllSucceeded) -> None:
        """
        Check the invariants a package must satisfy.

        Raises:
            TypeError: If the outcome is not AllSucceeded.
            IncompleteMatrix: If a required descriptor is missing.
            VersionMismatch: If any artifact's source version differs.
        """
        if not isinstance(outcome, AllSucceeded):
            raise TypeError(
                f"Manifest assembly requires AllSucceeded, got {type(outcome).__name__}"
            )

        missing = self.required - set(outcome.artifacts)
        if missing:
            raise IncompleteMatrix(missing)

        mismatched: Dict[str, list] = {}
        for descriptor, artifact in outcome.artifacts.items():
            if artifact.source_version != self.version:
                mismatched.setdefault(artifact.source_version, []).append(descriptor)
        if mismatched:
            actual, descriptors = sorted(mismatched.items(), key=lambda kv: str(kv[0]))[0]
            raise VersionMismatch(self.version, actual, descriptors)

    def assemble(self, outcome: AllSucceeded, staging_dir: Union[str, Path]) -> PackageManifest:
        """
        Validate the outcome and write the package to staging_dir.

        Everything is written to a temporary sibling directory first and
        swapped into place only once every binary is copied and verified
        and the manifest is written. On failure the temporary tree is
        removed and any existing package at staging_dir is left as it was.
        """
        self.validate(outcome)

        staging_dir = Path(staging_dir)
        staging_dir.parent.mkdir(parents=True, exist_ok=True)
        work_dir = Path(tempfile.mkdtemp(prefix=f".{staging_dir.name}.", dir=staging_dir.parent))

        try:
            entries: Dict[ArchitectureDescriptor, Artifact] = {}
            for descriptor in sort_descriptors(outcome.artifacts):
                entries[descriptor] = self._stage_artifact(outcome.artifacts[descriptor], work_dir)

            manifest = PackageManifest(
                version=self.version, entries=entries, name=self.name, root=staging_dir
            )
            (work_dir / MANIFEST_FILE_NAME).write_text(manifest.to_json(), encoding="utf-8")
            self._swap_into_place(work_dir, staging_dir)
        except BaseException:
            shutil.rmtree(work_dir, ignore_errors=True)
            raise

        logger.info(
            "Packaged %s %s with %d artifact(s) at %s",
            self.name, self.version, len(entries), staging_dir,
        )
        return manifest

    @staticmethod
    def _swap_into_place(work_dir: Path, staging_dir: Path) -> None:
        previous = None
        if staging_dir.exists():
            previous = work_dir.with_name(work_dir.name + ".previous")
            os.replace(staging_dir, previous)
        try:
            os.replace(work_dir, staging_dir)
        except OSError:
            if previous is not None:
                os.replace(previous, staging_dir)
            raise
        if previous is not None:
            shutil.rmtree(previous, ignore_errors=True)

    def _stage_artifact(self, artifact: Artifact, work_dir: Path) -> Artifact:
        relative = Path(artifact.descriptor.relative_dir()) / artifact.file_name
        target = work_dir / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(artifact.binary_path, target)

        actual = compute_sha256(target)
        if actual != artifact.content_hash:
            raise ArtifactIntegrityError(
                artifact.descriptor, artifact.content_hash, actual, str(artifact.binary_path)
            )

        return Artifact(
            descriptor=artifact.descriptor,
            binary_path=relative,
            content_hash=artifact.content_hash,
            size_bytes=artifact.size_bytes,
            source_version=artifact.source_version,
        )
