"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module contains the error taxonomy for packaging and consuming
multi-architecture native artifacts.
"""

from typing import Iterable, List, Optional, Sequence

from native_pack.descriptor import (
    ArchitectureDescriptor,
    format_descriptors,
    sort_descriptors,
)


class NativePackError(Exception):
    """
    Base class for all native_pack errors.
    Every fatal condition raised by the build or the consumer step derives
    from this class, so callers can catch them as a group.
    """
    def __init__(self, message="A native_pack error occurred") -> None:
        self.message = message
        super().__init__(self.message)


class InvalidVersion(NativePackError):
    """
    The recorded upstream version is missing or is not a semantic version.
    """
    def __init__(self, value: Optional[str], source: str = "") -> None:
        self.value = value
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(f"Invalid version string {value!r}{where}; expected MAJOR.MINOR.PATCH")


class ManifestError(NativePackError):
    """
    The package manifest could not be read or is malformed.
    """
    def __init__(self, message="Malformed package manifest") -> None:
        super().__init__(message)


class BuildFailure(NativePackError):
    """
    A single descriptor failed to compile.
    Raised by toolchains and collected by the build matrix; never retried.
    """
    def __init__(self, descriptor: ArchitectureDescriptor, diagnostic: str) -> None:
        self.descriptor = descriptor
        self.diagnostic = diagnostic
        super().__init__(f"Build failed for {descriptor}: {diagnostic}")


class MatrixFailure(NativePackError):
    """
    One or more descriptors in the build matrix failed; packaging was blocked.
    """
    def __init__(self, failures: Sequence[BuildFailure]) -> None:
        self.failures: List[BuildFailure] = sorted(
            failures, key=lambda f: f.descriptor.sort_key()
        )
        lines = [f"  {f.descriptor}: {f.diagnostic}" for f in self.failures]
        super().__init__(
            f"Build matrix failed for {len(self.failures)} descriptor(s): "
            f"{format_descriptors(self.descriptors)}\n" + "\n".join(lines)
        )

    @property
    def descriptors(self) -> List[ArchitectureDescriptor]:
        return [f.descriptor for f in self.failures]


class IncompleteMatrix(NativePackError):
    """
    Manifest assembly was attempted without every required descriptor.
    """
    def __init__(self, missing: Iterable[ArchitectureDescriptor]) -> None:
        self.missing = sort_descriptors(missing)
        super().__init__(
            f"Build matrix is incomplete; missing required descriptor(s): "
            f"{format_descriptors(self.missing)}"
        )


class VersionMismatch(NativePackError):
    """
    The version declared for the package disagrees with the version of the
    source the artifacts were compiled from.
    """
    def __init__(
        self,
        expected: str,
        actual: Optional[str],
        descriptors: Iterable[ArchitectureDescriptor] = (),
    ) -> None:
        self.expected = expected
        self.actual = actual
        self.descriptors = sort_descriptors(descriptors)
        affected = f" (artifacts: {format_descriptors(self.descriptors)})" if self.descriptors else ""
        super().__init__(
            f"Version mismatch: package declares {expected!r} but source provenance "
            f"is {actual!r}{affected}"
        )


class UnsupportedArchitecture(NativePackError):
    """
    No artifact in the manifest can serve the consumer's target.
    There is no cross-architecture fallback.
    """
    def __init__(
        self,
        target: Optional[ArchitectureDescriptor],
        available: Iterable[ArchitectureDescriptor] = (),
        message: Optional[str] = None,
    ) -> None:
        self.target = target
        self.available = sort_descriptors(available)
        if message is None:
            message = (
                f"No native artifact for target {target}; "
                f"package provides: {format_descriptors(self.available) or 'nothing'}"
            )
        super().__init__(message)


class ArtifactIntegrityError(NativePackError):
    """
    A binary's content hash does not match the hash recorded for it.
    """
    def __init__(
        self,
        descriptor: ArchitectureDescriptor,
        expected: str,
        actual: Optional[str],
        path: str,
    ) -> None:
        self.descriptor = descriptor
        self.expected = expected
        self.actual = actual
        self.path = path
        found = actual if actual is not None else "missing file"
        super().__init__(
            f"Integrity check failed for {descriptor} at {path}: "
            f"expected sha256 {expected}, found {found}"
        )


class PlacementIOFailure(NativePackError):
    """
    Copying the resolved binary into the consumer's output directory failed
    (permissions, disk full, ...). Not retried.
    """
    def __init__(self, descriptor: ArchitectureDescriptor, path: str, cause: OSError) -> None:
        self.descriptor = descriptor
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to place {descriptor} binary at {path}: {cause}")


class ResolutionFallbackWarning(UserWarning):
    """
    A debug target was served with the release artifact.
    """
