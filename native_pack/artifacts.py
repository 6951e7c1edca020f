"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module contains the data model shared by the package build and the
consumer step: artifacts, build results, the package manifest and the
consumer context.
"""

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

from native_pack.descriptor import (
    Architecture,
    ArchitectureDescriptor,
    parse_architecture,
    parse_configuration,
    sort_descriptors,
)
from native_pack.exceptions import ManifestError

MANIFEST_FILE_NAME = "manifest.json"
MANIFEST_FORMAT = 1

_HASH_CHUNK_SIZE = 1024 * 1024


def compute_sha256(path: Union[str, Path]) -> str:
    """Return the lowercase hex SHA-256 of a file, read in chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


@dataclass(frozen=True)
class Artifact:
    """
    A compiled native binary for one descriptor.

    binary_path is absolute while the artifact sits in the build output and
    relative to the package root once it is referenced by a manifest.
    """

    descriptor: ArchitectureDescriptor
    binary_path: Path
    content_hash: str
    size_bytes: int
    source_version: Optional[str] = None

    @property
    def file_name(self) -> str:
        return Path(self.binary_path).name


@dataclass(frozen=True)
class BuildResult:
    """Outcome of building one descriptor. Never persisted."""

    descriptor: ArchitectureDescriptor
    artifact: Optional[Artifact] = None
    diagnostic: Optional[str] = None

    def __post_init__(self):
        if (self.artifact is None) == (self.diagnostic is None):
            raise ValueError("BuildResult needs exactly one of artifact or diagnostic")

    @classmethod
    def success(cls, artifact: Artifact) -> "BuildResult":
        return cls(artifact.descriptor, artifact=artifact)

    @classmethod
    def failure(cls, descriptor: ArchitectureDescriptor, diagnostic: str) -> "BuildResult":
        return cls(descriptor, diagnostic=diagnostic or "unknown error")

    @property
    def succeeded(self) -> bool:
        return self.artifact is not None


@dataclass(frozen=True)
class ConsumerContext:
    """Target and output location supplied by the consumer's build system."""

    target: ArchitectureDescriptor
    output_directory: Path


@dataclass(frozen=True)
class PlacementResult:
    artifact: Artifact
    destination: Path
    copied: bool
    fell_back: bool = False


@dataclass(frozen=True)
class PackageManifest:
    """
    Versioned mapping from descriptor to packaged artifact.

    Artifact paths are relative to ``root``, the package directory the
    manifest was written to or loaded from. Instances are immutable; the
    entries mapping is exposed read-only.
    """

    version: str
    entries: Mapping[ArchitectureDescriptor, Artifact]
    name: str = "native"
    root: Optional[Path] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))

    def get(self, descriptor: ArchitectureDescriptor) -> Optional[Artifact]:
        return self.entries.get(descriptor)

    def descriptors(self) -> List[ArchitectureDescriptor]:
        return sort_descriptors(self.entries)

    def architectures(self) -> List[Architecture]:
        seen = []
        for descriptor in self.descriptors():
            if descriptor.architecture not in seen:
                seen.append(descriptor.architecture)
        return seen

    def artifact_path(self, artifact: Artifact) -> Path:
        """Absolute location of an artifact's binary inside the package."""
        path = Path(artifact.binary_path)
        if path.is_absolute() or self.root is None:
            return path
        return self.root / path

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": MANIFEST_FORMAT,
            "name": self.name,
            "version": self.version,
            "artifacts": [
                {
                    "architecture": d.architecture.value,
                    "configuration": d.configuration.value,
                    "path": Path(self.entries[d].binary_path).as_posix(),
                    "sha256": self.entries[d].content_hash,
                    "size": self.entries[d].size_bytes,
                }
                for d in self.descriptors()
            ],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n"

    @classmethod
    def from_dict(cls, data: Any, root: Optional[Path] = None) -> "PackageManifest":
        """
        Build a manifest from its JSON form.

        Raises:
            ManifestError: If required fields are missing or malformed.
        """
        if not isinstance(data, dict):
            raise ManifestError("Manifest must be a JSON object")
        if data.get("format") != MANIFEST_FORMAT:
            raise ManifestError(f"Unsupported manifest format: {data.get('format')!r}")
        version = data.get("version")
        if not isinstance(version, str) or not version:
            raise ManifestError("Manifest is missing its version")
        raw_artifacts = data.get("artifacts")
        if not isinstance(raw_artifacts, list):
            raise ManifestError("Manifest 'artifacts' must be a list")

        entries: Dict[ArchitectureDescriptor, Artifact] = {}
        for item in raw_artifacts:
            try:
                architecture, configuration = item["architecture"], item["configuration"]
                if not isinstance(architecture, str) or not isinstance(configuration, str):
                    raise TypeError("architecture and configuration must be strings")
                descriptor = ArchitectureDescriptor(
                    parse_architecture(architecture), parse_configuration(configuration)
                )
                rel_path = PurePosixPath(item["path"])
                artifact = Artifact(
                    descriptor=descriptor,
                    binary_path=Path(*rel_path.parts),
                    content_hash=str(item["sha256"]).lower(),
                    size_bytes=int(item["size"]),
                    source_version=version,
                )
            except (KeyError, TypeError, ValueError) as e:
                raise ManifestError(f"Malformed manifest entry {item!r}: {e}") from e
            if rel_path.is_absolute() or ".." in rel_path.parts:
                raise ManifestError(f"Artifact path escapes the package: {item['path']}")
            if descriptor in entries:
                raise ManifestError(f"Duplicate manifest entry for {descriptor}")
            entries[descriptor] = artifact

        return cls(version=version, entries=entries, name=str(data.get("name", "native")), root=root)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "PackageManifest":
        """
        Load a manifest from a package directory or a manifest file.

        Raises:
            ManifestError: If the file is missing or is not valid JSON.
        """
        path = Path(path)
        manifest_file = path / MANIFEST_FILE_NAME if path.is_dir() else path
        try:
            data = json.loads(manifest_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise ManifestError(f"Manifest not found: {manifest_file}") from None
        except json.JSONDecodeError as e:
            raise ManifestError(f"Invalid JSON in {manifest_file}: {e}") from e
        return cls.from_dict(data, root=manifest_file.parent)
