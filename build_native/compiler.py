"""
Core compiler logic for native artifacts.

This module drives the per-architecture toolchain and turns its output into
an Artifact, plus the helpers that read and record the upstream version.
"""

import os
import re
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

from native_pack.artifacts import Artifact, BuildResult, compute_sha256
from native_pack.descriptor import ArchitectureDescriptor
from native_pack.exceptions import BuildFailure, InvalidVersion
from native_pack.logging import logger
from native_pack.platform_utils import get_platform_info  # noqa: F401

SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)

# Lines of toolchain output kept in a failure diagnostic
DIAGNOSTIC_TAIL_LINES = 20


def validate_version(version: Optional[str], source: str = "") -> str:
    """
    Return the stripped version if it is a semantic version.

    Raises:
        InvalidVersion: If it is not.
    """
    candidate = version.strip() if isinstance(version, str) else version
    if not candidate or not SEMVER_RE.match(candidate):
        raise InvalidVersion(version, source)
    return candidate


def read_source_version(source_dir: Union[str, Path], version_file: str = "VERSION") -> str:
    """
    Read the upstream version recorded alongside the native source.

    Raises:
        InvalidVersion: If the file is missing or does not hold a semantic version.
    """
    path = Path(source_dir) / version_file
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise InvalidVersion(None, str(path)) from None
    return validate_version(text, str(path))


def record_source_version(
    source_dir: Union[str, Path], version: str, version_file: str = "VERSION"
) -> Path:
    """
    Record the upstream version after replacing the native source.

    This must accompany every source upgrade; the manifest assembler refuses
    to package artifacts whose recorded version disagrees with the release.
    """
    version = validate_version(version)
    path = Path(source_dir) / version_file
    fd, tmp_path = tempfile.mkstemp(prefix=f".{version_file}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(version + "\n")
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    logger.info("Recorded source version %s in %s", version, path)
    return path


def _tail(text: str, lines: int = DIAGNOSTIC_TAIL_LINES) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


class Toolchain:
    """
    Compiles the native source for one descriptor.

    Subclasses implement compile() and raise BuildFailure on any error.
    Implementations must be reproducible: identical source and descriptor
    must produce byte-identical output.
    """

    def supports(self, descriptor: ArchitectureDescriptor) -> bool:
        return True

    def compile(
        self, descriptor: ArchitectureDescriptor, source_dir: Path, output_path: Path
    ) -> None:
        raise NotImplementedError


class ScriptToolchain(Toolchain):
    """
    Runs the platform build script shipped with the native source.

    The script receives the architecture, configuration and output path
    both as arguments and as ARCHITECTURE, CONFIGURATION and OUTPUT_PATH
    environment variables. SOURCE_DATE_EPOCH is pinned so that toolchains
    honouring it embed no timestamps.
    """

    def __init__(
        self,
        script: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        source_date_epoch: str = "0",
        timeout: Optional[float] = None,
    ) -> None:
        if script is None:
            script = "build.bat" if sys.platform.startswith("win") else "build.sh"
        self.script = script
        self.env = dict(env or {})
        self.source_date_epoch = source_date_epoch
        self.timeout = timeout

    def command(self, descriptor: ArchitectureDescriptor, script_path: Path, output_path: Path) -> Sequence[str]:
        args = [descriptor.architecture.value, descriptor.configuration.value, str(output_path)]
        if script_path.suffix.lower() in (".bat", ".cmd"):
            return ["cmd", "/c", str(script_path), *args]
        return ["bash", str(script_path), *args]

    def compile(
        self, descriptor: ArchitectureDescriptor, source_dir: Path, output_path: Path
    ) -> None:
        script_path = Path(source_dir) / self.script
        if not script_path.exists():
            raise BuildFailure(descriptor, f"Build script not found: {script_path}")

        env = dict(os.environ)
        env.update(self.env)
        env.update({
            "ARCHITECTURE": descriptor.architecture.value,
            "CONFIGURATION": descriptor.configuration.value,
            "OUTPUT_PATH": str(output_path),
            "SOURCE_DATE_EPOCH": self.source_date_epoch,
        })

        cmd = self.command(descriptor, script_path, output_path)
        logger.debug("Running: %s (cwd=%s)", " ".join(cmd), source_dir)

        try:
            result = subprocess.run(
                cmd,
                cwd=source_dir,
                env=env,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise BuildFailure(descriptor, f"Toolchain not available: {e}") from e
        except subprocess.TimeoutExpired:
            raise BuildFailure(descriptor, f"{self.script} timed out after {self.timeout}s") from None

        if result.returncode != 0:
            output = _tail((result.stdout or "") + "\n" + (result.stderr or ""))
            raise BuildFailure(
                descriptor,
                f"{self.script} failed with exit code {result.returncode}\n{output}".rstrip(),
            )


class ArtifactBuilder:
    """
    Builds one descriptor at a time into a descriptor-scoped output path.

    The toolchain writes to a temporary file next to the final location;
    only a successful, non-empty compile is promoted with os.replace, so a
    failed build never leaves a binary a later step could mistake for a
    good one.
    """

    def __init__(
        self,
        source_dir: Union[str, Path],
        output_root: Union[str, Path],
        toolchain: Toolchain,
        binary_name: str,
        source_version: str,
    ) -> None:
        self.source_dir = Path(source_dir)
        self.output_root = Path(output_root)
        self.toolchain = toolchain
        self.binary_name = binary_name
        self.source_version = source_version

    def output_path(self, descriptor: ArchitectureDescriptor) -> Path:
        return self.output_root / descriptor.relative_dir() / self.binary_name

    def build(self, descriptor: ArchitectureDescriptor) -> BuildResult:
        if not self.toolchain.supports(descriptor):
            return BuildResult.failure(
                descriptor, f"Descriptor {descriptor} is not supported by this toolchain"
            )

        final_path = self.output_path(descriptor)
        tmp_path = None
        try:
            final_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.binary_name}.", suffix=".partial", dir=final_path.parent
            )
            os.close(fd)
            tmp_path = Path(tmp_name)

            self.toolchain.compile(descriptor, self.source_dir, tmp_path)

            if tmp_path.stat().st_size == 0:
                return BuildResult.failure(descriptor, "Toolchain produced an empty binary")

            os.replace(tmp_path, final_path)
            tmp_path = None
        except BuildFailure as e:
            logger.error("Build of %s failed: %s", descriptor, e.diagnostic)
            return BuildResult.failure(descriptor, e.diagnostic)
        except OSError as e:
            logger.error("Build of %s failed: %s", descriptor, e)
            return BuildResult.failure(descriptor, f"{type(e).__name__}: {e}")
        finally:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()

        artifact = Artifact(
            descriptor=descriptor,
            binary_path=final_path,
            content_hash=compute_sha256(final_path),
            size_bytes=final_path.stat().st_size,
            source_version=self.source_version,
        )
        logger.info("Built %s -> %s (sha256 %s)", descriptor, final_path, artifact.content_hash)
        return BuildResult.success(artifact)
