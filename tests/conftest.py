"""
This file contains fixtures for the tests in the native_pack and
build_native packages.
Functions:
- FakeToolchain: In-process toolchain writing deterministic per-descriptor bytes.
- source_dir: Fixture creating a native source tree recorded at version 3.45.0.
- toolchain: Fixture returning a fresh FakeToolchain.
- builder: Fixture returning an ArtifactBuilder over source_dir.
- package: Fixture building and packaging the required matrix.
"""

import threading
from pathlib import Path

import pytest

from build_native.compiler import ArtifactBuilder, Toolchain, record_source_version
from build_native.manifest import ManifestAssembler
from build_native.matrix import BuildMatrix
from native_pack.config import Settings
from native_pack.exceptions import BuildFailure

SOURCE_VERSION = "3.45.0"
BINARY_NAME = "sqlite3.dll"


class FakeToolchain(Toolchain):
    """Writes '<descriptor>:<source>' as the binary; reproducible by construction."""

    def __init__(self, fail=(), unsupported=(), empty=(), raise_on=()):
        self.fail = set(fail)
        self.unsupported = set(unsupported)
        self.empty = set(empty)
        self.raise_on = set(raise_on)
        self.calls = []
        self._lock = threading.Lock()

    def supports(self, descriptor):
        return descriptor not in self.unsupported

    def compile(self, descriptor, source_dir, output_path):
        with self._lock:
            self.calls.append(descriptor)
        if descriptor in self.raise_on:
            raise RuntimeError(f"toolchain crashed on {descriptor}")
        if descriptor in self.fail:
            # Half-written output must never be promoted
            Path(output_path).write_bytes(b"partial")
            raise BuildFailure(descriptor, f"compiler error for {descriptor}")
        if descriptor in self.empty:
            return
        source = (Path(source_dir) / "sqlite3.c").read_bytes()
        Path(output_path).write_bytes(f"{descriptor}:".encode() + source)


@pytest.fixture
def source_dir(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "sqlite3.c").write_text("int sqlite3_libversion_number(void) { return 3045000; }\n")
    record_source_version(src, SOURCE_VERSION)
    return src


@pytest.fixture
def toolchain():
    return FakeToolchain()


@pytest.fixture
def builder(source_dir, tmp_path, toolchain):
    return ArtifactBuilder(source_dir, tmp_path / "build", toolchain, BINARY_NAME, SOURCE_VERSION)


@pytest.fixture
def settings():
    return Settings(library_name="sqlite3", binary_name=BINARY_NAME)


@pytest.fixture
def package(builder, tmp_path):
    """Package the required release matrix; returns the manifest."""
    outcome = BuildMatrix(builder).run()
    return ManifestAssembler(SOURCE_VERSION, name="sqlite3").assemble(outcome, tmp_path / "package")
