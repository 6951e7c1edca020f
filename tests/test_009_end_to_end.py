"""
End-to-end release scenarios: source tree -> package -> consumer output.
"""

import pytest

from build_native import manifest as manifest_module
from build_native.compiler import record_source_version
from build_native.pipeline import package_release
from native_pack.artifacts import ConsumerContext, PackageManifest, compute_sha256
from native_pack.config import Settings
from native_pack.descriptor import REQUIRED_DESCRIPTORS, Architecture, ArchitectureDescriptor
from native_pack.exceptions import MatrixFailure, VersionMismatch
from native_pack.resolver import resolve_and_place

from conftest import SOURCE_VERSION, FakeToolchain

X64 = ArchitectureDescriptor(Architecture.X64)
ARM = ArchitectureDescriptor(Architecture.ARM)


def test_release_and_consume(source_dir, tmp_path, settings):
    staging = tmp_path / "package"
    manifest = package_release(source_dir, staging, FakeToolchain(), settings=settings)

    assert manifest.version == SOURCE_VERSION
    assert set(manifest.entries) == REQUIRED_DESCRIPTORS
    hashes = [a.content_hash for a in manifest.entries.values()]
    assert all(hashes) and len(set(hashes)) == 4

    # The package travels to the consumer as a directory tree
    shipped = PackageManifest.load(staging)
    out = tmp_path / "app" / "bin"
    result = resolve_and_place(shipped, ConsumerContext(X64, out))

    assert result.artifact.descriptor == X64
    assert result.destination == out / "sqlite3.dll"
    assert compute_sha256(result.destination) == shipped.get(X64).content_hash


def test_arm_failure_blocks_packaging(source_dir, tmp_path, settings, monkeypatch):
    assembled = []
    real_assemble = manifest_module.ManifestAssembler.assemble

    def spy(self, outcome, staging_dir):
        assembled.append(outcome)
        return real_assemble(self, outcome, staging_dir)

    monkeypatch.setattr(manifest_module.ManifestAssembler, "assemble", spy)

    staging = tmp_path / "package"
    with pytest.raises(MatrixFailure) as excinfo:
        package_release(source_dir, staging, FakeToolchain(fail=[ARM]), settings=settings)

    assert excinfo.value.descriptors == [ARM]
    assert "arm-release" in str(excinfo.value)
    assert assembled == []
    assert not staging.exists()


def test_declared_version_must_match_recorded_source(source_dir, tmp_path, settings):
    toolchain = FakeToolchain()
    with pytest.raises(VersionMismatch) as excinfo:
        package_release(source_dir, tmp_path / "package", toolchain, version="3.46.0", settings=settings)
    assert excinfo.value.expected == "3.46.0"
    assert excinfo.value.actual == SOURCE_VERSION
    assert toolchain.calls == []
    assert sorted(p.name for p in tmp_path.iterdir()) == [source_dir.name]


def test_scratch_build_dir_removed_after_release(source_dir, tmp_path, settings):
    package_release(source_dir, tmp_path / "package", FakeToolchain(), settings=settings)
    assert sorted(p.name for p in tmp_path.iterdir()) == sorted([source_dir.name, "package"])


def test_scratch_build_dir_removed_after_failure(source_dir, tmp_path, settings):
    with pytest.raises(MatrixFailure):
        package_release(source_dir, tmp_path / "package", FakeToolchain(fail=[ARM]), settings=settings)
    assert sorted(p.name for p in tmp_path.iterdir()) == [source_dir.name]


def test_explicit_build_dir_is_kept(source_dir, tmp_path, settings):
    build_dir = tmp_path / "cache"
    package_release(source_dir, tmp_path / "package", FakeToolchain(), build_dir=build_dir, settings=settings)
    assert (build_dir / "x64" / "release" / "sqlite3.dll").is_file()


def test_source_upgrade_with_recorded_version(source_dir, tmp_path, settings):
    (source_dir / "sqlite3.c").write_text("/* 3.46.0 */\n")
    record_source_version(source_dir, "3.46.0")

    manifest = package_release(
        source_dir, tmp_path / "package", FakeToolchain(), version="3.46.0", settings=settings
    )
    assert manifest.version == "3.46.0"


def test_debug_matrix_from_settings(source_dir, tmp_path):
    settings = Settings(include_debug=True, max_workers=2)
    manifest = package_release(source_dir, tmp_path / "package", FakeToolchain(), settings=settings)
    assert len(manifest.entries) == 8


def test_release_package_serves_debug_consumer(source_dir, tmp_path, settings):
    manifest = package_release(source_dir, tmp_path / "package", FakeToolchain(), settings=settings)
    target = ArchitectureDescriptor.parse("arm64-debug")

    with pytest.warns(UserWarning):
        result = resolve_and_place(manifest, ConsumerContext(target, tmp_path / "out"))
    assert result.fell_back
    assert result.artifact.descriptor == ArchitectureDescriptor.parse("arm64-release")
