"""
Tests for the build matrix orchestrator.
"""

import threading

import pytest

from build_native.compiler import ArtifactBuilder
from build_native.matrix import AllSucceeded, BuildMatrix, PartialFailure
from native_pack.artifacts import compute_sha256
from native_pack.descriptor import (
    REQUIRED_DESCRIPTORS,
    Architecture,
    ArchitectureDescriptor,
    all_descriptors,
)
from native_pack.logging import logger

from conftest import BINARY_NAME, SOURCE_VERSION, FakeToolchain

ARM = ArchitectureDescriptor(Architecture.ARM)
X86 = ArchitectureDescriptor(Architecture.X86)


def _builder(source_dir, tmp_path, toolchain):
    return ArtifactBuilder(source_dir, tmp_path / "build", toolchain, BINARY_NAME, SOURCE_VERSION)


@pytest.mark.parametrize("descriptors", [REQUIRED_DESCRIPTORS, all_descriptors(), [ARM]])
def test_all_succeeded_has_one_verifiable_artifact_per_descriptor(source_dir, tmp_path, descriptors):
    outcome = BuildMatrix(_builder(source_dir, tmp_path, FakeToolchain()), descriptors).run()

    assert isinstance(outcome, AllSucceeded)
    assert set(outcome.artifacts) == set(descriptors)
    assert len(outcome.artifacts) == len(set(descriptors))
    for descriptor, artifact in outcome.artifacts.items():
        assert artifact.descriptor == descriptor
        assert compute_sha256(artifact.binary_path) == artifact.content_hash


def test_content_hashes_are_distinct(source_dir, tmp_path):
    outcome = BuildMatrix(_builder(source_dir, tmp_path, FakeToolchain())).run()
    hashes = {a.content_hash for a in outcome.artifacts.values()}
    assert len(hashes) == len(REQUIRED_DESCRIPTORS)


def test_duplicates_collapse(source_dir, tmp_path):
    toolchain = FakeToolchain()
    BuildMatrix(_builder(source_dir, tmp_path, toolchain), [ARM, ARM, X86]).run()
    assert sorted(map(str, toolchain.calls)) == ["arm-release", "x86-release"]


def test_empty_descriptor_set_is_rejected(builder):
    with pytest.raises(ValueError):
        BuildMatrix(builder, [])


def test_partial_failure_reports_failed_descriptor(source_dir, tmp_path):
    toolchain = FakeToolchain(fail=[ARM])
    outcome = BuildMatrix(_builder(source_dir, tmp_path, toolchain)).run()

    assert isinstance(outcome, PartialFailure)
    assert outcome.descriptors == [ARM]
    assert "compiler error" in outcome.failures[0].diagnostic
    # Other builds still ran to completion
    assert len(toolchain.calls) == len(REQUIRED_DESCRIPTORS)


def test_failures_are_in_descriptor_order(source_dir, tmp_path):
    failing = all_descriptors()[::-1]
    outcome = BuildMatrix(
        _builder(source_dir, tmp_path, FakeToolchain(fail=failing)), all_descriptors()
    ).run()
    assert outcome.descriptors == all_descriptors()


def test_unexpected_builder_exception_is_collected(source_dir, tmp_path):
    outcome = BuildMatrix(_builder(source_dir, tmp_path, FakeToolchain(raise_on=[X86]))).run()

    assert isinstance(outcome, PartialFailure)
    assert outcome.descriptors == [X86]
    assert "RuntimeError" in outcome.failures[0].diagnostic


def test_builds_run_in_parallel(source_dir, tmp_path):
    barrier = threading.Barrier(len(REQUIRED_DESCRIPTORS), timeout=10)

    class BarrierToolchain(FakeToolchain):
        def compile(self, descriptor, source_dir, output_path):
            # Deadlocks (then times out) unless every build is in flight at once
            barrier.wait()
            super().compile(descriptor, source_dir, output_path)

    outcome = BuildMatrix(_builder(source_dir, tmp_path, BarrierToolchain())).run()
    assert isinstance(outcome, AllSucceeded)


def test_single_worker_still_builds_everything(source_dir, tmp_path):
    outcome = BuildMatrix(_builder(source_dir, tmp_path, FakeToolchain()), max_workers=1).run()
    assert isinstance(outcome, AllSucceeded)
    assert len(outcome.artifacts) == 4


def test_each_build_runs_under_its_own_trace_id(source_dir, tmp_path):
    seen = {}

    class TracingToolchain(FakeToolchain):
        def compile(self, descriptor, source_dir, output_path):
            seen[descriptor] = logger.get_trace_id()
            super().compile(descriptor, source_dir, output_path)

    BuildMatrix(_builder(source_dir, tmp_path, TracingToolchain())).run()

    assert len(set(seen.values())) == len(REQUIRED_DESCRIPTORS)
    for descriptor, trace_id in seen.items():
        assert trace_id.startswith(f"BUILD-{descriptor}-")
    assert logger.get_trace_id() is None
