"""
Build matrix orchestration.

Runs the artifact builder once per descriptor on a thread pool and joins on
all of them before anything is packaged.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from native_pack.artifacts import Artifact, BuildResult
from native_pack.descriptor import (
    REQUIRED_DESCRIPTORS,
    ArchitectureDescriptor,
    format_descriptors,
    sort_descriptors,
)
from native_pack.exceptions import BuildFailure
from native_pack.logging import logger

from .compiler import ArtifactBuilder


@dataclass(frozen=True)
class AllSucceeded:
    """Every descriptor built; maps descriptor -> artifact."""

    artifacts: Dict[ArchitectureDescriptor, Artifact]


@dataclass(frozen=True)
class PartialFailure:
    """At least one descriptor failed; failures are in descriptor order."""

    failures: List[BuildFailure]

    @property
    def descriptors(self) -> List[ArchitectureDescriptor]:
        return [f.descriptor for f in self.failures]


class BuildMatrix:
    """
    Drives an ArtifactBuilder over a set of descriptors.

    Builds are independent and each writes to its own descriptor-scoped
    path, so they run in parallel without shared state. Failures are
    collected, never retried.
    """

    def __init__(
        self,
        builder: ArtifactBuilder,
        descriptors: Iterable[ArchitectureDescriptor] = REQUIRED_DESCRIPTORS,
        max_workers: Optional[int] = None,
    ) -> None:
        self.builder = builder
        self.descriptors = sort_descriptors(set(descriptors))
        if not self.descriptors:
            raise ValueError("Build matrix needs at least one descriptor")
        self.max_workers = max_workers or len(self.descriptors)

    def _build_one(self, descriptor: ArchitectureDescriptor) -> BuildResult:
        logger.set_trace_id(logger.generate_trace_id(f"BUILD-{descriptor}"))
        try:
            logger.debug("Building %s", descriptor)
            return self.builder.build(descriptor)
        finally:
            logger.clear_trace_id()

    def run(self):
        """
        Build every descriptor and wait for all of them.

        Returns:
            AllSucceeded or PartialFailure
        """
        logger.info(
            "Starting build matrix for %s with %d worker(s)",
            format_descriptors(self.descriptors), self.max_workers,
        )
        results: Dict[ArchitectureDescriptor, BuildResult] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="build") as pool:
            futures = {pool.submit(self._build_one, d): d for d in self.descriptors}
            for fut, descriptor in futures.items():
                try:
                    results[descriptor] = fut.result()
                except Exception as e:
                    logger.error("Builder raised for %s: %s: %s", descriptor, type(e).__name__, e)
                    results[descriptor] = BuildResult.failure(
                        descriptor, f"Unexpected builder error: {type(e).__name__}: {e}"
                    )

        failures = [
            BuildFailure(d, results[d].diagnostic)
            for d in self.descriptors
            if not results[d].succeeded
        ]
        if failures:
            logger.error("Build matrix failed for %s", format_descriptors(f.descriptor for f in failures))
            return PartialFailure(failures)

        logger.info("Build matrix succeeded for %d descriptor(s)", len(results))
        return AllSucceeded({d: results[d].artifact for d in self.descriptors})

