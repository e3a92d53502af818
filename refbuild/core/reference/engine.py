"""Reference build resolution.

``ResolutionEngine.find_reference_build`` is the single entry point. It runs
the resolution components in order and packages the outcome together with the
log trail:

- an explicitly configured reference job is used as is,
- otherwise, for jobs in a multi-branch container, the target branch is
  inferred (``BranchTargetResolver``) and mapped to a sibling job
  (``JobLocator``),
- the newest candidate build is selected (``StartBuildSelector``),
- the history is walked back until a related build with a good enough result
  is found (``HistoryWalker``).

Every unresolvable condition yields an empty ``ReferenceBuild`` plus an
explanatory message; nothing is raised for them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from loguru import logger

from refbuild.core.filtered_log import FilteredLog
from refbuild.core.graph import Build, Job, JobGraph
from refbuild.core.reference.configuration import ReferenceConfiguration
from refbuild.core.reference.history import HistoryWalker
from refbuild.core.reference.locator import JobLocator
from refbuild.core.reference.providers import (
    BranchMetadataProvider,
    BuildHistoryProvider,
    CommitMatcher,
    JobProvider,
)
from refbuild.core.reference.selector import StartBuildSelector
from refbuild.core.reference.target import BranchTargetResolver

log = logger.bind(module="reference.engine")

__all__ = ["NO_REFERENCE_BUILD", "ReferenceBuild", "ResolutionEngine"]

NO_REFERENCE_BUILD = "-"


@dataclass(frozen=True, slots=True)
class ReferenceBuild:
    """Outcome of a resolution for the build ``owner``."""

    owner: str
    reference_job_name: str | None = None
    reference_build_id: str | None = None
    messages: tuple[str, ...] = ()

    @property
    def has_reference_build(self) -> bool:
        return bool(self.reference_build_id)

    @property
    def reference_build_id_or_dash(self) -> str:
        return self.reference_build_id or NO_REFERENCE_BUILD

    def find_reference_build(self, builds: Any) -> Build | None:
        """Resolve the referenced build through an object exposing ``find_build(id)``."""
        if not self.reference_build_id:
            return None
        return builds.find_build(self.reference_build_id)

    def to_payload(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "reference_job_name": self.reference_job_name,
            "reference_build_id": self.reference_build_id,
            "messages": list(self.messages),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ReferenceBuild":
        reference_id = payload.get("reference_build_id")
        if reference_id == NO_REFERENCE_BUILD:
            reference_id = None
        return cls(
            owner=str(payload["owner"]),
            reference_job_name=payload.get("reference_job_name") or None,
            reference_build_id=reference_id or None,
            messages=tuple(str(m) for m in payload.get("messages") or ()),
        )


class ResolutionEngine:
    """Select the reference build for a build.

    The engine only reads from its collaborators. It can be shared between
    threads as long as each call passes its own ``FilteredLog``.
    """

    def __init__(
        self,
        *,
        jobs: JobProvider,
        history: BuildHistoryProvider,
        branches: BranchMetadataProvider,
        matcher: CommitMatcher,
        configuration: ReferenceConfiguration | None = None,
    ) -> None:
        self.jobs = jobs
        self.history = history
        self.branches = branches
        self.matcher = matcher
        self.configuration = configuration or ReferenceConfiguration()

    @classmethod
    def from_graph(
        cls,
        graph: JobGraph,
        matcher: CommitMatcher,
        configuration: ReferenceConfiguration | None = None,
    ) -> "ResolutionEngine":
        return cls(
            jobs=graph,
            history=graph,
            branches=graph,
            matcher=matcher,
            configuration=configuration,
        )

    def find_reference_build(self, build: Build, trail: FilteredLog) -> ReferenceBuild:
        configuration = self.configuration.snapshot()
        reference_job = self._find_reference_job(build, configuration, trail)
        if reference_job is None:
            return self._package(build, trail)

        start = StartBuildSelector(self.history).select(reference_job, configuration, trail)
        if start is None:
            return self._package(build, trail)

        walker = HistoryWalker(self.history, self.matcher)
        found = walker.walk(build, start, configuration.required_result, trail)
        if found is not None:
            return self._package(build, trail, found)

        trail.info("No reference build with required status found that contains matching commits")
        if configuration.latest_build_if_not_found:
            trail.info(
                "-> using latest build '{}' of reference job '{}'",
                start.label,
                reference_job.display_name,
            )
            return self._package(build, trail, start)
        return self._package(build, trail)

    def _find_reference_job(
        self,
        build: Build,
        configuration: ReferenceConfiguration,
        trail: FilteredLog,
    ) -> Job | None:
        if configuration.reference_job:
            configured = self.jobs.find_job(configuration.reference_job)
            if configured is None:
                trail.info("Configured reference job '{}' does not exist", configuration.reference_job)
                return None
            trail.info("Using configured reference job '{}'", configured.display_name)
            return configured

        trail.info("No reference job configured")
        job = self.history.job_of(build)
        container = self.jobs.parent_container(job)
        if container is None or not container.multibranch:
            return None

        trail.info("Found a `MultiBranchProject`, trying to resolve the target branch from the configuration")
        target = BranchTargetResolver(self.branches, self.jobs).resolve(
            job,
            configuration,
            trail,
            container=container,
        )
        return JobLocator(self.jobs, self.branches).locate(container, target, trail)

    def _package(self, build: Build, trail: FilteredLog, reference: Build | None = None) -> ReferenceBuild:
        if reference is None:
            log.info("No reference build for {}", build.id)
            return ReferenceBuild(owner=build.id, messages=_messages(trail))
        log.info("Reference build for {} is {}", build.id, reference.id)
        return ReferenceBuild(
            owner=build.id,
            reference_job_name=reference.job_name,
            reference_build_id=reference.id,
            messages=_messages(trail),
        )


def _messages(trail: FilteredLog) -> tuple[str, ...]:
    return (*trail.info_messages, *trail.error_messages)
