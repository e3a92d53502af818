"""Capabilities consumed by reference build resolution.

The resolution components only see these narrow protocols. ``JobGraph``
implements the three lookup protocols; commit relatedness is answered by an
injected ``CommitMatcher`` (see ``refbuild.core.git`` and
``refbuild.core.reference.matchers``).
"""

from __future__ import annotations

from typing import Iterable, Protocol

from refbuild.core.graph import BranchHead, Build, Container, Job

__all__ = [
    "BranchMetadataProvider",
    "BuildHistoryProvider",
    "CommitMatcher",
    "JobProvider",
]


class JobProvider(Protocol):
    """Protocol describing job and container lookups."""

    def find_job(self, name: str) -> Job | None:
        ...

    def parent_container(self, job: Job) -> Container | None:
        ...

    def child_jobs(self, container: Container) -> Iterable[Job]:
        ...

    def all_jobs(self, container: Container) -> Iterable[Job]:
        ...


class BuildHistoryProvider(Protocol):
    """Protocol describing read-only access to build histories."""

    def job_of(self, build: Build) -> Job:
        ...

    def last_completed_build(self, job: Job) -> Build | None:
        ...

    def last_build(self, job: Job) -> Build | None:
        ...

    def previous_completed_build(self, build: Build) -> Build | None:
        ...


class BranchMetadataProvider(Protocol):
    """Protocol describing source branch metadata attached to jobs."""

    def branch_head(self, job: Job) -> BranchHead | None:
        ...

    def is_primary(self, job: Job) -> bool:
        ...


class CommitMatcher(Protocol):
    """Decides whether a candidate build shares commit ancestry with a build."""

    def is_related(self, candidate: Build, originating: Build) -> bool:
        ...
