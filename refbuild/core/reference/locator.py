"""Find the sibling job that builds a given branch."""

from __future__ import annotations

from typing import Iterable

from refbuild.core.filtered_log import FilteredLog
from refbuild.core.graph import Container, Job
from refbuild.core.reference.providers import BranchMetadataProvider, JobProvider

__all__ = ["JobLocator"]


class JobLocator:
    """Exact branch-name lookup among the direct children of a container.

    A primary branch job may live in a nested folder of the container; it is
    matched there when no direct child builds the branch.
    """

    def __init__(self, jobs: JobProvider, branches: BranchMetadataProvider) -> None:
        self.jobs = jobs
        self.branches = branches

    def branch_name_of(self, job: Job) -> str:
        head = self.branches.branch_head(job)
        if head is not None and head.name:
            return head.name
        return job.display_name

    def locate(self, container: Container, branch_name: str, log: FilteredLog) -> Job | None:
        found = self._find(self.jobs.child_jobs(container), branch_name)
        if found is None:
            primaries = [job for job in self.jobs.all_jobs(container) if self.branches.is_primary(job)]
            found = self._find(primaries, branch_name)
        if found is None:
            log.info("No reference job found for target branch '{}'", branch_name)
            return None
        log.info("-> inferred job for target branch: '{}'", found.display_name)
        return found

    def _find(self, candidates: Iterable[Job], branch_name: str) -> Job | None:
        for candidate in candidates:
            if self.branch_name_of(candidate) == branch_name:
                return candidate
        return None
