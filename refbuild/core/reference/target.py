"""Infer the branch whose builds serve as reference for a multi-branch job."""

from __future__ import annotations

from refbuild.core.filtered_log import FilteredLog
from refbuild.core.graph import Container, Job
from refbuild.core.reference.configuration import ReferenceConfiguration
from refbuild.core.reference.providers import BranchMetadataProvider, JobProvider

__all__ = ["DEFAULT_TARGET_BRANCH", "BranchTargetResolver"]

DEFAULT_TARGET_BRANCH = "master"


class BranchTargetResolver:
    """Resolve the target branch name using a fixed precedence chain.

    1. the explicitly configured target branch,
    2. the target of a pull or merge request,
    3. the single primary branch of the multi-branch container,
    4. ``DEFAULT_TARGET_BRANCH``.
    """

    def __init__(self, branches: BranchMetadataProvider, jobs: JobProvider) -> None:
        self.branches = branches
        self.jobs = jobs

    def resolve(
        self,
        job: Job,
        configuration: ReferenceConfiguration,
        log: FilteredLog,
        *,
        container: Container | None = None,
    ) -> str:
        configured = configuration.target_branch.strip()
        if configured:
            log.info("-> using target branch '{}' as configured", configured)
            return configured
        log.info("-> no target branch configured")

        head = self.branches.branch_head(job)
        if head is not None and head.is_change_request:
            target = str(head.target).strip()
            log.info("-> detected a pull or merge request for target branch '{}'", target)
            return target

        primary = self._primary_branch(job, container, log)
        if primary:
            log.info("-> using configured primary branch '{}' of SCM as target branch", primary)
            return primary

        log.info("-> falling back to plugin default target branch '{}'", DEFAULT_TARGET_BRANCH)
        assert DEFAULT_TARGET_BRANCH, "default target branch must not be empty"
        return DEFAULT_TARGET_BRANCH

    def _primary_branch(self, job: Job, container: Container | None, log: FilteredLog) -> str | None:
        scope = container if container is not None else self.jobs.parent_container(job)
        if scope is None:
            return None
        primaries = [candidate for candidate in self.jobs.all_jobs(scope) if self.branches.is_primary(candidate)]
        if not primaries:
            return None
        if len(primaries) > 1:
            log.info("-> found {} primary branches, ignoring them", len(primaries))
            return None
        head = self.branches.branch_head(primaries[0])
        if head is not None and head.name.strip():
            return head.name.strip()
        return primaries[0].display_name
