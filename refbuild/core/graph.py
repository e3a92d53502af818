"""In-memory job/build graph.

Jobs own an append-only build history ordered by build number. Builds never
hold references to each other: the predecessor of a build is looked up by
number in its job's history, so a ``Build`` value can be passed around,
compared and hashed freely.

``JobGraph`` implements the job, build-history and branch-metadata lookups
consumed by reference build resolution. Once populated it is read-only and can
be shared between concurrent resolutions.
"""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Iterator

from refbuild.core.results import BuildResult

__all__ = [
    "BranchHead",
    "Build",
    "BuildHistory",
    "Container",
    "GraphError",
    "Job",
    "JobGraph",
]


class GraphError(ValueError):
    """Raised when a job graph is malformed."""


@dataclass(frozen=True, slots=True)
class BranchHead:
    """Source branch a job builds; pull/merge requests carry a target branch."""

    name: str
    target: str | None = None

    @property
    def is_change_request(self) -> bool:
        return bool((self.target or "").strip())


@dataclass(frozen=True, slots=True)
class Build:
    """One execution of a job."""

    id: str
    job_name: str
    number: int
    result: BuildResult | None = None
    building: bool = False
    display_name: str = ""
    revision: str | None = None

    @property
    def is_completed(self) -> bool:
        return not self.building

    @property
    def label(self) -> str:
        return self.display_name or self.id


class BuildHistory:
    """Append-only build history of a single job, oldest first."""

    def __init__(self, job_name: str) -> None:
        self.job_name = job_name
        self._builds: list[Build] = []
        self._numbers: list[int] = []

    def append(self, build: Build) -> Build:
        if build.job_name != self.job_name:
            raise GraphError(
                f"Build {build.id!r} belongs to job {build.job_name!r}, not {self.job_name!r}.",
            )
        if self._numbers and build.number <= self._numbers[-1]:
            raise GraphError(
                f"Build numbers of job {self.job_name!r} must increase "
                f"(got {build.number} after {self._numbers[-1]}).",
            )
        self._builds.append(build)
        self._numbers.append(build.number)
        return build

    def last_build(self) -> Build | None:
        return self._builds[-1] if self._builds else None

    def last_completed_build(self) -> Build | None:
        return self._last_completed_before(len(self._builds))

    def previous_completed_build(self, number: int) -> Build | None:
        """Return the newest completed build older than build ``number``."""
        return self._last_completed_before(bisect_left(self._numbers, number))

    def _last_completed_before(self, index: int) -> Build | None:
        for position in range(index - 1, -1, -1):
            candidate = self._builds[position]
            if candidate.is_completed:
                return candidate
        return None

    def __iter__(self) -> Iterator[Build]:
        return iter(self._builds)

    def __len__(self) -> int:
        return len(self._builds)


@dataclass(slots=True)
class Container:
    """Folder of jobs; multi-branch containers own one job per branch."""

    name: str
    multibranch: bool = False
    parent: str | None = None


@dataclass(slots=True)
class Job:
    """Named pipeline producing an ordered sequence of builds."""

    name: str
    display_name: str = ""
    container: str | None = None
    branch: BranchHead | None = None
    primary: bool = False
    history: BuildHistory = field(init=False)

    def __post_init__(self) -> None:
        if not self.display_name:
            self.display_name = self.name.rsplit("/", 1)[-1]
        self.history = BuildHistory(self.name)


class JobGraph:
    """Registry of containers, jobs and builds."""

    def __init__(self) -> None:
        self._containers: dict[str, Container] = {}
        self._jobs: dict[str, Job] = {}
        self._builds: dict[str, Build] = {}

    # Population ------------------------------------------------------------

    def add_container(self, name: str, *, multibranch: bool = False, parent: str | None = None) -> Container:
        if name in self._containers:
            raise GraphError(f"Container {name!r} is already registered.")
        if parent is not None and parent not in self._containers:
            raise GraphError(f"Parent container {parent!r} of {name!r} is unknown.")
        container = Container(name=name, multibranch=multibranch, parent=parent)
        self._containers[name] = container
        return container

    def add_job(
        self,
        name: str,
        *,
        display_name: str = "",
        container: str | None = None,
        branch: BranchHead | None = None,
        primary: bool = False,
    ) -> Job:
        if name in self._jobs:
            raise GraphError(f"Job {name!r} is already registered.")
        if container is not None and container not in self._containers:
            raise GraphError(f"Container {container!r} of job {name!r} is unknown.")
        job = Job(
            name=name,
            display_name=display_name,
            container=container,
            branch=branch,
            primary=primary,
        )
        self._jobs[name] = job
        return job

    def add_build(
        self,
        job_name: str,
        number: int,
        *,
        result: BuildResult | str | None = None,
        building: bool = False,
        build_id: str | None = None,
        display_name: str = "",
        revision: str | None = None,
    ) -> Build:
        job = self._jobs.get(job_name)
        if job is None:
            raise GraphError(f"Job {job_name!r} is unknown.")
        if not building and result is None:
            raise GraphError(f"Completed build #{number} of {job_name!r} requires a result.")
        identifier = (build_id or "").strip() or f"{job_name}#{int(number)}"
        if identifier in self._builds:
            raise GraphError(f"Build id {identifier!r} is already registered.")
        build = Build(
            id=identifier,
            job_name=job_name,
            number=int(number),
            result=BuildResult.parse(result) if result is not None else None,
            building=bool(building),
            display_name=display_name or f"#{int(number)}",
            revision=(revision or "").strip() or None,
        )
        job.history.append(build)
        self._builds[identifier] = build
        return build

    # Lookups ---------------------------------------------------------------

    def find_build(self, build_id: str) -> Build | None:
        return self._builds.get(build_id)

    def find_container(self, name: str) -> Container | None:
        return self._containers.get(name)

    @property
    def jobs(self) -> list[Job]:
        return list(self._jobs.values())

    @property
    def containers(self) -> list[Container]:
        return list(self._containers.values())

    # JobProvider -----------------------------------------------------------

    def find_job(self, name: str) -> Job | None:
        return self._jobs.get(name)

    def parent_container(self, job: Job) -> Container | None:
        if job.container is None:
            return None
        return self._containers.get(job.container)

    def child_jobs(self, container: Container) -> list[Job]:
        return [job for job in self._jobs.values() if job.container == container.name]

    def all_jobs(self, container: Container) -> list[Job]:
        """Return all jobs of ``container`` including those in nested folders."""
        names = {container.name}
        pending = [container.name]
        while pending:
            current = pending.pop()
            for candidate in self._containers.values():
                if candidate.parent == current and candidate.name not in names:
                    names.add(candidate.name)
                    pending.append(candidate.name)
        return [job for job in self._jobs.values() if job.container in names]

    # BuildHistoryProvider --------------------------------------------------

    def job_of(self, build: Build) -> Job:
        job = self._jobs.get(build.job_name)
        if job is None:
            raise GraphError(f"Build {build.id!r} references unknown job {build.job_name!r}.")
        return job

    def last_completed_build(self, job: Job) -> Build | None:
        return job.history.last_completed_build()

    def last_build(self, job: Job) -> Build | None:
        return job.history.last_build()

    def previous_completed_build(self, build: Build) -> Build | None:
        return self.job_of(build).history.previous_completed_build(build.number)

    # BranchMetadataProvider ------------------------------------------------

    def branch_head(self, job: Job) -> BranchHead | None:
        return job.branch

    def is_primary(self, job: Job) -> bool:
        return job.primary
