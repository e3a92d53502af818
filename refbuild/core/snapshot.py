"""Load a ``JobGraph`` from a JSON snapshot of jobs and builds.

A snapshot lists containers (folders and multi-branch projects) and jobs with
their builds, oldest first::

    {
      "containers": [{"name": "project", "multibranch": true}],
      "jobs": [{
        "name": "project/main",
        "container": "project",
        "branch": {"name": "main"},
        "primary": true,
        "builds": [{"number": 1, "result": "SUCCESS", "revision": "abc123"}]
      }]
    }

Containers must be listed after their parents.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from refbuild.core.graph import BranchHead, GraphError, JobGraph
from refbuild.core.results import BuildResult

log = logger.bind(module="core.snapshot")

__all__ = [
    "BranchSnapshot",
    "BuildSnapshot",
    "ContainerSnapshot",
    "GraphSnapshot",
    "JobSnapshot",
    "SnapshotError",
    "load_job_graph",
    "parse_job_graph",
]


class SnapshotError(ValueError):
    """Raised when a job graph snapshot cannot be parsed or applied."""


class BranchSnapshot(BaseModel):
    name: str
    target: str | None = None


class BuildSnapshot(BaseModel):
    number: int = Field(ge=0)
    id: str | None = None
    result: BuildResult | None = None
    building: bool = False
    display_name: str = ""
    revision: str | None = None

    @field_validator("result", mode="before")
    @classmethod
    def _parse_result(cls, value: object) -> BuildResult | None:
        if value is None or value == "":
            return None
        return BuildResult.parse(value)  # type: ignore[arg-type]


class ContainerSnapshot(BaseModel):
    name: str
    multibranch: bool = False
    parent: str | None = None


class JobSnapshot(BaseModel):
    name: str
    display_name: str = ""
    container: str | None = None
    branch: BranchSnapshot | None = None
    primary: bool = False
    builds: list[BuildSnapshot] = Field(default_factory=list)


class GraphSnapshot(BaseModel):
    containers: list[ContainerSnapshot] = Field(default_factory=list)
    jobs: list[JobSnapshot] = Field(default_factory=list)

    def to_graph(self) -> JobGraph:
        graph = JobGraph()
        for container in self.containers:
            graph.add_container(container.name, multibranch=container.multibranch, parent=container.parent)
        for job in self.jobs:
            head = BranchHead(name=job.branch.name, target=job.branch.target) if job.branch else None
            graph.add_job(
                job.name,
                display_name=job.display_name,
                container=job.container,
                branch=head,
                primary=job.primary,
            )
            for build in job.builds:
                graph.add_build(
                    job.name,
                    build.number,
                    result=build.result,
                    building=build.building,
                    build_id=build.id,
                    display_name=build.display_name,
                    revision=build.revision,
                )
        return graph


def parse_job_graph(text: str | bytes) -> JobGraph:
    """Validate a JSON snapshot and build the graph it describes."""

    try:
        snapshot = GraphSnapshot.model_validate_json(text)
        graph = snapshot.to_graph()
    except ValidationError as exc:
        raise SnapshotError(f"Invalid job graph snapshot: {exc}") from exc
    except GraphError as exc:
        raise SnapshotError(f"Inconsistent job graph snapshot: {exc}") from exc
    log.debug(
        "Loaded job graph with {} container(s) and {} job(s)",
        len(snapshot.containers),
        len(snapshot.jobs),
    )
    return graph


def load_job_graph(path: str | Path) -> JobGraph:
    """Read and parse a snapshot file."""

    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise SnapshotError(f"Cannot read job graph snapshot {source}: {exc}") from exc
    return parse_job_graph(text)
