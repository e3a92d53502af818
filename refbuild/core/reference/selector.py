"""Pick the newest candidate build of a reference job."""

from __future__ import annotations

from refbuild.core.filtered_log import FilteredLog
from refbuild.core.graph import Build, Job
from refbuild.core.reference.configuration import ReferenceConfiguration
from refbuild.core.reference.providers import BuildHistoryProvider

__all__ = ["StartBuildSelector"]


class StartBuildSelector:
    def __init__(self, history: BuildHistoryProvider) -> None:
        self.history = history

    def select(self, job: Job, configuration: ReferenceConfiguration, log: FilteredLog) -> Build | None:
        """Return the last completed build, or the last build when running builds are allowed."""
        if configuration.consider_running_build:
            start = self.history.last_build(job)
        else:
            start = self.history.last_completed_build(job)
        if start is None:
            log.info("No completed build found for reference job '{}'", job.display_name)
        return start
