"""Walk back through a reference job's history to find a usable build."""

from __future__ import annotations

from loguru import logger

from refbuild.core.filtered_log import FilteredLog
from refbuild.core.graph import Build
from refbuild.core.reference.providers import BuildHistoryProvider, CommitMatcher
from refbuild.core.results import BuildResult

log = logger.bind(module="reference.history")

__all__ = ["HistoryWalker"]


class HistoryWalker:
    """Return the newest related build whose result meets the threshold.

    Notes:
    - The walk follows ``previous_completed_build`` only, so it never leaves the
      job of the start build and never moves forward in time.
    - A candidate rejected by the commit matcher ends the walk: history before a
      known-unrelated build is not considered.
    - There is no depth limit. A build id seen twice means the history provider
      returned a cyclic chain; the walk stops without a match in that case.
    - Trail messages name builds by ``Build.label``, i.e. the display name
      (``#<number>`` unless set), not the build id. The returned build carries
      the id.
    """

    def __init__(self, history: BuildHistoryProvider, matcher: CommitMatcher) -> None:
        self.history = history
        self.matcher = matcher

    def walk(
        self,
        originating: Build,
        start: Build,
        required_result: BuildResult | str,
        trail: FilteredLog,
    ) -> Build | None:
        required = BuildResult.parse(required_result)
        visited: set[str] = set()
        candidate: Build | None = start
        while candidate is not None:
            if candidate.id in visited:
                trail.error(
                    "Build history of '{}' loops back to build '{}', stopping the search",
                    start.label,
                    candidate.label,
                )
                return None
            visited.add(candidate.id)
            is_start = candidate.id == start.id

            if not self.matcher.is_related(candidate, originating):
                trail.info("-> build '{}' does not contain commits of the current build", candidate.label)
                return None
            if is_start:
                trail.info("Found reference build '{}' for target branch", candidate.label)

            if candidate.result is not None and candidate.result.is_better_or_equal(required):
                trail.info(
                    "-> {} '{}' has a result {}",
                    "Build" if is_start else "Previous build",
                    candidate.label,
                    candidate.result.value,
                )
                log.debug("Accepted {} after {} step(s)", candidate.id, len(visited))
                return candidate
            candidate = self.history.previous_completed_build(candidate)

        trail.info(
            "-> ignoring reference build '{}' or one of its predecessors "
            "since none have a result of {} or better",
            start.label,
            required.value,
        )
        log.debug("History of {} exhausted after {} step(s)", start.id, len(visited))
        return None
