from __future__ import annotations

from refbuild.core.graph import Build

__all__ = ["AcceptAllMatcher"]


class AcceptAllMatcher:
    """Commit matcher for setups without repository access: every build is related."""

    def is_related(self, candidate: Build, originating: Build) -> bool:
        return True
