"""Reference build resolution."""

from __future__ import annotations

from refbuild.core.reference.configuration import ReferenceConfiguration
from refbuild.core.reference.engine import NO_REFERENCE_BUILD, ReferenceBuild, ResolutionEngine
from refbuild.core.reference.history import HistoryWalker
from refbuild.core.reference.locator import JobLocator
from refbuild.core.reference.matchers import AcceptAllMatcher
from refbuild.core.reference.selector import StartBuildSelector
from refbuild.core.reference.target import DEFAULT_TARGET_BRANCH, BranchTargetResolver

__all__ = [
    "AcceptAllMatcher",
    "BranchTargetResolver",
    "DEFAULT_TARGET_BRANCH",
    "HistoryWalker",
    "JobLocator",
    "NO_REFERENCE_BUILD",
    "ReferenceBuild",
    "ReferenceConfiguration",
    "ResolutionEngine",
    "StartBuildSelector",
]
