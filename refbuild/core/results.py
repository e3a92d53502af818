"""Build result vocabulary with ordinal comparison.

Results are ranked the way Jenkins ranks them: a lower ordinal is a better
outcome. Comparisons always go through the ordinal so that e.g. ``"ABORTED"``
never sorts before ``"SUCCESS"`` lexically.
"""

from __future__ import annotations

from enum import Enum

__all__ = ["BuildResult"]


class BuildResult(str, Enum):
    """Outcome of a completed build, best to worst."""

    SUCCESS = "SUCCESS"
    UNSTABLE = "UNSTABLE"
    FAILURE = "FAILURE"
    NOT_BUILT = "NOT_BUILT"
    ABORTED = "ABORTED"

    @property
    def ordinal(self) -> int:
        return _ORDINALS[self]

    def is_better_or_equal(self, other: "BuildResult") -> bool:
        """Return True when this result is at least as good as ``other``."""
        return self.ordinal <= BuildResult.parse(other).ordinal

    @classmethod
    def parse(cls, value: "BuildResult | str") -> "BuildResult":
        """Return the result named by ``value`` (case-insensitive)."""
        if isinstance(value, BuildResult):
            return value
        text = str(value or "").strip().upper()
        try:
            return cls(text)
        except ValueError as exc:
            names = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown build result {value!r} (expected one of {names}).") from exc

    def __str__(self) -> str:
        return self.value


_ORDINALS: dict[BuildResult, int] = {
    BuildResult.SUCCESS: 0,
    BuildResult.UNSTABLE: 1,
    BuildResult.FAILURE: 2,
    BuildResult.NOT_BUILT: 3,
    BuildResult.ABORTED: 4,
}
