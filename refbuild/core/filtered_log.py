"""Ordered, human-readable log trail for a single resolution.

A ``FilteredLog`` collects info and error messages in the order they were
reported. Error output is capped so that a misbehaving history cannot flood
the trail; the number of dropped errors is reported instead. Every message is
mirrored to Loguru so operators see the same trail in the process logs.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

log = logger.bind(module="core.filtered_log")

__all__ = ["DEFAULT_MAX_LINES", "FilteredLog"]

DEFAULT_MAX_LINES = 20


def _render(message: str, args: tuple[Any, ...]) -> str:
    if not args:
        return str(message)
    return str(message).format(*args)


class FilteredLog:
    """Append-only collection of info and error messages."""

    def __init__(self, title: str, *, max_lines: int = DEFAULT_MAX_LINES) -> None:
        self.title = str(title)
        self.max_lines = max(0, int(max_lines))
        self._info: list[str] = []
        self._errors: list[str] = []
        self._skipped_errors = 0
        self._log = log.bind(title=self.title)

    def info(self, message: str, *args: Any) -> None:
        """Record an informational message (``{}`` placeholders are filled from args)."""
        text = _render(message, args)
        self._info.append(text)
        self._log.debug(text)

    def error(self, message: str, *args: Any) -> None:
        """Record an error message, dropping it once ``max_lines`` is reached."""
        text = _render(message, args)
        self._log.warning(text)
        if len(self._errors) < self.max_lines:
            self._errors.append(text)
        else:
            self._skipped_errors += 1

    @property
    def info_messages(self) -> list[str]:
        return list(self._info)

    @property
    def error_messages(self) -> list[str]:
        """Return the title line, the recorded errors and a skip marker if needed."""
        if not self._errors and not self._skipped_errors:
            return []
        messages = [self.title, *self._errors]
        if self._skipped_errors:
            messages.append(f"  ... skipped logging of {self._skipped_errors} additional errors ...")
        return messages

    @property
    def has_errors(self) -> bool:
        return bool(self._errors) or self._skipped_errors > 0

    @property
    def skipped_errors(self) -> int:
        return self._skipped_errors

    def __len__(self) -> int:
        return len(self._info) + len(self._errors)
