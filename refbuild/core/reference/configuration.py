"""Per-job settings that steer reference build resolution."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, field_validator

from refbuild.core.results import BuildResult

if TYPE_CHECKING:
    from refbuild.config import Settings

__all__ = ["ReferenceConfiguration"]


class ReferenceConfiguration(BaseModel):
    """Reference build options of a job.

    The options are set once when a job is configured. Resolution works on a
    frozen copy (see ``snapshot``) so concurrent reconfiguration never leaks
    into a running resolution.
    """

    model_config = ConfigDict(validate_assignment=True)

    reference_job: str = ""
    target_branch: str = ""
    required_result: BuildResult = BuildResult.UNSTABLE
    consider_running_build: bool = False
    latest_build_if_not_found: bool = False

    @field_validator("reference_job", "target_branch", mode="before")
    @classmethod
    def _strip_name(cls, value: object) -> str:
        return str(value or "").strip()

    @field_validator("required_result", mode="before")
    @classmethod
    def _parse_result(cls, value: object) -> BuildResult:
        return BuildResult.parse(value)  # type: ignore[arg-type]

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ReferenceConfiguration":
        """Build job defaults from the REFERENCE_* environment settings."""
        return cls(
            reference_job=settings.reference_job,
            target_branch=settings.reference_target_branch,
            required_result=settings.reference_required_result,
            consider_running_build=settings.reference_consider_running_build,
            latest_build_if_not_found=settings.reference_latest_build_if_not_found,
        )

    def set_reference_job(self, name: str) -> None:
        self.reference_job = name

    def set_target_branch(self, name: str) -> None:
        self.target_branch = name

    def set_required_result(self, result: BuildResult | str) -> None:
        self.required_result = result  # type: ignore[assignment]

    def set_consider_running_build(self, value: bool) -> None:
        self.consider_running_build = bool(value)

    def set_latest_build_if_not_found(self, value: bool) -> None:
        self.latest_build_if_not_found = bool(value)

    def snapshot(self) -> "FrozenReferenceConfiguration":
        """Return an immutable copy for the duration of one resolution."""
        return FrozenReferenceConfiguration.model_validate(self.model_dump())


class FrozenReferenceConfiguration(ReferenceConfiguration):
    """Read-only view of a ``ReferenceConfiguration``."""

    model_config = ConfigDict(frozen=True)

    def snapshot(self) -> "FrozenReferenceConfiguration":
        return self
