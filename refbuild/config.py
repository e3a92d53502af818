from __future__ import annotations

from functools import lru_cache
from typing import Any

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.console import Console

console = Console(stderr=True)
log = logger.bind(module="config")


class Settings(BaseSettings):
    """Centralised application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = Field(default="refbuild", alias="APP_NAME")
    environment: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    database_url: str = Field(default="sqlite:///refbuild.db", alias="DATABASE_URL")
    db_echo: bool = Field(default=False, alias="DB_ECHO")

    git_repo_path: str | None = Field(default=None, alias="GIT_REPO_PATH")
    git_remote: str = Field(default="origin", alias="GIT_REMOTE")
    git_fetch_depth: int | None = Field(default=None, alias="GIT_FETCH_DEPTH")

    # Job-level defaults for reference build resolution. Each can be overridden
    # per invocation (see ``ReferenceConfiguration.from_settings``).
    reference_job: str = Field(default="", alias="REFERENCE_JOB")
    reference_target_branch: str = Field(default="", alias="REFERENCE_TARGET_BRANCH")
    reference_required_result: str = Field(default="UNSTABLE", alias="REFERENCE_REQUIRED_RESULT")
    reference_consider_running_build: bool = Field(
        default=False,
        alias="REFERENCE_CONSIDER_RUNNING_BUILD",
    )
    reference_latest_build_if_not_found: bool = Field(
        default=False,
        alias="REFERENCE_LATEST_BUILD_IF_NOT_FOUND",
    )

    def export_safe(self) -> dict[str, Any]:
        """Return non-sensitive settings for debugging/logging."""
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "log_level": self.log_level,
            "db_echo": self.db_echo,
            "git_repo_path": self.git_repo_path,
            "git_remote": self.git_remote,
            "reference_job": self.reference_job,
            "reference_target_branch": self.reference_target_branch,
            "reference_required_result": self.reference_required_result,
            "reference_consider_running_build": self.reference_consider_running_build,
            "reference_latest_build_if_not_found": self.reference_latest_build_if_not_found,
        }


@lru_cache
def get_settings() -> Settings:
    """Load and cache application settings."""
    settings = Settings()
    console.log(
        f"[bold green]Loaded settings[/] env={settings.environment!r} "
        f"log_level={settings.log_level!r}",
    )
    log.info("Settings initialised: {}", settings.export_safe())
    return settings
