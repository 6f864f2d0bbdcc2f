"""Configuration management for a11y-autofix."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal
import os
import tempfile

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_EXTENSIONS: tuple[str, ...] = (".html", ".tsx", ".jsx", ".vue", ".svelte")


class AutofixSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    mode: Literal["tasks", "guidelines"] = Field(default="tasks", validation_alias="A11Y_MODE")
    repo_path: Path = Field(default=Path("."), validation_alias="A11Y_REPO_PATH")
    instructions_path: Path = Field(
        default=Path("accessibility-instructions.json"), validation_alias="A11Y_INSTRUCTIONS_PATH"
    )
    guidelines_path: Path = Field(
        default=Path("accessibility-guidelines.md"), validation_alias="A11Y_GUIDELINES_PATH"
    )
    notes_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()), validation_alias="A11Y_NOTES_DIR"
    )

    fixer_path: str | None = Field(default=None, validation_alias="A11Y_FIXER_PATH")
    git_path: str | None = Field(default=None, validation_alias="A11Y_GIT_PATH")
    gh_path: str | None = Field(default=None, validation_alias="A11Y_GH_PATH")

    branch_prefix: str = Field(
        default="accessibility-improvements", validation_alias="A11Y_BRANCH_PREFIX"
    )
    remote: str = Field(default="origin", validation_alias="A11Y_REMOTE")
    extensions: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_EXTENSIONS, validation_alias="A11Y_EXTENSIONS"
    )

    task_file_limit: int | None = Field(default=10, validation_alias="A11Y_TASK_FILE_LIMIT")
    guideline_file_limit: int | None = Field(default=None, validation_alias="A11Y_GUIDELINE_FILE_LIMIT")
    apply_timeout: float = Field(default=30.0, validation_alias="A11Y_APPLY_TIMEOUT")
    prompt_timeout: float = Field(default=90.0, validation_alias="A11Y_PROMPT_TIMEOUT")
    apply_responses: bool = Field(default=False, validation_alias="A11Y_APPLY_RESPONSES")

    commit_message: str = Field(
        default="feat: automated accessibility improvements via Gemini CLI",
        validation_alias="A11Y_COMMIT_MESSAGE",
    )
    pr_title: str = Field(
        default="Automated Accessibility Improvements (Gemini CLI)",
        validation_alias="A11Y_PR_TITLE",
    )
    log_level: str = Field(default="INFO", validation_alias="A11Y_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "A11Y_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("extensions", mode="before")
    @classmethod
    def _parse_extensions(cls, value):
        if value is None or value == "":
            return DEFAULT_EXTENSIONS
        if isinstance(value, str):
            value = value.replace(os.pathsep, ",").split(",")
        if isinstance(value, (list, tuple)):
            parts = [str(item).strip() for item in value if str(item).strip()]
            normalized = tuple(part if part.startswith(".") else f".{part}" for part in parts)
            return normalized or DEFAULT_EXTENSIONS
        raise TypeError("A11Y_EXTENSIONS must be a list of extensions or a comma-separated string")

    @field_validator("task_file_limit", "guideline_file_limit", mode="before")
    @classmethod
    def _parse_limit(cls, value):
        if value == "" or value is None:
            return None
        return value

    @field_validator("task_file_limit", "guideline_file_limit")
    @classmethod
    def _validate_limit(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError("File limits must be >= 1")
        return value

    @field_validator("apply_timeout", "prompt_timeout")
    @classmethod
    def _validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Timeouts must be positive")
        return value


@lru_cache(maxsize=1)
def get_settings() -> AutofixSettings:
    """Return cached settings instance."""

    settings = AutofixSettings()
    settings.repo_path = settings.repo_path.expanduser().resolve()
    settings.notes_dir = settings.notes_dir.expanduser().resolve()
    return settings


__all__ = ["AutofixSettings", "DEFAULT_EXTENSIONS", "get_settings"]
