"""Task models for structured accessibility instructions."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AccessibilityTask(BaseModel):
    """One entry of the accessibility instructions document."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Identifier selecting a canned prompt template.")
    files: list[str] | None = Field(
        default=None,
        description="Explicit files to process instead of discovering tracked files.",
    )
    description: str = Field(..., description="Free text used when no template matches.")
    prompt: str | None = Field(
        default=None,
        description="Literal instruction that overrides any template.",
    )

    @field_validator("type")
    @classmethod
    def _normalize_type(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Task type must not be empty")
        return normalized

    @field_validator("files", mode="before")
    @classmethod
    def _ensure_files(cls, value: Any):  # type: ignore[override]
        if value is None:
            return None
        if isinstance(value, str):
            return [value]
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value]
        raise TypeError("Task files must be a sequence of paths")


__all__ = ["AccessibilityTask"]
