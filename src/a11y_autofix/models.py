"""Data models describing one orchestration run."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

RunMode = Literal["tasks", "guidelines"]

SKIP_MISSING = "missing"
SKIP_TOOL_ERROR = "tool-error"
SKIP_TIMEOUT = "timeout"
SKIP_UNPARSEABLE = "unparseable-response"
SKIP_UNREADABLE = "unreadable"
SKIP_UNWRITABLE = "unwritable"


@dataclass(frozen=True, slots=True)
class RunConfig:
    mode: RunMode
    origin_branch: str
    target_branch: str
    started_at_ms: int
    file_limit: int | None
    timeout: float
    extensions: tuple[str, ...]
    # origin_branch holds a commit id when the run started on a detached HEAD.
    origin_detached: bool = False


@dataclass(frozen=True, slots=True)
class FileOutcome:
    path: str
    task_type: str | None
    succeeded: bool
    skipped_reason: str | None = None
    notes: str | None = None

    @classmethod
    def ok(cls, path: str, task_type: str | None = None, notes: str | None = None) -> "FileOutcome":
        return cls(path=path, task_type=task_type, succeeded=True, notes=notes)

    @classmethod
    def skipped(cls, path: str, reason: str, task_type: str | None = None) -> "FileOutcome":
        return cls(path=path, task_type=task_type, succeeded=False, skipped_reason=reason)


@dataclass(slots=True)
class RunSummary:
    config: RunConfig
    outcomes: list[FileOutcome] = field(default_factory=list)
    branch_created: bool = False
    committed: bool = False
    pushed: bool = False
    pr_created: bool = False
    pr_output: str | None = None
    pr_error: str | None = None
    restored: bool = False

    @property
    def succeeded(self) -> list[FileOutcome]:
        return [outcome for outcome in self.outcomes if outcome.succeeded]

    @property
    def skipped(self) -> list[FileOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["config"]["extensions"] = list(self.config.extensions)
        return payload


__all__ = [
    "FileOutcome",
    "RunConfig",
    "RunMode",
    "RunSummary",
    "SKIP_MISSING",
    "SKIP_TIMEOUT",
    "SKIP_TOOL_ERROR",
    "SKIP_UNPARSEABLE",
    "SKIP_UNREADABLE",
    "SKIP_UNWRITABLE",
]
