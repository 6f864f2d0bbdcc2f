"""Instruction loading utilities."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import AccessibilityTask


class TaskLoadError(RuntimeError):
    """Raised when the task list or guidelines document cannot be loaded."""


class TaskLoader:
    """Loads accessibility tasks from a JSON or YAML document on disk."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_document(self) -> Any:
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise TaskLoadError(f"Could not read {self._path}: {exc}") from exc

        if self._path.suffix.lower() in {".yml", ".yaml"}:
            try:
                return yaml.safe_load(text)
            except yaml.YAMLError as exc:  # pragma: no cover - library type
                raise TaskLoadError(f"Failed to parse YAML in {self._path}: {exc}") from exc

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise TaskLoadError(f"Failed to parse JSON in {self._path}: {exc}") from exc

    def load_all(self) -> list[AccessibilityTask]:
        """Load every task in document order.

        A bare list is expected; a mapping with a ``tasks`` key is also accepted.
        """

        document = self._read_document()
        if isinstance(document, dict) and "tasks" in document:
            document = document["tasks"]
        if not isinstance(document, list):
            raise TaskLoadError(f"{self._path} must contain a list of tasks")

        tasks: list[AccessibilityTask] = []
        errors: list[str] = []
        for index, entry in enumerate(document):
            try:
                tasks.append(AccessibilityTask.model_validate(entry))
            except ValidationError as exc:
                errors.append(f"Task {index} in {self._path} is invalid: {exc}")

        if errors:
            raise TaskLoadError("; ".join(errors))

        return tasks


def load_tasks(path: Path) -> list[AccessibilityTask]:
    """Convenience wrapper for loading tasks from the provided path."""

    return TaskLoader(path).load_all()


def load_guidelines(path: Path) -> str:
    """Read the freeform guidelines document verbatim."""

    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise TaskLoadError(f"Could not read {path}: {exc}") from exc
    if not text.strip():
        raise TaskLoadError(f"Guidelines document {path} is empty")
    return text


__all__ = ["AccessibilityTask", "TaskLoadError", "TaskLoader", "load_guidelines", "load_tasks"]
