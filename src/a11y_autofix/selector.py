"""Selection of tracked front-end files."""

from __future__ import annotations

from typing import Iterable, Sequence

from .config import DEFAULT_EXTENSIONS
from .git import GitClient


def is_relevant_file(name: str, extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> bool:
    return any(name.endswith(ext) for ext in extensions)


def filter_relevant(names: Iterable[str], extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> list[str]:
    """Keep names matching the extension allow-list, preserving order."""

    return [name for name in names if name.strip() and is_relevant_file(name, extensions)]


async def select_files(git: GitClient, extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> list[str]:
    return filter_relevant(await git.list_files(), extensions)


__all__ = ["filter_relevant", "is_relevant_file", "select_files"]
