"""Pull-request notes buffer."""

from __future__ import annotations

from pathlib import Path

PR_BODY_HEADER = "# Automated Accessibility Improvements"
EMPTY_NOTES_PLACEHOLDER = "_No manual review notes were recorded._"


class PrNotes:
    """Markdown file that accumulates manual-review notes for one run."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def body_path(self) -> Path:
        return self._path.with_name(f"{self._path.stem}-body.md")

    def reset(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text("", encoding="utf-8")

    def append(self, file: str, notes: str) -> None:
        if not notes.strip():
            return
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(f"### `{file}`\n\n{notes.strip()}\n\n")

    def read(self) -> str:
        if not self._path.exists():
            return ""
        return self._path.read_text(encoding="utf-8")

    def write_body(self, *, guidelines_name: str) -> Path:
        """Compose the pull-request body from the accumulated notes."""

        notes = self.read().strip() or EMPTY_NOTES_PLACEHOLDER
        body = "\n\n".join(
            [
                PR_BODY_HEADER,
                "This PR contains accessibility improvements generated by the Gemini CLI.",
                f"Changes were guided by `{guidelines_name}`.",
                "## Manual Review Notes",
                notes,
            ]
        )
        self.body_path.write_text(body + "\n", encoding="utf-8")
        return self.body_path

    def discard(self) -> None:
        self._path.unlink(missing_ok=True)
        self.body_path.unlink(missing_ok=True)


__all__ = ["EMPTY_NOTES_PLACEHOLDER", "PR_BODY_HEADER", "PrNotes"]
