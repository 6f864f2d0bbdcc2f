"""Parsing of prompt-mode responses from the fix tool."""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..prompts import REVIEW_NOTES_HEADING


class ResponseParseError(ValueError):
    """Raised when a response carries no fenced code block."""


_FENCE_RE = re.compile(r"^(`{3,})[^\n`]*\n(.*?)\n\1[ \t]*$", re.DOTALL | re.MULTILINE)
_NOTES_RE = re.compile(
    r"^[ \t]*(?:#{1,6}[ \t]*|\*\*)" + re.escape(REVIEW_NOTES_HEADING) + r"[ \t]*:?(?:\*\*)?:?[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
_EMPTY_NOTES = {"none", "none.", "n/a", "-"}


@dataclass(slots=True)
class FixResponse:
    code: str
    notes: str


def extract_code_block(text: str) -> str | None:
    """Return the body of the first fenced code block, or ``None``."""

    match = _FENCE_RE.search(text)
    if match is None:
        return None
    return match.group(2)


def extract_review_notes(text: str, start: int = 0) -> str:
    """Return the text following the manual review notes heading."""

    match = _NOTES_RE.search(text, start)
    if match is None:
        return ""
    notes = text[match.end():].strip()
    if notes.lower() in _EMPTY_NOTES:
        return ""
    return notes


def parse_fix_response(text: str) -> FixResponse:
    match = _FENCE_RE.search(text)
    if match is None:
        raise ResponseParseError("Response does not contain a fenced code block")
    code = match.group(2)
    if not code.endswith("\n"):
        code += "\n"
    return FixResponse(code=code, notes=extract_review_notes(text, match.end()))


__all__ = [
    "FixResponse",
    "ResponseParseError",
    "extract_code_block",
    "extract_review_notes",
    "parse_fix_response",
]
