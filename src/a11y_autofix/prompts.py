"""Instruction text sent to the fix tool."""

from __future__ import annotations

from pathlib import Path

from .tasks import AccessibilityTask

TASK_TEMPLATES: dict[str, str] = {
    "add-alt-text": (
        "Review this file and add appropriate alt text to all images that are missing alt "
        "attributes. Make the alt text descriptive and meaningful for screen readers."
    ),
    "add-aria-labels": (
        "Add appropriate aria-label attributes to interactive elements (buttons, links, form "
        "controls) that don't have accessible names."
    ),
    "fix-heading-order": (
        "Fix the heading hierarchy in this file to ensure proper h1->h2->h3 order for screen readers."
    ),
    "add-skip-links": (
        "Add skip navigation links at the beginning of the page to help keyboard users navigate "
        "efficiently."
    ),
    "improve-focus": (
        "Ensure all interactive elements have visible focus indicators and proper tab order."
    ),
    "add-semantic-html": (
        "Replace generic div/span elements with appropriate semantic HTML elements where possible."
    ),
}

REVIEW_NOTES_HEADING = "Manual Review Notes"


def build_task_prompt(task: AccessibilityTask) -> str:
    """Return the instruction for a structured task.

    An explicit ``prompt`` wins, then the canned template for the task type,
    then a generic instruction built from the description.
    """

    if task.prompt:
        return task.prompt
    template = TASK_TEMPLATES.get(task.type)
    if template:
        return template
    return f"Improve accessibility for: {task.description}"


def build_guideline_prompt(guidelines: str, path: Path | str, content: str) -> str:
    fence = "````" if "```" in content else "```"
    sections = [
        "You are improving the accessibility of a front-end source file.",
        "Accessibility Guidelines:\n" + guidelines.strip(),
        f"File: {path}",
        f"Current Content:\n{fence}\n{content}\n{fence}",
        (
            "Response Format:\n"
            "- Return the complete updated file in a single fenced code block.\n"
            f"- Then add a section headed '## {REVIEW_NOTES_HEADING}' listing anything a "
            "human reviewer should check manually, or 'None'."
        ),
    ]
    return "\n\n".join(sections)


__all__ = ["REVIEW_NOTES_HEADING", "TASK_TEMPLATES", "build_guideline_prompt", "build_task_prompt"]
