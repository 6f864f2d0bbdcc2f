"""Invocation modes of the generative-AI fix tool."""

from __future__ import annotations

from pathlib import Path

from ..shell import CommandResult, CommandRunner

FIXER_PROGRAM = "gemini"
INSTALL_HINT = "Install with: npm install -g @google/gemini-cli"


class FixerCli:
    """Wraps the fix tool's command line.

    ``apply`` lets the tool rewrite a file in place; ``ask`` pipes a prompt on
    standard input and returns the tool's text response.
    """

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    @property
    def runner(self) -> CommandRunner:
        return self._runner

    async def version(self) -> CommandResult:
        return await self._runner.run("--version")

    async def apply(self, prompt: str, path: Path | str, *, timeout: float | None = None) -> CommandResult:
        return await self._runner.run(prompt, "--file", str(path), "--apply", timeout=timeout)

    async def ask(self, prompt: str, *, timeout: float | None = None) -> CommandResult:
        return await self._runner.run("--yolo", input_text=prompt, timeout=timeout)


__all__ = ["FIXER_PROGRAM", "INSTALL_HINT", "FixerCli"]
