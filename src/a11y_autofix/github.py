"""GitHub CLI wrapper for opening pull requests."""

from __future__ import annotations

from pathlib import Path

from .shell import CommandResult, CommandRunner

MANUAL_PR_HINT = "You can create the PR manually at: https://github.com/<owner>/<repo>/compare"


class GitHubCli:
    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    @property
    def runner(self) -> CommandRunner:
        return self._runner

    async def create_pr(
        self,
        *,
        title: str,
        base: str,
        body: str | None = None,
        body_file: Path | None = None,
    ) -> CommandResult:
        """Run ``gh pr create``; exactly one of ``body`` and ``body_file`` is required."""

        if (body is None) == (body_file is None):
            raise ValueError("Provide exactly one of body or body_file")
        args = ["pr", "create", "--title", title]
        if body_file is not None:
            args.extend(["--body-file", str(body_file)])
        else:
            args.extend(["--body", body or ""])
        args.extend(["--base", base])
        return await self._runner.run(*args)


__all__ = ["GitHubCli", "MANUAL_PR_HINT"]
