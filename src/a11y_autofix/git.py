"""Thin async wrapper around the git commands the orchestrator needs."""

from __future__ import annotations

from .shell import CommandResult, CommandRunner, CommandRunnerError


class GitCommandError(CommandRunnerError):
    """Raised when a git command exits with a non-zero status."""

    def __init__(self, result: CommandResult) -> None:
        super().__init__(f"git {' '.join(result.args[1:])} failed: {result.error_text()}")
        self.result = result


class GitClient:
    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    @property
    def runner(self) -> CommandRunner:
        return self._runner

    async def _git(self, *args: str) -> CommandResult:
        result = await self._runner.run(*args)
        if not result.ok:
            raise GitCommandError(result)
        return result

    async def current_branch(self) -> str:
        result = await self._git("rev-parse", "--abbrev-ref", "HEAD")
        return result.stdout.strip()

    async def head_commit(self) -> str:
        result = await self._git("rev-parse", "HEAD")
        return result.stdout.strip()

    async def create_branch(self, name: str) -> None:
        await self._git("checkout", "-b", name)

    async def checkout(self, name: str) -> None:
        await self._git("checkout", name)

    async def list_files(self) -> list[str]:
        """Return tracked paths verbatim; ``-z`` keeps git from quoting non-ASCII names."""

        result = await self._git("ls-files", "-z")
        return [name for name in result.stdout.split("\0") if name.strip()]

    async def status(self) -> str:
        """Return ``git status --porcelain`` output; empty means a clean tree."""

        result = await self._git("status", "--porcelain")
        return result.stdout

    async def add_all(self) -> None:
        await self._git("add", ".")

    async def commit(self, message: str) -> None:
        await self._git("commit", "-m", message)

    async def push(self, remote: str, branch: str) -> None:
        await self._git("push", "-u", remote, branch)


__all__ = ["GitClient", "GitCommandError"]
