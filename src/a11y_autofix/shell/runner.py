"""Async runner for external command-line programs."""

from __future__ import annotations

import asyncio
import json
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from .utils import sanitize_environment


class CommandRunnerError(RuntimeError):
    """Base class for command runner errors."""


class CommandNotFoundError(CommandRunnerError):
    """Raised when a program executable cannot be located."""


class CommandTimeoutError(CommandRunnerError):
    """Raised when a command does not finish within its timeout."""

    def __init__(self, command: tuple[str, ...], timeout: float) -> None:
        super().__init__(f"Command timed out after {timeout:g}s: {' '.join(command)}")
        self.command = command
        self.timeout = timeout


@dataclass(slots=True)
class CommandResult:
    """Holds the outcome of a single command invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def error_text(self) -> str:
        return self.stderr.strip() or self.stdout.strip() or f"exit code {self.returncode}"


class CommandRunner:
    """Execute one external program asynchronously, one call at a time."""

    def __init__(
        self,
        program: str,
        executable: Path | None = None,
        *,
        cwd: Path | None = None,
    ) -> None:
        self.program = program
        self.cwd = Path(cwd) if cwd is not None else None
        self._executable_path = self._resolve_executable(program, executable)

    @staticmethod
    def _resolve_executable(program: str, explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            located = shutil.which(str(explicit))
            if located is not None:
                return Path(located)
            raise CommandNotFoundError(f"{program} executable not found at {candidate}")

        binary = shutil.which(program)
        if binary is None:
            raise CommandNotFoundError(f"{program} executable not found on PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    async def run(
        self,
        *args: str,
        input_text: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        return await self._invoke(*args, input_text=input_text, timeout=timeout)

    async def _invoke(
        self,
        *args: str,
        input_text: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        cmd = [str(self._executable_path), *args]
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(self.cwd) if self.cwd is not None else None,
            env=sanitize_environment(),
        )
        payload = input_text.encode("utf-8") if input_text is not None else None
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(payload), timeout=timeout
            )
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise CommandTimeoutError(tuple(cmd), timeout or 0.0) from exc
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        return CommandResult(args=tuple(cmd), returncode=process.returncode, stdout=stdout, stderr=stderr)


# Receives ``(args, input_text)``; returning ``None`` falls through to scripted responses.
Handler = Callable[[tuple[str, ...], str | None], CommandResult | None]


class FakeCommandRunner(CommandRunner):
    """Test double that simulates command responses."""

    def __init__(  # type: ignore[override]
        self,
        responses: Iterable[CommandResult] | None = None,
        *,
        program: str = "fake",
        handler: Handler | None = None,
    ) -> None:
        self.program = program
        self.cwd = None
        self._responses = list(responses or [])
        self._handler = handler
        self._invocations: list[tuple[str, ...]] = []
        self._inputs: list[str | None] = []
        self._executable_path = Path(f"/tmp/fake-{program}")

    async def _invoke(  # type: ignore[override]
        self,
        *args: str,
        input_text: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        self._invocations.append(tuple(args))
        self._inputs.append(input_text)
        if self._handler is not None:
            handled = self._handler(tuple(args), input_text)
            if handled is not None:
                return handled
        if self._responses:
            return self._responses.pop(0)
        return CommandResult(args=(self.program, *args), returncode=0, stdout="", stderr="")

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations

    @property
    def inputs(self) -> list[str | None]:
        return self._inputs


def serialize_result(result: CommandResult) -> str:
    """Serialize a command result for debug logging."""

    return json.dumps(
        {
            "args": list(result.args),
            "returncode": result.returncode,
            "stdout": result.stdout,
            "stderr": result.stderr,
        }
    )
