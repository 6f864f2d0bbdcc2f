"""External command execution utilities."""

from .runner import (
    CommandNotFoundError,
    CommandResult,
    CommandRunner,
    CommandRunnerError,
    CommandTimeoutError,
    FakeCommandRunner,
)

__all__ = [
    "CommandRunner",
    "CommandResult",
    "CommandRunnerError",
    "CommandNotFoundError",
    "CommandTimeoutError",
    "FakeCommandRunner",
]
