"""Fix tool orchestration utilities."""

from .response import FixResponse, ResponseParseError, parse_fix_response
from .runner import FIXER_PROGRAM, INSTALL_HINT, FixerCli

__all__ = [
    "FIXER_PROGRAM",
    "INSTALL_HINT",
    "FixResponse",
    "FixerCli",
    "ResponseParseError",
    "parse_fix_response",
]
