"""Command-line entry point for a11y-autofix."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from . import __version__
from .config import AutofixSettings, get_settings
from .fixer import FIXER_PROGRAM, FixerCli
from .git import GitClient
from .github import GitHubCli
from .models import RunSummary
from .orchestrator import FatalStepError, Orchestrator
from .shell import CommandNotFoundError, CommandRunner

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging for the command-line run."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def _build_runner(program: str, explicit: str | None, cwd: Path) -> CommandRunner | None:
    try:
        return CommandRunner(program, Path(explicit) if explicit else None, cwd=cwd)
    except CommandNotFoundError as exc:
        logger.warning("%s unavailable", program, extra={"error": str(exc)})
        return None


def create_orchestrator(
    settings: AutofixSettings,
    *,
    git_runner: CommandRunner | None = None,
    fixer_runner: CommandRunner | None = None,
    gh_runner: CommandRunner | None = None,
) -> Orchestrator:
    """Wire runners for git, the fix tool and the GitHub CLI into an orchestrator."""

    repo = settings.repo_path
    git_runner = git_runner or _build_runner("git", settings.git_path, repo)
    if git_runner is None:
        raise FatalStepError("preflight", "git executable not found on PATH")
    fixer_runner = fixer_runner or _build_runner(FIXER_PROGRAM, settings.fixer_path, repo)
    gh_runner = gh_runner or _build_runner("gh", settings.gh_path, repo)

    return Orchestrator(
        settings,
        git=GitClient(git_runner),
        fixer=FixerCli(fixer_runner) if fixer_runner is not None else None,
        github=GitHubCli(gh_runner) if gh_runner is not None else None,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="a11y-autofix",
        description=(
            "Apply accessibility fixes to tracked front-end files with the Gemini CLI "
            "and open a pull request with the result."
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--mode",
        choices=("tasks", "guidelines"),
        default=None,
        help="Instruction source: structured task list or freeform guidelines document",
    )
    parser.add_argument("--repo", type=Path, default=None, help="Repository to operate on")
    parser.add_argument(
        "--instructions",
        type=Path,
        default=None,
        help="Task list JSON/YAML file (relative to the current directory)",
    )
    parser.add_argument(
        "--guidelines",
        type=Path,
        default=None,
        help="Guidelines markdown file (relative to the current directory)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum files per task (tasks mode) or per run (guidelines mode)",
    )
    parser.add_argument(
        "--apply-responses",
        action="store_true",
        default=None,
        help="Write the code block from guideline-mode responses back to the file",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    parser.add_argument("--json", action="store_true", help="Print the run summary as JSON")
    return parser


def apply_overrides(settings: AutofixSettings, args: argparse.Namespace) -> AutofixSettings:
    update: dict[str, Any] = {}
    if args.mode:
        update["mode"] = args.mode
    if args.repo is not None:
        update["repo_path"] = args.repo.expanduser().resolve()
    if args.instructions is not None:
        update["instructions_path"] = args.instructions.expanduser().resolve()
    if args.guidelines is not None:
        update["guidelines_path"] = args.guidelines.expanduser().resolve()
    if args.limit is not None:
        if args.limit < 1:
            raise ValueError("--limit must be >= 1")
        mode = update.get("mode", settings.mode)
        update["guideline_file_limit" if mode == "guidelines" else "task_file_limit"] = args.limit
    if args.apply_responses:
        update["apply_responses"] = True
    if args.log_level:
        update["log_level"] = args.log_level.strip().upper()
    return settings.model_copy(update=update) if update else settings


def format_summary(summary: RunSummary) -> str:
    config = summary.config
    lines = [
        f"mode: {config.mode}",
        f"branch: {config.target_branch} (from {config.origin_branch})",
        f"files processed: {len(summary.succeeded)}, skipped: {len(summary.skipped)}",
    ]
    for outcome in summary.skipped:
        lines.append(f"  skipped {outcome.path}: {outcome.skipped_reason}")
    if not summary.committed:
        lines.append("no changes committed")
    elif summary.pr_created:
        lines.append(f"pull request: {summary.pr_output or 'created'}")
    else:
        lines.append(f"pull request not created: {summary.pr_error}")
    if not summary.restored:
        lines.append(f"warning: still on {config.target_branch}")
    return "\n".join(lines)


def run(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = apply_overrides(get_settings(), args)
    except ValueError as exc:
        parser.error(str(exc))
    configure_logging(settings.log_level)

    logger.info("Starting accessibility run", extra={"mode": settings.mode, "version": __version__})
    try:
        orchestrator = create_orchestrator(settings)
        summary = asyncio.run(orchestrator.run())
    except FatalStepError as exc:
        logger.error("Run aborted during %s: %s", exc.step, exc.message)
        return 1

    if args.json:
        print(json.dumps(summary.to_dict(), indent=2))
    else:
        print(format_summary(summary))
    return 0


def main(argv: list[str] | None = None) -> None:
    exit_code = run(argv)
    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
