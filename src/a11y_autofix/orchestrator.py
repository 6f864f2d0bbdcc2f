"""Sequential pipeline that turns fix-tool output into a pull request."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Awaitable, Callable

from .config import AutofixSettings
from .fixer import INSTALL_HINT, FixerCli, ResponseParseError, parse_fix_response
from .git import GitClient
from .github import MANUAL_PR_HINT, GitHubCli
from .models import (
    SKIP_MISSING,
    SKIP_TIMEOUT,
    SKIP_TOOL_ERROR,
    SKIP_UNPARSEABLE,
    SKIP_UNREADABLE,
    SKIP_UNWRITABLE,
    FileOutcome,
    RunConfig,
    RunMode,
    RunSummary,
)
from .notes import PR_BODY_HEADER, PrNotes
from .prompts import build_guideline_prompt, build_task_prompt
from .selector import select_files
from .shell import CommandResult, CommandRunnerError, CommandTimeoutError
from .shell.runner import serialize_result
from .tasks import AccessibilityTask, TaskLoadError, load_guidelines, load_tasks

logger = logging.getLogger(__name__)


class FatalStepError(RuntimeError):
    """Raised when a step that aborts the whole run fails."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"{step}: {message}")
        self.step = step
        self.message = message


def generate_branch_name(prefix: str, timestamp_ms: int) -> str:
    return f"{prefix}-{timestamp_ms}"


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Orchestrator:
    """Runs one accessibility pass over a repository.

    The fix tool and GitHub CLI may be ``None`` when their executables could
    not be located; a missing fix tool fails pre-flight, a missing GitHub CLI
    only skips pull-request creation.
    """

    def __init__(
        self,
        settings: AutofixSettings,
        *,
        git: GitClient,
        fixer: FixerCli | None,
        github: GitHubCli | None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._settings = settings
        self._git = git
        self._fixer = fixer
        self._github = github
        self._clock = clock

    @property
    def settings(self) -> AutofixSettings:
        return self._settings

    async def run(self) -> RunSummary:
        fixer = await self._check_fixer()
        origin, detached = await self._current_branch()
        if self._settings.mode == "guidelines":
            return await self._run_guidelines(fixer, origin, detached)
        return await self._run_tasks(fixer, origin, detached)

    def prepare_run(self, mode: RunMode, origin_branch: str, *, detached: bool = False) -> RunConfig:
        started_at_ms = self._clock()
        if mode == "guidelines":
            file_limit = self._settings.guideline_file_limit
            timeout = self._settings.prompt_timeout
        else:
            file_limit = self._settings.task_file_limit
            timeout = self._settings.apply_timeout
        return RunConfig(
            mode=mode,
            origin_branch=origin_branch,
            target_branch=generate_branch_name(self._settings.branch_prefix, started_at_ms),
            started_at_ms=started_at_ms,
            file_limit=file_limit,
            timeout=timeout,
            extensions=tuple(self._settings.extensions),
            origin_detached=detached,
        )

    # -- modes ---------------------------------------------------------------

    async def _run_tasks(self, fixer: FixerCli, origin: str, detached: bool) -> RunSummary:
        tasks = self._load_tasks()
        logger.info("Loaded accessibility tasks", extra={"count": len(tasks)})

        config = self.prepare_run("tasks", origin, detached=detached)
        summary = RunSummary(config=config)
        # The branch is created before discovery, so a repository without
        # matching files still gets an empty branch.
        await self._create_branch(config)
        summary.branch_created = True
        try:
            for task in tasks:
                summary.outcomes.extend(await self._run_task(fixer, task, config))
            await self._publish(config, summary, body=self._task_pr_body(config, summary))
        finally:
            summary.restored = await self._restore(config)
        return summary

    async def _run_guidelines(self, fixer: FixerCli, origin: str, detached: bool) -> RunSummary:
        guidelines = self._load_guidelines()
        config = self.prepare_run("guidelines", origin, detached=detached)
        summary = RunSummary(config=config)

        files = await self._discover(config)
        if not files:
            logger.info("No matching files found; nothing to do")
            summary.restored = True
            return summary

        notes = PrNotes(self._settings.notes_dir / f"{config.target_branch}-pr-notes.md")
        await self._create_branch(config)
        summary.branch_created = True
        try:
            notes.reset()
            targets = files[: config.file_limit] if config.file_limit else files
            logger.info("Reviewing files against guidelines", extra={"count": len(targets)})
            for path in targets:
                summary.outcomes.append(await self._fix_with_guidelines(fixer, path, guidelines, config, notes))
            await self._publish(config, summary, notes=notes)
        finally:
            summary.restored = await self._restore(config)
            notes.discard()
        return summary

    # -- pre-flight ----------------------------------------------------------

    async def _check_fixer(self) -> FixerCli:
        if self._fixer is None:
            raise FatalStepError("preflight", f"Gemini CLI not found. {INSTALL_HINT}")
        try:
            result = await self._fixer.version()
        except (CommandRunnerError, OSError) as exc:
            raise FatalStepError("preflight", f"Gemini CLI unavailable: {exc}. {INSTALL_HINT}") from exc
        if not result.ok:
            raise FatalStepError("preflight", f"Gemini CLI unavailable: {result.error_text()}. {INSTALL_HINT}")
        logger.info("Gemini CLI available", extra={"version": result.stdout.strip()})
        return self._fixer

    async def _current_branch(self) -> tuple[str, bool]:
        """Return the ref to restore and whether HEAD is detached.

        ``rev-parse --abbrev-ref`` prints the literal ``HEAD`` on a detached
        HEAD, so the commit id is recorded instead.
        """

        try:
            branch = await self._git.current_branch()
            if branch != "HEAD":
                logger.info("Current branch: %s", branch)
                return branch, False
            commit = await self._git.head_commit()
        except (CommandRunnerError, OSError) as exc:
            raise FatalStepError(
                "branch", f"Failed to get current branch. Are you in a git repository? ({exc})"
            ) from exc
        logger.warning("HEAD is detached at %s; no pull request will be opened", commit)
        return commit, True

    def _resolve(self, path: Path) -> Path:
        return path if path.is_absolute() else self._settings.repo_path / path

    def _load_tasks(self) -> list[AccessibilityTask]:
        path = self._resolve(self._settings.instructions_path)
        try:
            return load_tasks(path)
        except TaskLoadError as exc:
            raise FatalStepError("load", str(exc)) from exc

    def _load_guidelines(self) -> str:
        path = self._resolve(self._settings.guidelines_path)
        try:
            return load_guidelines(path)
        except TaskLoadError as exc:
            raise FatalStepError("load", str(exc)) from exc

    # -- branches ------------------------------------------------------------

    async def _create_branch(self, config: RunConfig) -> None:
        logger.info("Creating new branch: %s", config.target_branch)
        try:
            await self._git.create_branch(config.target_branch)
        except (CommandRunnerError, OSError) as exc:
            raise FatalStepError("branch", f"Failed to create branch {config.target_branch}: {exc}") from exc

    async def _restore(self, config: RunConfig) -> bool:
        logger.info("Switching back to %s", config.origin_branch)
        try:
            await self._git.checkout(config.origin_branch)
        except (CommandRunnerError, OSError) as exc:
            logger.warning(
                "Could not switch back to original branch",
                extra={"branch": config.origin_branch, "error": str(exc)},
            )
            return False
        return True

    async def _discover(self, config: RunConfig) -> list[str]:
        try:
            return await select_files(self._git, config.extensions)
        except (CommandRunnerError, OSError) as exc:
            logger.error("Failed to list tracked files", extra={"error": str(exc)})
            return []

    # -- per-file fixes ------------------------------------------------------

    async def _run_task(self, fixer: FixerCli, task: AccessibilityTask, config: RunConfig) -> list[FileOutcome]:
        targets = task.files if task.files is not None else await self._discover(config)
        if not targets:
            logger.warning("No relevant files found for %s", task.type)
            return []

        logger.info("Running %s on %d files", task.type, len(targets))
        prompt = build_task_prompt(task)
        selected = targets[: config.file_limit] if config.file_limit else targets
        outcomes: list[FileOutcome] = []
        for path in selected:
            if not self._resolve(Path(path)).exists():
                outcomes.append(FileOutcome.skipped(path, SKIP_MISSING, task.type))
                continue
            logger.debug("Processing %s", path)
            outcome, _ = await self._invoke(fixer.apply(prompt, path, timeout=config.timeout), path, task.type)
            outcomes.append(outcome)
        return outcomes

    async def _fix_with_guidelines(
        self,
        fixer: FixerCli,
        path: str,
        guidelines: str,
        config: RunConfig,
        notes: PrNotes,
    ) -> FileOutcome:
        full_path = self._resolve(Path(path))
        try:
            content = full_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return FileOutcome.skipped(path, SKIP_MISSING)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipped %s (unreadable)", path, extra={"error": str(exc)})
            return FileOutcome.skipped(path, SKIP_UNREADABLE)

        prompt = build_guideline_prompt(guidelines, path, content)
        outcome, result = await self._invoke(fixer.ask(prompt, timeout=config.timeout), path, None)
        if result is None or not outcome.succeeded or not self._settings.apply_responses:
            return outcome

        try:
            parsed = parse_fix_response(result.stdout)
        except ResponseParseError:
            logger.warning("Skipped %s (unparseable response)", path)
            return FileOutcome.skipped(path, SKIP_UNPARSEABLE)
        try:
            full_path.write_text(parsed.code, encoding="utf-8")
        except OSError as exc:
            logger.warning("Skipped %s (unwritable)", path, extra={"error": str(exc)})
            return FileOutcome.skipped(path, SKIP_UNWRITABLE)
        notes.append(path, parsed.notes)
        return FileOutcome.ok(path, notes=parsed.notes or None)

    async def _invoke(
        self,
        call: Awaitable[CommandResult],
        path: str,
        task_type: str | None,
    ) -> tuple[FileOutcome, CommandResult | None]:
        try:
            result = await call
        except CommandTimeoutError:
            logger.warning("Skipped %s (timeout)", path)
            return FileOutcome.skipped(path, SKIP_TIMEOUT, task_type), None
        except (CommandRunnerError, OSError) as exc:
            logger.warning("Skipped %s (Gemini error)", path, extra={"error": str(exc)})
            return FileOutcome.skipped(path, SKIP_TOOL_ERROR, task_type), None
        if not result.ok:
            logger.warning("Skipped %s (Gemini error)", path, extra={"error": result.error_text()})
            logger.debug("Fix tool result: %s", serialize_result(result))
            return FileOutcome.skipped(path, SKIP_TOOL_ERROR, task_type), result
        logger.info("Processed %s", path)
        return FileOutcome.ok(path, task_type), result

    # -- publishing ----------------------------------------------------------

    async def _publish(
        self,
        config: RunConfig,
        summary: RunSummary,
        *,
        body: str | None = None,
        notes: PrNotes | None = None,
    ) -> None:
        summary.committed = await self._commit()
        if not summary.committed:
            logger.info("No accessibility improvements needed at this time")
            return
        await self._push(config)
        summary.pushed = True
        await self._open_pr(config, summary, body=body, notes=notes)
        logger.info("Accessibility improvements completed", extra={"branch": config.target_branch})

    async def _commit(self) -> bool:
        try:
            status = await self._git.status()
            if not status.strip():
                logger.info("No changes to commit")
                return False
            logger.info("Committing changes")
            await self._git.add_all()
            await self._git.commit(self._settings.commit_message)
        except (CommandRunnerError, OSError) as exc:
            raise FatalStepError("commit", f"Failed to commit changes: {exc}") from exc
        return True

    async def _push(self, config: RunConfig) -> None:
        logger.info("Pushing branch to remote", extra={"remote": self._settings.remote})
        try:
            await self._git.push(self._settings.remote, config.target_branch)
        except (CommandRunnerError, OSError) as exc:
            raise FatalStepError("push", f"Failed to push branch {config.target_branch}: {exc}") from exc

    async def _open_pr(
        self,
        config: RunConfig,
        summary: RunSummary,
        *,
        body: str | None,
        notes: PrNotes | None,
    ) -> None:
        if config.origin_detached:
            summary.pr_error = f"started from detached HEAD at {config.origin_branch}; no base branch"
            logger.warning("Skipping pull request: %s", summary.pr_error)
            logger.info(MANUAL_PR_HINT)
            return
        if self._github is None:
            summary.pr_error = "GitHub CLI not found"
            logger.error("Failed to create PR. Make sure GitHub CLI is installed and authenticated.")
            logger.info(MANUAL_PR_HINT)
            return

        logger.info("Creating pull request")
        try:
            if notes is not None:
                body_file = notes.write_body(guidelines_name=self._settings.guidelines_path.name)
                result = await self._github.create_pr(
                    title=self._settings.pr_title, base=config.origin_branch, body_file=body_file
                )
            else:
                result = await self._github.create_pr(
                    title=self._settings.pr_title, base=config.origin_branch, body=body or ""
                )
        except (CommandRunnerError, OSError) as exc:
            summary.pr_error = str(exc)
        else:
            if result.ok:
                summary.pr_created = True
                summary.pr_output = result.stdout.strip()
                logger.info("Pull request created", extra={"output": summary.pr_output})
                return
            summary.pr_error = result.error_text()

        logger.error(
            "Failed to create PR. Make sure GitHub CLI is installed and authenticated.",
            extra={"error": summary.pr_error},
        )
        logger.info(MANUAL_PR_HINT)

    def _task_pr_body(self, config: RunConfig, summary: RunSummary) -> str:
        processed = sorted({outcome.path for outcome in summary.succeeded})
        file_lines = "\n".join(f"- `{path}`" for path in processed) or "- (none)"
        return "\n".join(
            [
                PR_BODY_HEADER,
                "",
                "This PR contains accessibility improvements generated by the Gemini CLI.",
                "",
                "## Changes Made",
                "- Accessibility fixes applied to HTML/JSX/Vue/Svelte files",
                "- Generated via the Gemini CLI",
                f"- Based on instructions in `{self._settings.instructions_path.name}`",
                "",
                "## Files Processed",
                file_lines,
                "",
                "## Files Modified",
                f"Run `git diff {config.origin_branch}..{config.target_branch} --name-only` "
                "to see all changed files.",
                "",
                "Ready for review!",
            ]
        )


__all__ = ["FatalStepError", "Orchestrator", "generate_branch_name"]
