from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from a11y_autofix.config import AutofixSettings
from a11y_autofix.fixer import FixerCli
from a11y_autofix.git import GitClient
from a11y_autofix.github import GitHubCli
from a11y_autofix.orchestrator import FatalStepError, Orchestrator, generate_branch_name
from a11y_autofix.prompts import TASK_TEMPLATES
from a11y_autofix.shell import CommandResult, CommandTimeoutError, FakeCommandRunner

TIMESTAMP = 1_700_000_000_000
TARGET = f"accessibility-improvements-{TIMESTAMP}"
HEAD_COMMIT = "9fceb02d0ae598e95dc970b74767f19372d61af8"


def ok(args: tuple[str, ...], stdout: str = "") -> CommandResult:
    return CommandResult(args=args, returncode=0, stdout=stdout, stderr="")


def fail(args: tuple[str, ...], stderr: str = "boom") -> CommandResult:
    return CommandResult(args=args, returncode=1, stdout="", stderr=stderr)


class StubRepo:
    """Simulates the git state the orchestrator observes."""

    def __init__(self, tracked: list[str], *, branch: str = "main") -> None:
        self.tracked = tracked
        self.branch = branch
        self.dirty: set[str] = set()
        self.commits: list[set[str]] = []
        self.failing: set[str] = set()

    def handle(self, args: tuple[str, ...], input_text: str | None) -> CommandResult:
        command = args[0]
        if command in self.failing:
            return fail(args, f"{command} failed")
        if args == ("rev-parse", "HEAD"):
            return ok(args, HEAD_COMMIT + "\n")
        if command == "rev-parse":
            return ok(args, ("HEAD" if self.branch == HEAD_COMMIT else self.branch) + "\n")
        if command == "checkout":
            self.branch = args[-1]
            return ok(args)
        if command == "ls-files":
            return ok(args, "".join(f"{name}\0" for name in self.tracked))
        if command == "status":
            return ok(args, "".join(f" M {name}\n" for name in sorted(self.dirty)))
        if command == "commit":
            self.commits.append(set(self.dirty))
            self.dirty.clear()
            return ok(args)
        return ok(args)


def build(
    tmp_path: Path,
    repo: StubRepo,
    *,
    fixer_handler=None,
    gh_handler=None,
    with_fixer: bool = True,
    with_github: bool = True,
    **overrides: Any,
) -> tuple[Orchestrator, FakeCommandRunner, FakeCommandRunner, FakeCommandRunner]:
    settings = AutofixSettings(repo_path=tmp_path, notes_dir=tmp_path / "notes", **overrides)

    def default_fixer(args, input_text):
        if args == ("--version",):
            return ok(args, "0.1.0\n")
        if "--file" in args:
            repo.dirty.add(args[args.index("--file") + 1])
        return ok(args)

    git_runner = FakeCommandRunner(program="git", handler=repo.handle)
    fixer_runner = FakeCommandRunner(program="gemini", handler=fixer_handler or default_fixer)
    gh_runner = FakeCommandRunner(
        program="gh",
        handler=gh_handler or (lambda args, _: ok(args, "https://github.com/acme/site/pull/7\n")),
    )
    orchestrator = Orchestrator(
        settings,
        git=GitClient(git_runner),
        fixer=FixerCli(fixer_runner) if with_fixer else None,
        github=GitHubCli(gh_runner) if with_github else None,
        clock=lambda: TIMESTAMP,
    )
    return orchestrator, git_runner, fixer_runner, gh_runner


def write_tasks(tmp_path: Path, tasks: list[dict[str, Any]]) -> None:
    (tmp_path / "accessibility-instructions.json").write_text(json.dumps(tasks), encoding="utf-8")


def touch(tmp_path: Path, *names: str) -> None:
    for name in names:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("<div><img src='a.png'></div>\n", encoding="utf-8")


def test_generate_branch_name_is_unique_per_millisecond() -> None:
    first = generate_branch_name("accessibility-improvements", 1000)
    second = generate_branch_name("accessibility-improvements", 1001)

    assert first == "accessibility-improvements-1000"
    assert first != second


def test_tasks_end_to_end(tmp_path: Path) -> None:
    touch(tmp_path, "a.tsx")
    write_tasks(tmp_path, [{"type": "add-alt-text", "description": "x"}])
    repo = StubRepo(["a.tsx", "README.md"])
    orchestrator, git, fixer, gh = build(tmp_path, repo)

    summary = asyncio.run(orchestrator.run())

    assert fixer.invocations == [
        ("--version",),
        (TASK_TEMPLATES["add-alt-text"], "--file", "a.tsx", "--apply"),
    ]
    assert ("checkout", "-b", TARGET) in git.invocations
    assert ("commit", "-m", "feat: automated accessibility improvements via Gemini CLI") in git.invocations
    assert ("push", "-u", "origin", TARGET) in git.invocations
    assert git.invocations[-1] == ("checkout", "main")
    assert repo.commits == [{"a.tsx"}]
    assert repo.branch == "main"

    assert summary.config.target_branch == TARGET
    assert summary.branch_created and summary.committed and summary.pushed
    assert summary.pr_created
    assert summary.pr_output == "https://github.com/acme/site/pull/7"
    assert summary.restored
    assert [outcome.path for outcome in summary.succeeded] == ["a.tsx"]

    pr_args = gh.invocations[0]
    assert pr_args[:4] == ("pr", "create", "--title", "Automated Accessibility Improvements (Gemini CLI)")
    assert pr_args[-2:] == ("--base", "main")
    body = pr_args[pr_args.index("--body") + 1]
    assert f"git diff main..{TARGET} --name-only" in body
    assert "`a.tsx`" in body


def test_explicit_prompt_and_files_override(tmp_path: Path) -> None:
    touch(tmp_path, "pages/index.html")
    write_tasks(
        tmp_path,
        [{"type": "custom", "description": "x", "prompt": "Label the nav.", "files": ["pages/index.html", "gone.vue"]}],
    )
    repo = StubRepo(["a.tsx"])
    orchestrator, git, fixer, _ = build(tmp_path, repo)

    summary = asyncio.run(orchestrator.run())

    assert fixer.invocations[1:] == [("Label the nav.", "--file", "pages/index.html", "--apply")]
    assert ("ls-files", "-z") not in git.invocations
    skipped = summary.skipped
    assert [(outcome.path, outcome.skipped_reason) for outcome in skipped] == [("gone.vue", "missing")]


def test_tasks_mode_limits_files_per_task(tmp_path: Path) -> None:
    names = [f"c{index:02d}.jsx" for index in range(12)]
    touch(tmp_path, *names)
    write_tasks(tmp_path, [{"type": "improve-focus", "description": "x"}])
    orchestrator, _, fixer, _ = build(tmp_path, StubRepo(names))

    asyncio.run(orchestrator.run())

    applied = [args[2] for args in fixer.invocations[1:]]
    assert applied == names[:10]


def test_tasks_mode_without_matching_files_still_creates_branch(tmp_path: Path) -> None:
    write_tasks(tmp_path, [{"type": "add-alt-text", "description": "x"}])
    repo = StubRepo(["README.md", "src/main.py"])
    orchestrator, git, fixer, gh = build(tmp_path, repo)

    summary = asyncio.run(orchestrator.run())

    assert fixer.invocations == [("--version",)]
    assert ("checkout", "-b", TARGET) in git.invocations
    assert summary.branch_created
    assert not summary.committed
    assert gh.invocations == []
    assert repo.branch == "main"


def test_no_diff_means_no_commit_push_or_pr(tmp_path: Path) -> None:
    touch(tmp_path, "a.tsx")
    write_tasks(tmp_path, [{"type": "add-alt-text", "description": "x"}])
    repo = StubRepo(["a.tsx"])

    def idle_fixer(args, input_text):
        return ok(args, "0.1.0" if args == ("--version",) else "")

    orchestrator, git, _, gh = build(tmp_path, repo, fixer_handler=idle_fixer)

    summary = asyncio.run(orchestrator.run())

    commands = [args[0] for args in git.invocations]
    assert "add" not in commands
    assert "commit" not in commands
    assert "push" not in commands
    assert gh.invocations == []
    assert summary.succeeded and not summary.committed
    assert summary.restored


def test_per_file_failures_are_skipped_and_run_continues(tmp_path: Path) -> None:
    touch(tmp_path, "a.tsx", "b.tsx", "c.tsx")
    write_tasks(tmp_path, [{"type": "add-alt-text", "description": "x"}])
    repo = StubRepo(["a.tsx", "b.tsx", "c.tsx"])

    def flaky_fixer(args, input_text):
        if args == ("--version",):
            return ok(args)
        target = args[args.index("--file") + 1]
        if target == "a.tsx":
            raise CommandTimeoutError(("gemini",) + args, 30)
        if target == "b.tsx":
            return fail(args, "quota exceeded")
        repo.dirty.add(target)
        return ok(args)

    orchestrator, _, _, _ = build(tmp_path, repo, fixer_handler=flaky_fixer)

    summary = asyncio.run(orchestrator.run())

    reasons = {outcome.path: outcome.skipped_reason for outcome in summary.outcomes}
    assert reasons == {"a.tsx": "timeout", "b.tsx": "tool-error", "c.tsx": None}
    assert summary.committed
    assert repo.commits == [{"c.tsx"}]


def test_missing_fixer_aborts_before_touching_git(tmp_path: Path) -> None:
    write_tasks(tmp_path, [{"type": "add-alt-text", "description": "x"}])
    orchestrator, git, _, _ = build(tmp_path, StubRepo(["a.tsx"]), with_fixer=False)

    with pytest.raises(FatalStepError) as excinfo:
        asyncio.run(orchestrator.run())

    assert excinfo.value.step == "preflight"
    assert "npm install -g @google/gemini-cli" in str(excinfo.value)
    assert git.invocations == []


def test_failing_version_check_is_fatal(tmp_path: Path) -> None:
    write_tasks(tmp_path, [{"type": "add-alt-text", "description": "x"}])
    orchestrator, _, _, _ = build(
        tmp_path, StubRepo(["a.tsx"]), fixer_handler=lambda args, _: fail(args, "not authenticated")
    )

    with pytest.raises(FatalStepError, match="not authenticated"):
        asyncio.run(orchestrator.run())


def test_missing_instructions_abort_before_branch_creation(tmp_path: Path) -> None:
    orchestrator, git, _, _ = build(tmp_path, StubRepo(["a.tsx"]))

    with pytest.raises(FatalStepError) as excinfo:
        asyncio.run(orchestrator.run())

    assert excinfo.value.step == "load"
    assert all(args[0] != "checkout" for args in git.invocations)


def test_branch_creation_failure_is_fatal(tmp_path: Path) -> None:
    write_tasks(tmp_path, [{"type": "add-alt-text", "description": "x"}])
    repo = StubRepo(["a.tsx"])
    repo.failing.add("checkout")
    orchestrator, _, fixer, _ = build(tmp_path, repo)

    with pytest.raises(FatalStepError) as excinfo:
        asyncio.run(orchestrator.run())

    assert excinfo.value.step == "branch"
    assert fixer.invocations == [("--version",)]


@pytest.mark.parametrize("failing, step", [("commit", "commit"), ("push", "push")])
def test_publish_failures_are_fatal_but_branch_is_restored(tmp_path: Path, failing: str, step: str) -> None:
    touch(tmp_path, "a.tsx")
    write_tasks(tmp_path, [{"type": "add-alt-text", "description": "x"}])
    repo = StubRepo(["a.tsx"])
    repo.failing.add(failing)
    orchestrator, git, _, gh = build(tmp_path, repo)

    with pytest.raises(FatalStepError) as excinfo:
        asyncio.run(orchestrator.run())

    assert excinfo.value.step == step
    assert git.invocations[-1] == ("checkout", "main")
    assert repo.branch == "main"
    assert gh.invocations == []


def test_unexpected_error_still_restores_branch(tmp_path: Path) -> None:
    touch(tmp_path, "a.tsx")
    write_tasks(tmp_path, [{"type": "add-alt-text", "description": "x"}])
    repo = StubRepo(["a.tsx"])

    def exploding_fixer(args, input_text):
        if args == ("--version",):
            return ok(args)
        raise KeyError("unexpected")

    orchestrator, git, _, _ = build(tmp_path, repo, fixer_handler=exploding_fixer)

    with pytest.raises(KeyError):
        asyncio.run(orchestrator.run())

    assert git.invocations[-1] == ("checkout", "main")
    assert repo.branch == "main"


def test_pr_failure_is_not_fatal(tmp_path: Path) -> None:
    touch(tmp_path, "a.tsx")
    write_tasks(tmp_path, [{"type": "add-alt-text", "description": "x"}])
    orchestrator, _, _, _ = build(
        tmp_path, StubRepo(["a.tsx"]), gh_handler=lambda args, _: fail(args, "gh: not logged in")
    )

    summary = asyncio.run(orchestrator.run())

    assert summary.pushed
    assert not summary.pr_created
    assert summary.pr_error == "gh: not logged in"
    assert summary.restored


def test_missing_github_cli_skips_pr(tmp_path: Path) -> None:
    touch(tmp_path, "a.tsx")
    write_tasks(tmp_path, [{"type": "add-alt-text", "description": "x"}])
    orchestrator, _, _, _ = build(tmp_path, StubRepo(["a.tsx"]), with_github=False)

    summary = asyncio.run(orchestrator.run())

    assert summary.pushed
    assert not summary.pr_created
    assert summary.pr_error == "GitHub CLI not found"


def test_restore_failure_is_logged_not_raised(tmp_path: Path) -> None:
    write_tasks(tmp_path, [{"type": "add-alt-text", "description": "x"}])
    repo = StubRepo(["README.md"])
    orchestrator, git, _, _ = build(tmp_path, repo)

    original_handle = repo.handle

    def handle(args, input_text):
        if args == ("checkout", "main"):
            return fail(args, "local changes would be overwritten")
        return original_handle(args, input_text)

    git._handler = handle  # type: ignore[attr-defined]

    summary = asyncio.run(orchestrator.run())

    assert not summary.restored


def test_detached_head_restores_commit_and_skips_pr(tmp_path: Path) -> None:
    touch(tmp_path, "a.tsx")
    write_tasks(tmp_path, [{"type": "add-alt-text", "description": "x"}])
    repo = StubRepo(["a.tsx"], branch=HEAD_COMMIT)
    orchestrator, git, _, gh = build(tmp_path, repo)

    summary = asyncio.run(orchestrator.run())

    assert summary.config.origin_branch == HEAD_COMMIT
    assert summary.config.origin_detached
    assert summary.committed and summary.pushed
    assert gh.invocations == []
    assert not summary.pr_created
    assert "detached HEAD" in summary.pr_error
    assert git.invocations[-1] == ("checkout", HEAD_COMMIT)
    assert repo.branch == HEAD_COMMIT
    assert summary.restored


# -- guidelines mode -----------------------------------------------------------


def write_guidelines(tmp_path: Path, text: str = "- Every image needs alt text.\n") -> None:
    (tmp_path / "accessibility-guidelines.md").write_text(text, encoding="utf-8")


def test_guidelines_without_matching_files_creates_nothing(tmp_path: Path) -> None:
    write_guidelines(tmp_path)
    orchestrator, git, fixer, gh = build(tmp_path, StubRepo(["README.md"]), mode="guidelines")

    summary = asyncio.run(orchestrator.run())

    assert all(args[0] not in {"checkout", "commit", "push"} for args in git.invocations)
    assert fixer.invocations == [("--version",)]
    assert gh.invocations == []
    assert not summary.branch_created
    assert not summary.committed


def capture_body(bodies: list[str]):
    def handler(args, input_text):
        bodies.append(Path(args[args.index("--body-file") + 1]).read_text(encoding="utf-8"))
        return ok(args, "https://github.com/acme/site/pull/8\n")

    return handler


def test_guidelines_prompts_every_file_on_stdin(tmp_path: Path) -> None:
    write_guidelines(tmp_path)
    names = [f"v{index:02d}.vue" for index in range(12)]
    touch(tmp_path, *names)
    repo = StubRepo(names)
    bodies: list[str] = []

    def yolo_fixer(args, input_text):
        if args == ("--yolo",):
            repo.dirty.add("v00.vue")
        return ok(args, "done")

    orchestrator, git, fixer, gh = build(
        tmp_path, repo, mode="guidelines", fixer_handler=yolo_fixer, gh_handler=capture_body(bodies)
    )

    summary = asyncio.run(orchestrator.run())

    assert fixer.invocations[1:] == [("--yolo",)] * 12
    first_prompt = fixer.inputs[1]
    assert "- Every image needs alt text." in first_prompt
    assert "File: v00.vue" in first_prompt
    assert "<img src='a.png'>" in first_prompt
    assert summary.committed and summary.pr_created
    assert git.invocations[-1] == ("checkout", "main")

    assert len(gh.invocations) == 1
    assert "No manual review notes were recorded" in bodies[0]
    assert list((tmp_path / "notes").iterdir()) == []
    # Response application is disabled by default, so the file is untouched.
    assert (tmp_path / "v00.vue").read_text(encoding="utf-8") == "<div><img src='a.png'></div>\n"


def test_guidelines_apply_responses_rewrites_file_and_collects_notes(tmp_path: Path) -> None:
    write_guidelines(tmp_path)
    touch(tmp_path, "a.html", "b.html")
    repo = StubRepo(["a.html", "b.html"])

    def responding_fixer(args, input_text):
        if args == ("--version",):
            return ok(args)
        if "File: a.html" in input_text:
            repo.dirty.add("a.html")
            return ok(
                args,
                "```html\n<div><img src='a.png' alt='Chart of sales'></div>\n```\n\n"
                "## Manual Review Notes\n- Check the chart description.\n",
            )
        return ok(args, "Sorry, no changes.")

    bodies: list[str] = []
    orchestrator, _, _, _ = build(
        tmp_path,
        repo,
        mode="guidelines",
        apply_responses=True,
        fixer_handler=responding_fixer,
        gh_handler=capture_body(bodies),
    )

    summary = asyncio.run(orchestrator.run())

    assert (tmp_path / "a.html").read_text(encoding="utf-8") == "<div><img src='a.png' alt='Chart of sales'></div>\n"
    reasons = {outcome.path: outcome.skipped_reason for outcome in summary.outcomes}
    assert reasons == {"a.html": None, "b.html": "unparseable-response"}
    assert "### `a.html`" in bodies[0]
    assert "- Check the chart description." in bodies[0]


def test_guidelines_file_limit(tmp_path: Path) -> None:
    write_guidelines(tmp_path)
    touch(tmp_path, "a.svelte", "b.svelte", "c.svelte")
    orchestrator, _, fixer, _ = build(
        tmp_path, StubRepo(["a.svelte", "b.svelte", "c.svelte"]), mode="guidelines", guideline_file_limit=2
    )

    summary = asyncio.run(orchestrator.run())

    assert len(fixer.invocations) == 3
    assert [outcome.path for outcome in summary.outcomes] == ["a.svelte", "b.svelte"]


def test_empty_guidelines_are_fatal(tmp_path: Path) -> None:
    write_guidelines(tmp_path, "\n")
    orchestrator, git, _, _ = build(tmp_path, StubRepo(["a.tsx"]), mode="guidelines")

    with pytest.raises(FatalStepError) as excinfo:
        asyncio.run(orchestrator.run())

    assert excinfo.value.step == "load"
    assert all(args[0] != "checkout" for args in git.invocations)


def test_prepare_run_uses_mode_specific_limits(tmp_path: Path) -> None:
    orchestrator, _, _, _ = build(tmp_path, StubRepo([]))

    tasks_config = orchestrator.prepare_run("tasks", "main")
    guideline_config = orchestrator.prepare_run("guidelines", "develop")

    assert (tasks_config.file_limit, tasks_config.timeout) == (10, 30.0)
    assert (guideline_config.file_limit, guideline_config.timeout) == (None, 90.0)
    assert guideline_config.origin_branch == "develop"
    assert guideline_config.target_branch == TARGET


def test_guidelines_unwritable_file_is_skipped(tmp_path: Path) -> None:
    write_guidelines(tmp_path)
    touch(tmp_path, "a.html", "b.html")
    repo = StubRepo(["a.html", "b.html"])
    response = "```html\n<main><img src='a.png' alt=''></main>\n```\n"

    def responding_fixer(args, input_text):
        if args == ("--version",):
            return ok(args)
        if "File: a.html" in input_text:
            # Swap the file for a directory so writing the fix back fails.
            (tmp_path / "a.html").unlink()
            (tmp_path / "a.html").mkdir()
        else:
            repo.dirty.add("b.html")
        return ok(args, response)

    orchestrator, _, _, gh = build(
        tmp_path, repo, mode="guidelines", apply_responses=True, fixer_handler=responding_fixer
    )

    summary = asyncio.run(orchestrator.run())

    reasons = {outcome.path: outcome.skipped_reason for outcome in summary.outcomes}
    assert reasons == {"a.html": "unwritable", "b.html": None}
    assert (tmp_path / "b.html").read_text(encoding="utf-8") == "<main><img src='a.png' alt=''></main>\n"
    assert summary.committed and summary.pr_created
    assert summary.restored


def test_guidelines_notes_removed_after_fatal_step(tmp_path: Path) -> None:
    write_guidelines(tmp_path)
    touch(tmp_path, "a.vue")
    repo = StubRepo(["a.vue"])
    repo.failing.add("push")

    def yolo_fixer(args, input_text):
        repo.dirty.add("a.vue")
        return ok(args)

    orchestrator, _, _, _ = build(tmp_path, repo, mode="guidelines", fixer_handler=yolo_fixer)

    with pytest.raises(FatalStepError):
        asyncio.run(orchestrator.run())

    assert list((tmp_path / "notes").iterdir()) == []
    assert repo.branch == "main"
