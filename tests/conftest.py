"""Shared pytest fixtures for the stamper test suite.

Provides reusable fixtures for:
- Template trees on disk (plain directories and real git repositories)
- Scripted prompters for interactive variable resolution
- Mock subprocess helpers
- A fixed clock for the ``generated_at`` built-in
"""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

from stamper.manifest.models import VariableSpec
from stamper.utils import console


# ---------------------------------------------------------------------------
# Template trees
# ---------------------------------------------------------------------------


def write_tree(root: Path, files: dict[str, str | bytes]) -> None:
    """Write ``{relative_path: content}`` below *root*.

    A path ending in ``/`` creates an empty directory.
    """
    for rel, content in files.items():
        target = root / rel
        if rel.endswith("/"):
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")


@pytest.fixture
def make_template(tmp_path: Path) -> Callable[..., Path]:
    """Factory that lays out a template directory.

    Usage:
        def test_render(make_template):
            root = make_template(
                {"README.md": "# {{ project_name }}\\n"},
                manifest={"variables": [{"name": "license", "default": "MIT"}]},
            )
    """
    counter = {"n": 0}

    def factory(
        files: dict[str, str | bytes] | None = None,
        manifest: dict[str, Any] | str | None = None,
        ignore_file: str | None = None,
    ) -> Path:
        counter["n"] += 1
        root = tmp_path / f"template-{counter['n']}"
        root.mkdir()
        write_tree(root, files or {})
        if manifest is not None:
            text = manifest if isinstance(manifest, str) else yaml.safe_dump(manifest)
            (root / "stamper.yaml").write_text(text, encoding="utf-8")
        if ignore_file is not None:
            (root / ".stamperignore").write_text(ignore_file, encoding="utf-8")
        return root

    return factory


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=repo, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


@pytest.fixture
def tmp_git_repo(tmp_path: Path) -> Path:
    """Template git repository with two commits and a ``v1`` tag.

    ``README.md`` reads ``v1`` at the tag and ``v2`` on the default branch,
    so tests can tell which revision was checked out.
    """
    repo_dir = tmp_path / "template-repo"
    repo_dir.mkdir()
    _git(repo_dir, "init", "--quiet")
    _git(repo_dir, "config", "user.email", "test@stamper.local")
    _git(repo_dir, "config", "user.name", "Stamper Test")
    _git(repo_dir, "config", "commit.gpgsign", "false")

    (repo_dir / "README.md").write_text("# {{ project_name }} v1\n", encoding="utf-8")
    _git(repo_dir, "add", ".")
    _git(repo_dir, "commit", "--quiet", "-m", "first")
    _git(repo_dir, "tag", "v1")

    (repo_dir / "README.md").write_text("# {{ project_name }} v2\n", encoding="utf-8")
    _git(repo_dir, "commit", "--quiet", "-am", "second")

    yield repo_dir


# ---------------------------------------------------------------------------
# Prompting
# ---------------------------------------------------------------------------


class ScriptedPrompter:
    """Prompter that replays canned answers and records what was asked."""

    def __init__(
        self,
        answers: dict[str, list[Any]] | None = None,
        project_names: list[str] | None = None,
    ) -> None:
        self.answers = {key: list(values) for key, values in (answers or {}).items()}
        self.project_names = list(project_names or [])
        self.asked: list[str] = []

    def ask_variable(self, variable: VariableSpec, default: Any) -> Any:
        self.asked.append(variable.name)
        queue = self.answers.get(variable.name)
        if not queue:
            return default
        return queue.pop(0)

    def ask_project_name(self) -> str:
        self.asked.append("project-name")
        return self.project_names.pop(0)


@pytest.fixture
def scripted_prompter() -> Callable[..., ScriptedPrompter]:
    """Factory for :class:`ScriptedPrompter` instances."""
    return ScriptedPrompter


@pytest.fixture
def fixed_now() -> Callable[[], datetime]:
    """Clock frozen at 2024-01-02T03:04:05Z."""
    moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    return lambda: moment


# ---------------------------------------------------------------------------
# Subprocess mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory


# ---------------------------------------------------------------------------
# Console state
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_console_quiet():
    """``--quiet`` flips the shared console; restore it after every test."""
    quiet = console.quiet
    yield
    console.quiet = quiet
