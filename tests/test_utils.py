"""Unit tests for utility functions (stamper.utils).

Tests cover:
- run_command (success, failure, cwd, missing executable, timeout, signals)
- is_empty_dir / is_within
- format_duration
- Rich output helpers (print_stage, print_summary_table, etc.)
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from stamper.utils import (
    CommandTimeoutError,
    console,
    create_progress,
    format_duration,
    is_empty_dir,
    is_within,
    print_error,
    print_stage,
    print_success,
    print_summary_table,
    print_warning,
    run_command,
)


# ---------------------------------------------------------------------------
# run_command
# ---------------------------------------------------------------------------


class TestRunCommand:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_successful_command(self):
        returncode, stdout, stderr = await run_command(["echo", "hello"])
        assert returncode == 0
        assert stdout == "hello"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_command(self):
        returncode, _, _ = await run_command([sys.executable, "-c", "import sys; sys.exit(3)"])
        assert returncode == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_command_with_cwd(self, tmp_path: Path):
        returncode, stdout, _ = await run_command(["pwd"], cwd=tmp_path)
        assert returncode == 0
        assert Path(stdout).resolve() == tmp_path.resolve()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_executable(self):
        returncode, _, stderr = await run_command(["stamper-no-such-program-xyz"])
        assert returncode == 127
        assert "not found" in stderr

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(CommandTimeoutError) as exc_info:
            await run_command(
                [sys.executable, "-c", "import time; time.sleep(10)"], timeout=0.2
            )
        assert exc_info.value.timeout == 0.2
        assert "timed out" in str(exc_info.value)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_killed_by_signal(self):
        returncode, _, _ = await run_command(
            [sys.executable, "-c", "import os, signal; os.kill(os.getpid(), signal.SIGHUP)"]
        )
        assert returncode == -1


# ---------------------------------------------------------------------------
# File-system helpers
# ---------------------------------------------------------------------------


class TestFileSystemHelpers:
    @pytest.mark.unit
    def test_is_empty_dir(self, tmp_path: Path):
        assert is_empty_dir(tmp_path)
        (tmp_path / "x").write_text("x", encoding="utf-8")
        assert not is_empty_dir(tmp_path)
        assert not is_empty_dir(tmp_path / "x")
        assert not is_empty_dir(tmp_path / "missing")

    @pytest.mark.unit
    def test_is_within(self, tmp_path: Path):
        assert is_within(tmp_path, tmp_path)
        assert is_within(tmp_path / "a" / "b", tmp_path)
        assert not is_within(tmp_path / "..", tmp_path)
        assert not is_within(tmp_path / "a" / ".." / "..", tmp_path)


# ---------------------------------------------------------------------------
# format_duration
# ---------------------------------------------------------------------------


class TestFormatDuration:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [(0, "0.0s"), (3.7, "3.7s"), (65.2, "1m 5s"), (-1, "0.0s"), (120, "2m 0s")],
    )
    def test_format(self, seconds, expected):
        assert format_duration(seconds) == expected


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


class TestRichOutputHelpers:
    @pytest.mark.unit
    def test_messages_are_escaped(self):
        with console.capture() as capture:
            print_success("done [bold]")
            print_warning("careful")
            print_error("failed")
            print_stage("Rendering")
        output = capture.get()
        assert "done [bold]" in output
        assert "careful" in output
        assert "failed" in output
        assert "Rendering" in output

    @pytest.mark.unit
    def test_print_summary_table(self):
        with console.capture() as capture:
            print_summary_table({"Files": "3", "Hooks": "none"}, title="Generated")
        output = capture.get()
        assert "Generated" in output
        assert "Files" in output

    @pytest.mark.unit
    def test_create_progress(self):
        progress = create_progress()
        assert progress is not None
        with progress:
            task = progress.add_task("x", total=2)
            progress.advance(task)
