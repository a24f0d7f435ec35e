"""Unit tests for post-generation hooks (stamper.hooks.runner)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from stamper.config import HookConfig
from stamper.errors import EXIT_HOOK, HookError
from stamper.hooks import HookRunner
from stamper.manifest import HookSpec
from stamper.render.engine import TemplateRenderer
from stamper.utils import CommandTimeoutError

CONTEXT = {"project_name": "demo"}


def _runner(**config) -> HookRunner:
    return HookRunner(TemplateRenderer(), HookConfig(**config))


class TestRenderCommand:
    @pytest.mark.unit
    def test_tokens_rendered(self):
        hook = HookSpec(command="echo '{{ project_name | pascal_case }} app'")
        assert _runner().render_command(hook, CONTEXT) == ["echo", "Demo app"]

    @pytest.mark.unit
    def test_undefined_variable(self):
        hook = HookSpec(name="broken", command=["echo", "{{ nope }}"])
        with pytest.raises(HookError) as exc_info:
            _runner().render_command(hook, CONTEXT)
        assert exc_info.value.hook_name == "broken"
        assert exc_info.value.exit_code is None


class TestWorkingDir:
    @pytest.mark.unit
    def test_relative_directory(self, tmp_path: Path):
        (tmp_path / "sub").mkdir()
        hook = HookSpec(command=["ls"], working_dir="sub")
        assert _runner().working_dir(hook, tmp_path) == tmp_path / "sub"

    @pytest.mark.unit
    def test_escape_rejected(self, tmp_path: Path):
        project = tmp_path / "project"
        project.mkdir()
        hook = HookSpec(command=["ls"], working_dir="..")
        with pytest.raises(HookError, match="escapes"):
            _runner().working_dir(hook, project)

    @pytest.mark.unit
    def test_missing_directory(self, tmp_path: Path):
        hook = HookSpec(command=["ls"], working_dir="nowhere")
        with pytest.raises(HookError, match="does not exist"):
            _runner().working_dir(hook, tmp_path)


class TestRun:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_hooks(self, tmp_path: Path):
        assert await _runner().run([], tmp_path, CONTEXT) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sequential_in_order(self, tmp_path: Path):
        hooks = [
            HookSpec(name="second", command=["b"], order=2),
            HookSpec(name="first", command=["a", "{{ project_name }}"], order=1),
        ]
        run_command = AsyncMock(return_value=(0, "", ""))
        with patch("stamper.hooks.runner.run_command", run_command):
            completed = await _runner(timeout=42).run(hooks, tmp_path, CONTEXT)
        assert completed == ["first", "second"]
        first_call = run_command.await_args_list[0]
        assert first_call.args[0] == ["a", "demo"]
        assert first_call.kwargs == {"cwd": tmp_path, "timeout": 42}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failure_stops_later_hooks(self, tmp_path: Path):
        hooks = [
            HookSpec(name="ok", command=["a"]),
            HookSpec(name="bad", command=["b"]),
            HookSpec(name="never", command=["c"]),
        ]
        run_command = AsyncMock(side_effect=[(0, "", ""), (3, "", "exploded")])
        with patch("stamper.hooks.runner.run_command", run_command):
            with pytest.raises(HookError) as exc_info:
                await _runner().run(hooks, tmp_path, CONTEXT)
        assert exc_info.value.hook_name == "bad"
        assert exc_info.value.exit_code == 3
        assert exc_info.value.exit_status == EXIT_HOOK
        assert "exploded" in str(exc_info.value)
        assert run_command.await_count == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout(self, tmp_path: Path):
        run_command = AsyncMock(side_effect=CommandTimeoutError(["sleep", "5"], 1))
        with patch("stamper.hooks.runner.run_command", run_command):
            with pytest.raises(HookError) as exc_info:
                await _runner(timeout=1).run(
                    [HookSpec(command=["sleep", "5"])], tmp_path, CONTEXT
                )
        assert exc_info.value.exit_code is None
        assert "timed out" in str(exc_info.value)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_killed_by_signal_is_not_a_timeout(self, tmp_path: Path):
        run_command = AsyncMock(return_value=(-1, "", ""))
        with patch("stamper.hooks.runner.run_command", run_command):
            with pytest.raises(HookError) as exc_info:
                await _runner().run([HookSpec(name="serve", command=["serve"])], tmp_path, CONTEXT)
        assert exc_info.value.exit_code == -1
        assert "killed by signal 1" in str(exc_info.value)
        assert "timed out" not in str(exc_info.value)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_disabled(self, tmp_path: Path):
        run_command = AsyncMock()
        with patch("stamper.hooks.runner.run_command", run_command):
            completed = await _runner(enabled=False).run(
                [HookSpec(command=["a"])], tmp_path, CONTEXT
            )
        assert completed == []
        run_command.assert_not_awaited()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_real_command_runs_in_project(self, tmp_path: Path):
        hooks = [HookSpec(name="touch", command=["touch", "{{ project_name }}.marker"])]
        assert await _runner().run(hooks, tmp_path, CONTEXT) == ["touch"]
        assert (tmp_path / "demo.marker").exists()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path: Path):
        hooks = [HookSpec(command=["stamper-no-such-program-xyz"])]
        with pytest.raises(HookError) as exc_info:
            await _runner().run(hooks, tmp_path, CONTEXT)
        assert exc_info.value.exit_code == 127
