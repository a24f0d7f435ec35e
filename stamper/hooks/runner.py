"""Post-generation hook execution.

Hooks run one at a time, in declared ``order``, inside the generated
project.  Command tokens are rendered with the same engine as file content.
The first failing hook stops the run; whatever earlier hooks did stays in
place.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from stamper.config import HookConfig
from stamper.errors import HookError, RenderError
from stamper.manifest.models import HookSpec
from stamper.render.engine import TemplateRenderer
from stamper.utils import CommandTimeoutError, console, is_within, print_warning, run_command


class HookRunner:
    """Runs manifest hooks against a generated project."""

    def __init__(self, renderer: TemplateRenderer, config: HookConfig | None = None) -> None:
        self.renderer = renderer
        self.config = config or HookConfig()

    def render_command(self, hook: HookSpec, context: Mapping[str, Any]) -> list[str]:
        """Render every command token of *hook*."""
        try:
            return [
                self.renderer.render_string(token, context, name=f"hook '{hook.display_name}'")
                for token in hook.command
            ]
        except RenderError as exc:
            raise HookError(hook.display_name, None, str(exc)) from exc

    def working_dir(self, hook: HookSpec, project_root: Path) -> Path:
        cwd = project_root / hook.working_dir
        if not is_within(cwd, project_root):
            raise HookError(
                hook.display_name, None, f"working_dir '{hook.working_dir}' escapes the project"
            )
        if not cwd.is_dir():
            raise HookError(
                hook.display_name, None, f"working_dir '{hook.working_dir}' does not exist"
            )
        return cwd

    async def run(
        self,
        hooks: Sequence[HookSpec],
        project_root: Path,
        context: Mapping[str, Any],
    ) -> list[str]:
        """Execute *hooks* sequentially and return the names that ran.

        Raises:
            HookError: On the first hook that cannot be rendered, times out
                or exits non-zero.  Later hooks are not run.
        """
        if not hooks:
            return []
        if not self.config.enabled:
            print_warning(f"Skipping {len(hooks)} hook(s) (hooks disabled)")
            return []

        completed: list[str] = []
        for hook in sorted(hooks, key=lambda item: item.order):
            command = self.render_command(hook, context)
            cwd = self.working_dir(hook, project_root)

            console.print(f"[cyan]Running hook[/cyan] [bold]{hook.display_name}[/bold]")
            try:
                returncode, stdout, stderr = await run_command(
                    command, cwd=cwd, timeout=self.config.timeout
                )
            except CommandTimeoutError as exc:
                raise HookError(hook.display_name, None, str(exc)) from exc

            if stdout:
                console.print(stdout, markup=False, highlight=False)
            if returncode < 0:
                raise HookError(
                    hook.display_name, returncode, stderr or f"killed by signal {-returncode}"
                )
            if returncode != 0:
                raise HookError(hook.display_name, returncode, stderr)

            completed.append(hook.display_name)

        return completed
