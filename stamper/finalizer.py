"""Version-control finalisation of the generated project."""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Iterable
from pathlib import Path

from stamper.config import VcsMode
from stamper.errors import FinalizeError
from stamper.manifest.loader import VCS_METADATA_DIRS
from stamper.utils import CommandTimeoutError, console, print_warning, run_command


class Finalizer:
    """Applies the requested :class:`VcsMode` to a generated project."""

    def __init__(self, timeout: float = 60) -> None:
        self.timeout = timeout

    async def finalize(
        self,
        project_root: Path,
        checkout: Path,
        mode: VcsMode,
        written: Iterable[Path] = (),
    ) -> bool:
        """Strip, keep or recreate version-control history.

        Args:
            project_root: The generated project.
            checkout: Root of the fetched template checkout.
            mode: What to do with history.
            written: Files the render stage wrote; only these are candidates
                for metadata removal, so pre-existing user data is untouched.

        Returns:
            ``True`` if this call left a repository at *project_root*.

        Raises:
            FinalizeError: If history cannot be copied or ``git init`` fails.
        """
        await asyncio.to_thread(remove_vcs_metadata, project_root, written)

        if mode is VcsMode.GIT:
            return await self._keep_history(project_root, checkout)
        if mode is VcsMode.NONE:
            return False
        return await self._init_fresh(project_root)

    async def _keep_history(self, project_root: Path, checkout: Path) -> bool:
        source = checkout / ".git"
        if not source.is_dir():
            raise FinalizeError(
                "Cannot keep template history: the template is not a git checkout"
            )
        target = project_root / ".git"
        if target.exists():
            raise FinalizeError(f"Cannot keep template history: {target} already exists")
        try:
            await asyncio.to_thread(shutil.copytree, source, target, symlinks=True)
        except OSError as exc:
            raise FinalizeError(f"Cannot copy template history: {exc}") from exc
        console.print("[dim]Kept template git history[/dim]")
        return True

    async def _init_fresh(self, project_root: Path) -> bool:
        try:
            return await self._git_init(project_root)
        except CommandTimeoutError as exc:
            raise FinalizeError(str(exc)) from exc

    async def _git_init(self, project_root: Path) -> bool:
        returncode, stdout, _ = await run_command(
            ["git", "rev-parse", "--is-inside-work-tree"],
            cwd=project_root,
            timeout=self.timeout,
        )
        if returncode == 0 and stdout == "true":
            print_warning(
                "Project is inside an existing git repository; not initialising a new one"
            )
            return False

        returncode, _, stderr = await run_command(
            ["git", "init", "--quiet"], cwd=project_root, timeout=self.timeout
        )
        if returncode != 0:
            raise FinalizeError(f"git init failed: {stderr}")
        console.print("[dim]Initialised fresh git repository[/dim]")
        return True


def remove_vcs_metadata(project_root: Path, written: Iterable[Path]) -> list[Path]:
    """Delete written entries that landed inside VCS metadata directories.

    Returns the metadata roots that were removed.
    """
    roots: set[Path] = set()
    for path in written:
        try:
            rel = path.relative_to(project_root)
        except ValueError:
            continue
        for index, part in enumerate(rel.parts):
            if part in VCS_METADATA_DIRS:
                roots.add(project_root.joinpath(*rel.parts[: index + 1]))
                break

    removed: list[Path] = []
    for root in sorted(roots):
        if root.is_dir() and not root.is_symlink():
            shutil.rmtree(root)
        elif root.exists() or root.is_symlink():
            root.unlink()
        else:
            continue
        removed.append(root)
    return removed
