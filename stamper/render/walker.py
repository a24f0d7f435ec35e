"""Tree-walking render pipeline.

Walks the template deterministically, filters every entry exactly once,
renders destination paths and claims them, then fans the content work
(classify, render, write) out over a bounded pool of worker threads.  Path
collisions are detected while planning, before any content is written.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath

from stamper.config import RenderConfig
from stamper.errors import DestinationError, RenderError, RenderReason, WriteConflictError
from stamper.render.engine import TemplateRenderer
from stamper.render.matcher import FileClass, Matcher, classify_bytes
from stamper.utils import is_empty_dir
from stamper.variables.context import RenderContext


class EntryMode(str, Enum):
    """How a planned file is materialised."""

    AUTO = "auto"          # classify by content
    TEXT = "text"          # forced text
    BINARY = "binary"      # forced binary
    VERBATIM = "verbatim"  # matched by ``exclude``
    SYMLINK = "symlink"


@dataclass(frozen=True)
class RenderJob:
    """One file to materialise in the destination."""

    source: Path
    source_rel: PurePosixPath
    target_rel: PurePosixPath
    mode: EntryMode


@dataclass
class RenderPlan:
    directories: list[tuple[Path, PurePosixPath]]
    jobs: list[RenderJob]


class ClaimedPaths:
    """Thread-safe, insert-only registry of destination paths.

    Directories may be claimed by several source directories (their contents
    merge); any claim involving a file must be unique.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._claims: dict[PurePosixPath, tuple[PurePosixPath, bool]] = {}

    def claim(self, target: PurePosixPath, source: PurePosixPath, is_dir: bool) -> None:
        """Claim *target* for *source* or raise :class:`WriteConflictError`."""
        with self._lock:
            existing = self._claims.get(target)
            if existing is not None:
                existing_source, existing_is_dir = existing
                if not (is_dir and existing_is_dir):
                    raise WriteConflictError(target, str(existing_source), str(source))
                return
            self._claims[target] = (source, is_dir)

    def __contains__(self, target: object) -> bool:
        with self._lock:
            return target in self._claims

    def __len__(self) -> int:
        with self._lock:
            return len(self._claims)


def prepare_destination(project_dir: Path, force: bool) -> None:
    """Check the destination is usable and create it.

    Raises:
        DestinationError: If *project_dir* is a file, or a non-empty
            directory while *force* is not set.
    """
    if project_dir.exists():
        if not project_dir.is_dir():
            raise DestinationError(project_dir, "destination exists and is not a directory")
        if not force and not is_empty_dir(project_dir):
            raise DestinationError(
                project_dir, "destination is not empty (use --force to generate into it)"
            )
    try:
        project_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DestinationError(project_dir, f"cannot create destination: {exc}") from exc


class RenderPipeline:
    """Renders a template tree into a destination directory."""

    def __init__(
        self,
        renderer: TemplateRenderer,
        matcher: Matcher,
        config: RenderConfig | None = None,
    ) -> None:
        self.renderer = renderer
        self.matcher = matcher
        self.config = config or RenderConfig()

    # -- Planning ----------------------------------------------------------

    def plan(self, template_root: Path, context: RenderContext) -> RenderPlan:
        """Walk, filter and render destination paths; claim every target.

        Raises:
            RenderError: On path rendering failures or write conflicts.
        """
        claims = ClaimedPaths()
        plan = RenderPlan(directories=[], jobs=[])
        self._walk(template_root, PurePosixPath(), context, claims, plan)
        return plan

    def _walk(
        self,
        directory: Path,
        rel_dir: PurePosixPath,
        context: RenderContext,
        claims: ClaimedPaths,
        plan: RenderPlan,
    ) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as exc:
            raise RenderError(rel_dir, RenderReason.IO_ERROR, str(exc)) from exc

        for entry in entries:
            rel = rel_dir / entry.name
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError as exc:
                raise RenderError(rel, RenderReason.IO_ERROR, str(exc)) from exc
            if not self.matcher.is_included(rel, is_dir):
                continue

            target = self.renderer.render_path(rel, context)
            claims.claim(target, rel, is_dir)
            source = Path(entry.path)

            if is_dir:
                plan.directories.append((source, target))
                self._walk(source, rel, context, claims, plan)
            else:
                plan.jobs.append(RenderJob(source, rel, target, self._mode_for(rel, entry)))

    def _mode_for(self, rel: PurePosixPath, entry: os.DirEntry) -> EntryMode:
        if entry.is_symlink():
            return EntryMode.SYMLINK
        if self.matcher.is_verbatim(rel):
            return EntryMode.VERBATIM
        forced = self.matcher.forced_class(rel)
        if forced is FileClass.BINARY:
            return EntryMode.BINARY
        if forced is FileClass.TEXT:
            return EntryMode.TEXT
        return EntryMode.AUTO

    # -- Execution -----------------------------------------------------------

    async def render(
        self,
        template_root: Path,
        destination: Path,
        context: RenderContext,
        on_progress: Callable[[RenderJob], None] | None = None,
        on_plan: Callable[[RenderPlan], None] | None = None,
    ) -> list[Path]:
        """Render the whole template tree into *destination*.

        Args:
            template_root: Root of the fetched template.
            destination: Existing project directory to write into.
            context: Fully resolved render context.
            on_progress: Called after each file is written.
            on_plan: Called once planning succeeded, before any write.

        Returns:
            Every written file path, in plan order.

        Raises:
            RenderError: The first job failure.  Jobs not yet started are
                skipped and every worker has returned before this is raised,
                so nothing is written afterwards.
        """
        plan = self.plan(template_root, context)
        if on_plan is not None:
            on_plan(plan)

        for source, target_rel in plan.directories:
            target = destination / target_rel
            try:
                target.mkdir(parents=True, exist_ok=True)
                shutil.copymode(source, target)
            except OSError as exc:
                raise RenderError(target_rel, RenderReason.IO_ERROR, str(exc)) from exc

        values = context.as_dict()
        semaphore = asyncio.Semaphore(self.config.max_workers)
        abort = threading.Event()

        async def _run(job: RenderJob) -> Path | None:
            async with semaphore:
                if abort.is_set():
                    return None
                try:
                    written = await asyncio.to_thread(
                        self._process, job, destination, values, abort
                    )
                except BaseException:
                    abort.set()
                    raise
            if written is not None and on_progress is not None:
                on_progress(job)
            return written

        tasks = [asyncio.create_task(_run(job)) for job in plan.jobs]
        try:
            results = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            abort.set()
            raise

        for result in results:
            if isinstance(result, BaseException):
                raise result
        return [path for path in results if path is not None]

    def _process(
        self,
        job: RenderJob,
        destination: Path,
        values: dict,
        abort: threading.Event | None = None,
    ) -> Path | None:
        """Materialise one job; ``None`` if *abort* was set before writing."""
        target = destination / job.target_rel
        try:
            if abort is not None and abort.is_set():
                return None
            target.parent.mkdir(parents=True, exist_ok=True)
            if job.mode is EntryMode.SYMLINK:
                if target.is_symlink() or target.is_file():
                    target.unlink()
                os.symlink(os.readlink(job.source), target)
                return target

            data = job.source.read_bytes()
            text = self._as_text(job, data)
            if text is None:
                target.write_bytes(data)
            else:
                rendered = self.renderer.render_string(text, values, name=str(job.source_rel))
                if abort is not None and abort.is_set():
                    return None
                target.write_bytes(rendered.encode("utf-8"))
            shutil.copymode(job.source, target)
        except OSError as exc:
            raise RenderError(job.source_rel, RenderReason.IO_ERROR, str(exc)) from exc
        return target

    def _as_text(self, job: RenderJob, data: bytes) -> str | None:
        """Decoded content for text files, ``None`` for byte-for-byte copies."""
        if job.mode in (EntryMode.VERBATIM, EntryMode.BINARY):
            return None
        if job.mode is EntryMode.AUTO:
            if classify_bytes(data[: self.config.sample_size]) is FileClass.BINARY:
                return None
            try:
                return data.decode("utf-8")
            except UnicodeDecodeError:
                return None
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RenderError(
                job.source_rel, RenderReason.IO_ERROR, f"forced text file is not UTF-8: {exc}"
            ) from exc
