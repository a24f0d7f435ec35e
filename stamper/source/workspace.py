"""Transient workspace owned by a single pipeline run."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from types import TracebackType

from stamper.utils import console


class Workspace:
    """A temporary directory whose lifetime is tied to one run.

    Use as a context manager: the directory is removed on every exit path,
    including exceptions, ``KeyboardInterrupt`` and task cancellation, unless
    *keep* is set for debugging.
    """

    def __init__(self, keep: bool = False, prefix: str = "stamper-") -> None:
        self.keep = keep
        self.prefix = prefix
        self._path: Path | None = None

    @property
    def path(self) -> Path:
        if self._path is None:
            raise RuntimeError("Workspace is not open")
        return self._path

    def open(self) -> Path:
        self._path = Path(tempfile.mkdtemp(prefix=self.prefix))
        return self._path

    def cleanup(self) -> None:
        if self._path is None:
            return
        if self.keep:
            console.print(f"[dim]Workspace retained at {self._path}[/dim]")
        else:
            shutil.rmtree(self._path, ignore_errors=True)
        self._path = None

    def __enter__(self) -> "Workspace":
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cleanup()
