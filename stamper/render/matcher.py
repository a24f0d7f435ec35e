"""Decides what happens to each template entry.

Combines the default ignores, manifest ``ignore``/``exclude``/``classify``
globs, ``.stamperignore`` patterns and ``conditional`` rules.

Glob semantics: a pattern without ``/`` matches the entry's name at any
depth; a pattern containing ``/`` (a leading ``/`` anchors it) matches the
whole relative POSIX path, with ``*`` also spanning ``/``; ``dir/**`` also
matches ``dir`` itself; a trailing ``/`` restricts a pattern to directories.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from fnmatch import fnmatchcase
from pathlib import PurePosixPath
from typing import Any

from stamper.manifest.loader import default_ignores
from stamper.manifest.models import TemplateManifest
from stamper.render.engine import TemplateRenderer


class FileClass(str, Enum):
    TEXT = "text"
    BINARY = "binary"


def glob_match(pattern: str, rel_path: PurePosixPath | str, is_dir: bool = False) -> bool:
    """Return ``True`` if *pattern* matches the relative path."""
    path = str(rel_path)
    dir_only = pattern.endswith("/")
    pat = pattern.rstrip("/")
    if not pat or (dir_only and not is_dir):
        return False

    anchored = pat.startswith("/")
    pat = pat.lstrip("/")

    if anchored or "/" in pat:
        if fnmatchcase(path, pat):
            return True
        return pat.endswith("/**") and fnmatchcase(path, pat[: -len("/**")])
    return fnmatchcase(PurePosixPath(path).name, pat)


def _any_match(patterns: Iterable[str], rel_path: PurePosixPath, is_dir: bool) -> bool:
    return any(glob_match(pattern, rel_path, is_dir) for pattern in patterns)


class Matcher:
    """Filtering and classification decisions for one run."""

    def __init__(
        self,
        manifest: TemplateManifest,
        renderer: TemplateRenderer,
        context: Mapping[str, Any],
        extra_ignores: Iterable[str] = (),
    ) -> None:
        self.manifest = manifest
        self.renderer = renderer
        self.context = context
        self.ignore_patterns = [*default_ignores(), *manifest.ignore, *extra_ignores]
        self._rule_results: dict[int, bool] = {}

    def is_included(self, rel_path: PurePosixPath, is_dir: bool) -> bool:
        """Whether an entry survives conditional rules and ignore patterns."""
        return self.conditional_allows(rel_path, is_dir) and not self.is_ignored(rel_path, is_dir)

    def conditional_allows(self, rel_path: PurePosixPath, is_dir: bool) -> bool:
        """The last-declared matching conditional rule decides; no match allows."""
        for index in range(len(self.manifest.conditional) - 1, -1, -1):
            rule = self.manifest.conditional[index]
            if glob_match(rule.pattern, rel_path, is_dir):
                return self._evaluate(index)
        return True

    def is_ignored(self, rel_path: PurePosixPath, is_dir: bool) -> bool:
        return _any_match(self.ignore_patterns, rel_path, is_dir)

    def is_verbatim(self, rel_path: PurePosixPath) -> bool:
        """Files matching ``exclude`` are copied without rendering their content."""
        return _any_match(self.manifest.exclude, rel_path, False)

    def forced_class(self, rel_path: PurePosixPath) -> FileClass | None:
        if _any_match(self.manifest.classify.binary, rel_path, False):
            return FileClass.BINARY
        if _any_match(self.manifest.classify.text, rel_path, False):
            return FileClass.TEXT
        return None

    def _evaluate(self, index: int) -> bool:
        # The context is fixed for the run, so each rule is evaluated once.
        if index not in self._rule_results:
            rule = self.manifest.conditional[index]
            self._rule_results[index] = self.renderer.evaluate(
                rule.expression, self.context, name=f"conditional '{rule.pattern}'"
            )
        return self._rule_results[index]


def classify_bytes(sample: bytes) -> FileClass:
    """Binary when the sample contains a null byte."""
    return FileClass.BINARY if b"\x00" in sample else FileClass.TEXT
