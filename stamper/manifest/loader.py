"""Manifest and ignore-file loading.

Reads ``stamper.yaml`` (or ``stamper.yml``) from the template root, validates
it against :class:`TemplateManifest` and then runs every cross-field
consistency check before returning, so later stages can trust the manifest
without re-validating it.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, TemplateSyntaxError
from pydantic import ValidationError as PydanticValidationError

from stamper.errors import ManifestError, ManifestReason
from stamper.manifest.models import (
    ChoiceVariable,
    IntVariable,
    StringVariable,
    TemplateManifest,
)

MANIFEST_FILENAMES = ("stamper.yaml", "stamper.yml")
IGNORE_FILENAME = ".stamperignore"
VCS_METADATA_DIRS = (".git", ".hg", ".svn")


def default_ignores() -> list[str]:
    """Patterns that are always ignored, manifest or not."""
    return [*VCS_METADATA_DIRS, *MANIFEST_FILENAMES, IGNORE_FILENAME]


def find_manifest(template_root: Path) -> Path | None:
    for filename in MANIFEST_FILENAMES:
        candidate = template_root / filename
        if candidate.is_file():
            return candidate
    return None


def load_manifest(
    template_root: Path,
    reserved_names: Iterable[str] = (),
) -> TemplateManifest:
    """Load and validate the manifest found at *template_root*.

    A template without a manifest yields an empty :class:`TemplateManifest`.

    Args:
        template_root: Directory containing the template.
        reserved_names: Built-in variable names no manifest variable may use.

    Raises:
        ManifestError: On YAML errors, schema violations, duplicate or
            reserved variable names, or inconsistent variable specs.
    """
    path = find_manifest(template_root)
    if path is None:
        return TemplateManifest()

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ManifestError(ManifestReason.PARSE_ERROR, str(exc), path) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(ManifestReason.PARSE_ERROR, f"cannot read {path.name}: {exc}", path) from exc

    return parse_manifest(raw, reserved_names, path)


def parse_manifest(
    raw: Any,
    reserved_names: Iterable[str] = (),
    path: Path | None = None,
) -> TemplateManifest:
    """Validate an already-parsed manifest document."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ManifestError(
            ManifestReason.PARSE_ERROR,
            f"manifest must be a mapping, got {type(raw).__name__}",
            path,
        )

    _check_variable_names(raw.get("variables"), set(reserved_names), path)

    try:
        manifest = TemplateManifest.model_validate(_with_default_types(raw))
    except PydanticValidationError as exc:
        raise ManifestError(
            ManifestReason.SCHEMA_VIOLATION, _format_validation_error(exc), path
        ) from exc

    _check_consistency(manifest, path)
    return manifest


def load_ignore_file(template_root: Path) -> list[str]:
    """Read ``.stamperignore``: one glob per line, ``#`` comments skipped."""
    path = template_root / IGNORE_FILENAME
    if not path.is_file():
        return []
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(ManifestReason.PARSE_ERROR, f"cannot read {path.name}: {exc}", path) from exc

    patterns: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        patterns.append(stripped)
    return patterns


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _with_default_types(raw: dict[str, Any]) -> dict[str, Any]:
    """Variables without a ``type`` key are strings."""
    variables = raw.get("variables")
    if not isinstance(variables, list):
        return raw
    patched = [
        {"type": "string", **item} if isinstance(item, dict) and "type" not in item else item
        for item in variables
    ]
    return {**raw, "variables": patched}


def _check_variable_names(variables: Any, reserved: set[str], path: Path | None) -> None:
    """Name checks run before schema validation so they win over it."""
    if not isinstance(variables, list):
        return
    names = [
        item["name"]
        for item in variables
        if isinstance(item, dict) and isinstance(item.get("name"), str)
    ]

    collisions = sorted(set(names) & reserved)
    if collisions:
        raise ManifestError(
            ManifestReason.BUILTIN_NAME_COLLISION,
            f"variable name(s) {', '.join(collisions)} collide with built-in variables",
            path,
        )

    duplicates = sorted(name for name, count in Counter(names).items() if count > 1)
    if duplicates:
        raise ManifestError(
            ManifestReason.DUPLICATE_VARIABLE_NAME,
            f"variable(s) declared more than once: {', '.join(duplicates)}",
            path,
        )


def _check_consistency(manifest: TemplateManifest, path: Path | None) -> None:
    problems: list[str] = []

    for variable in manifest.variables:
        if isinstance(variable, StringVariable) and variable.regex is not None:
            try:
                pattern = re.compile(variable.regex)
            except re.error as exc:
                problems.append(f"{variable.name}: invalid regex {variable.regex!r} ({exc})")
                continue
            if variable.default is not None and not pattern.fullmatch(variable.default):
                problems.append(
                    f"{variable.name}: default {variable.default!r} does not match {variable.regex!r}"
                )
        elif isinstance(variable, ChoiceVariable):
            if len(set(variable.choices)) != len(variable.choices):
                problems.append(f"{variable.name}: choices must be unique")
            if variable.default is not None and variable.default not in variable.choices:
                problems.append(
                    f"{variable.name}: default {variable.default!r} is not one of {variable.choices}"
                )
        elif isinstance(variable, IntVariable):
            if variable.min is not None and variable.max is not None and variable.min > variable.max:
                problems.append(f"{variable.name}: min {variable.min} is greater than max {variable.max}")
            if variable.default is not None:
                if variable.min is not None and variable.default < variable.min:
                    problems.append(f"{variable.name}: default {variable.default} is below min {variable.min}")
                if variable.max is not None and variable.default > variable.max:
                    problems.append(f"{variable.name}: default {variable.default} is above max {variable.max}")

    env = Environment()
    for rule in manifest.conditional:
        try:
            env.compile_expression(rule.expression)
        except TemplateSyntaxError as exc:
            problems.append(f"conditional '{rule.pattern}': invalid expression ({exc.message})")

    for hook in manifest.hooks:
        if Path(hook.working_dir).is_absolute():
            problems.append(f"hook '{hook.display_name}': working_dir must be relative")
        for token in hook.command:
            try:
                env.parse(token)
            except TemplateSyntaxError as exc:
                problems.append(f"hook '{hook.display_name}': invalid template token {token!r} ({exc.message})")

    if problems:
        raise ManifestError(ManifestReason.SCHEMA_VIOLATION, "; ".join(problems), path)


def _format_validation_error(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)
