"""Render-context construction.

Resolves every manifest variable in precedence order (``--define`` values,
``STAMPER_VALUE_<NAME>`` environment values, interactive prompts, manifest
defaults) and layers the results over the built-in variables.  Resolution
finishes before anything is rendered.
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from stamper.errors import MissingVariableError, ValidationError
from stamper.manifest.models import (
    BoolVariable,
    ChoiceVariable,
    IntVariable,
    StringVariable,
    TemplateManifest,
    VariableSpec,
)
from stamper.utils import print_warning
from stamper.variables.builtins import BUILTIN_NAMES, compute_builtins
from stamper.variables.context import RenderContext
from stamper.variables.prompts import Prompter, RichPrompter

ENV_PREFIX = "STAMPER_VALUE_"
PROJECT_NAME_KEY = "project-name"

_TRUE_STRINGS = frozenset({"true", "yes", "y", "1", "on"})
_FALSE_STRINGS = frozenset({"false", "no", "n", "0", "off"})

# Marks a non-required variable left without a value.
_UNSET = object()


def env_key(name: str) -> str:
    """``STAMPER_VALUE_<NAME>`` key for a variable name."""
    return ENV_PREFIX + re.sub(r"[^A-Za-z0-9]", "_", name).upper()


def coerce_value(variable: VariableSpec, raw: Any) -> Any:
    """Convert *raw* to the variable's kind and validate it.

    Raises:
        ValidationError: If *raw* cannot be converted or fails validation.
    """
    name = variable.name

    if isinstance(variable, BoolVariable):
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValidationError(name, f"{raw!r} is not a boolean (use true/false)")

    if isinstance(variable, IntVariable):
        if isinstance(raw, bool):
            raise ValidationError(name, f"{raw!r} is not an integer")
        try:
            value = raw if isinstance(raw, int) else int(str(raw).strip(), 10)
        except ValueError:
            raise ValidationError(name, f"{raw!r} is not an integer") from None
        if variable.min is not None and value < variable.min:
            raise ValidationError(name, f"{value} is below the minimum {variable.min}")
        if variable.max is not None and value > variable.max:
            raise ValidationError(name, f"{value} is above the maximum {variable.max}")
        return value

    text = str(raw)
    if isinstance(variable, ChoiceVariable):
        if text not in variable.choices:
            raise ValidationError(name, f"{text!r} is not one of {', '.join(variable.choices)}")
        return text

    if variable.required and text == "":
        raise ValidationError(name, "a value is required")
    if isinstance(variable, StringVariable) and variable.regex is not None:
        if not re.fullmatch(variable.regex, text):
            raise ValidationError(name, f"{text!r} does not match {variable.regex!r}")
    return text


class VariableResolver:
    """Builds the :class:`RenderContext` for one run.

    Args:
        manifest: The validated template manifest.
        interactive: Whether prompting is allowed.  When ``False`` prompting
            is skipped entirely and invalid or missing values fail at once.
        prompter: Prompt implementation (defaults to :class:`RichPrompter`).
        environ: Environment used for ``STAMPER_VALUE_*`` lookups and
            author detection (defaults to ``os.environ``).
        now: Clock for the ``generated_at`` built-in.
    """

    def __init__(
        self,
        manifest: TemplateManifest,
        *,
        interactive: bool,
        prompter: Prompter | None = None,
        environ: Mapping[str, str] | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.manifest = manifest
        self.interactive = interactive
        self.prompter = prompter or RichPrompter()
        self.environ = os.environ if environ is None else environ
        self.now = now

    # -- Public API --------------------------------------------------------

    def resolve(
        self,
        defines: Mapping[str, str],
        project_name: str | None,
        *,
        is_init: bool = False,
    ) -> RenderContext:
        """Resolve every variable and return the final context.

        Raises:
            MissingVariableError: A required value is missing and prompting
                is not allowed.
            ValidationError: A value fails validation in non-interactive
                mode, or a define targets a built-in name.
        """
        for key in defines:
            if key in BUILTIN_NAMES:
                hint = " (use --name)" if key in ("project-name", "project_name") else ""
                raise ValidationError(key, f"built-in variables cannot be overridden{hint}")

        name = self.resolve_project_name(project_name)
        values: dict[str, Any] = compute_builtins(
            name, is_init=is_init, environ=self.environ, now=self.now
        )

        declared = set(self.manifest.variable_names)
        for key, raw in defines.items():
            if key not in declared:
                values[key] = raw

        for variable in self.manifest.variables:
            value = self._resolve_variable(variable, defines)
            if value is not _UNSET:
                values[variable.name] = value

        return RenderContext(values, builtin_names=BUILTIN_NAMES)

    def resolve_project_name(self, project_name: str | None) -> str:
        """Pick the canonical project name from --name, env or a prompt."""
        candidate = project_name
        if candidate is None:
            candidate = self.environ.get(env_key("project_name")) or None

        while True:
            if candidate is None:
                if not self.interactive:
                    raise MissingVariableError(PROJECT_NAME_KEY)
                candidate = self.prompter.ask_project_name()

            if _is_valid_project_name(candidate):
                return candidate.strip()

            error = ValidationError(
                PROJECT_NAME_KEY, f"{candidate!r} must contain at least one letter or digit"
            )
            if not self.interactive:
                raise error
            print_warning(str(error))
            candidate = None

    # -- Internals ---------------------------------------------------------

    def _resolve_variable(self, variable: VariableSpec, defines: Mapping[str, str]) -> Any:
        raw: Any = None
        if variable.name in defines:
            raw = defines[variable.name]
        elif env_key(variable.name) in self.environ:
            raw = self.environ[env_key(variable.name)]

        if raw is not None:
            try:
                return coerce_value(variable, raw)
            except ValidationError as exc:
                if not self.interactive:
                    raise
                print_warning(f"{exc}; please enter a new value")
                return self._prompt(variable)

        if self.interactive:
            return self._prompt(variable)

        if variable.default is not None:
            return coerce_value(variable, variable.default)
        if not variable.required:
            return False if isinstance(variable, BoolVariable) else _UNSET
        raise MissingVariableError(variable.name)

    def _prompt(self, variable: VariableSpec) -> Any:
        """Ask until the answer validates."""
        while True:
            answer = self.prompter.ask_variable(variable, variable.default)
            if answer is None or answer == "":
                if variable.default is not None:
                    answer = variable.default
                elif not variable.required:
                    return False if isinstance(variable, BoolVariable) else _UNSET
            try:
                return coerce_value(variable, answer if answer is not None else "")
            except ValidationError as exc:
                print_warning(str(exc))


def _is_valid_project_name(name: str) -> bool:
    return bool(re.search(r"[A-Za-z0-9]", name))
