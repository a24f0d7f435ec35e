"""Pydantic v2 models for the template manifest (``stamper.yaml``).

Variable specs are a tagged union discriminated by their ``type`` key, so a
manifest entry is one of :class:`StringVariable`, :class:`BoolVariable`,
:class:`ChoiceVariable` or :class:`IntVariable` from the moment it is
loaded.  Every model forbids unknown keys.
"""

from __future__ import annotations

import shlex
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _ManifestModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


# ---------------------------------------------------------------------------
# Variables
# ---------------------------------------------------------------------------


class _VariableBase(_ManifestModel):
    name: str = Field(..., min_length=1)
    prompt: str | None = None
    required: bool = True

    @property
    def prompt_text(self) -> str:
        return self.prompt or self.name


class StringVariable(_VariableBase):
    """Free-form text, optionally constrained by a regular expression."""

    type: Literal["string"] = "string"
    default: str | None = None
    regex: str | None = None


class BoolVariable(_VariableBase):
    """A yes/no flag."""

    type: Literal["bool"]
    default: bool | None = None


class ChoiceVariable(_VariableBase):
    """One value out of a fixed set of choices."""

    type: Literal["choice"]
    choices: list[str] = Field(..., min_length=1)
    default: str | None = None


class IntVariable(_VariableBase):
    """An integer, optionally bounded by ``min``/``max`` (inclusive)."""

    type: Literal["int"]
    default: int | None = None
    min: int | None = None
    max: int | None = None


VariableSpec = Annotated[
    Union[StringVariable, BoolVariable, ChoiceVariable, IntVariable],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Rules and hooks
# ---------------------------------------------------------------------------


class ConditionalRule(_ManifestModel):
    """Include entries matching ``pattern`` only when ``expression`` is truthy."""

    pattern: str = Field(..., min_length=1)
    expression: str = Field(..., min_length=1)


class ClassifyOverrides(_ManifestModel):
    """Globs forcing files into the text or binary class."""

    text: list[str] = Field(default_factory=list)
    binary: list[str] = Field(default_factory=list)


class HookSpec(_ManifestModel):
    """A command run in the generated project after rendering."""

    name: str | None = None
    command: list[str] = Field(..., min_length=1)
    working_dir: str = "."
    order: int = 0

    @field_validator("command", mode="before")
    @classmethod
    def _split_command(cls, value: Any) -> Any:
        if isinstance(value, str):
            return shlex.split(value)
        return value

    @property
    def display_name(self) -> str:
        return self.name or self.command[0]


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


class TemplateManifest(_ManifestModel):
    """Everything a template declares about itself."""

    variables: list[VariableSpec] = Field(default_factory=list)
    ignore: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    conditional: list[ConditionalRule] = Field(default_factory=list)
    classify: ClassifyOverrides = Field(default_factory=ClassifyOverrides)
    hooks: list[HookSpec] = Field(default_factory=list)

    @property
    def variable_names(self) -> list[str]:
        return [variable.name for variable in self.variables]

    def ordered_hooks(self) -> list[HookSpec]:
        """Hooks sorted by ``order``; ties keep declaration order."""
        return sorted(self.hooks, key=lambda hook: hook.order)
