"""stamper configuration.

Centralised, typed configuration for the scaffolding pipeline.  Tuning knobs
live in :class:`Config` (validated Pydantic v2 models that can also be built
from environment variables); the per-invocation choices made on the command
line live in :class:`GenerateArgs`.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from stamper.errors import ConfigError


class VcsMode(str, Enum):
    """What to do with version-control history in the generated project."""

    NONE = "none"
    GIT = "git"
    FRESH = "fresh"


class FetchConfig(BaseModel):
    """Retry and timeout settings for the repository fetcher."""

    retries: int = Field(
        default=3, ge=0, description="Extra attempts after a transient network failure"
    )
    backoff: float = Field(
        default=1.0, ge=0, description="Base delay in seconds, doubled on every retry"
    )
    timeout: int = Field(default=300, ge=1, description="Per git command timeout in seconds")


class RenderConfig(BaseModel):
    """Settings for the rendering pipeline."""

    trim_blocks: bool = Field(default=True)
    lstrip_blocks: bool = Field(default=True)
    max_workers: int = Field(default=8, ge=1, description="Concurrent file renders")
    sample_size: int = Field(
        default=8192, ge=1, description="Bytes inspected when classifying binary files"
    )


class HookConfig(BaseModel):
    """Settings for post-generation hook execution."""

    enabled: bool = Field(default=True)
    timeout: int = Field(default=600, ge=1, description="Per hook timeout in seconds")


class Config(BaseModel):
    """Global stamper configuration.

    Instances are created once by the CLI entry point (usually through
    :meth:`from_env`) and passed to every pipeline stage.
    """

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    hooks: HookConfig = Field(default_factory=HookConfig)
    keep_workspace: bool = Field(
        default=False, description="Retain the transient workspace for debugging"
    )

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            STAMPER_FETCH_RETRIES, STAMPER_FETCH_BACKOFF, STAMPER_FETCH_TIMEOUT,
            STAMPER_RENDER_WORKERS, STAMPER_HOOK_TIMEOUT, STAMPER_KEEP_WORKSPACE.

        Raises:
            ConfigError: If a variable is not a number or is out of range.
        """
        try:
            return cls._from_env()
        except ValueError as exc:
            raise ConfigError(f"Invalid STAMPER_* environment setting: {exc}") from exc

    @classmethod
    def _from_env(cls) -> "Config":
        fetch_kwargs: dict[str, Any] = {}
        if os.environ.get("STAMPER_FETCH_RETRIES"):
            fetch_kwargs["retries"] = int(os.environ["STAMPER_FETCH_RETRIES"])
        if os.environ.get("STAMPER_FETCH_BACKOFF"):
            fetch_kwargs["backoff"] = float(os.environ["STAMPER_FETCH_BACKOFF"])
        if os.environ.get("STAMPER_FETCH_TIMEOUT"):
            fetch_kwargs["timeout"] = int(os.environ["STAMPER_FETCH_TIMEOUT"])

        render_kwargs: dict[str, Any] = {}
        if os.environ.get("STAMPER_RENDER_WORKERS"):
            render_kwargs["max_workers"] = int(os.environ["STAMPER_RENDER_WORKERS"])

        hook_kwargs: dict[str, Any] = {}
        if os.environ.get("STAMPER_HOOK_TIMEOUT"):
            hook_kwargs["timeout"] = int(os.environ["STAMPER_HOOK_TIMEOUT"])

        keep = os.environ.get("STAMPER_KEEP_WORKSPACE", "").strip().lower()

        return cls(
            fetch=FetchConfig(**fetch_kwargs),
            render=RenderConfig(**render_kwargs),
            hooks=HookConfig(**hook_kwargs),
            keep_workspace=keep in ("1", "true", "yes", "on"),
        )


class GenerateArgs(BaseModel):
    """Parsed command-line arguments for a single generation run."""

    locator: str | None = None
    git: str | None = None
    branch: str | None = None
    tag: str | None = None
    rev: str | None = None
    subfolder: str | None = None
    defines: dict[str, str] = Field(default_factory=dict)
    name: str | None = None
    destination: Path = Field(default_factory=Path.cwd)
    force: bool = False
    init: bool = False
    vcs: VcsMode = VcsMode.FRESH
    silent: bool = False
    run_hooks: bool = True
    keep_workspace: bool = False
    trim_blocks: bool | None = None
    lstrip_blocks: bool | None = None

    def apply_to(self, config: Config) -> Config:
        """Return a copy of *config* with per-invocation overrides applied."""
        render = config.render.model_copy(
            update={
                key: value
                for key, value in (
                    ("trim_blocks", self.trim_blocks),
                    ("lstrip_blocks", self.lstrip_blocks),
                )
                if value is not None
            }
        )
        hooks = config.hooks.model_copy(update={"enabled": config.hooks.enabled and self.run_hooks})
        return config.model_copy(
            update={
                "render": render,
                "hooks": hooks,
                "keep_workspace": config.keep_workspace or self.keep_workspace,
            }
        )


def parse_define(raw: str) -> tuple[str, str]:
    """Split a ``key=value`` define into its parts.

    Raises:
        ValueError: If *raw* has no ``=`` or an empty key.
    """
    key, sep, value = raw.partition("=")
    key = key.strip()
    if not sep or not key:
        raise ValueError(f"Expected key=value, got {raw!r}")
    return key, value
