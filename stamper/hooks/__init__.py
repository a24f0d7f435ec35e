"""Post-generation hooks."""

from stamper.hooks.runner import HookRunner

__all__ = ["HookRunner"]
