"""Variable resolution: built-ins, overrides, prompts and the render context."""

from stamper.variables.builtins import BUILTIN_NAMES, compute_builtins, project_name_variants
from stamper.variables.context import RenderContext
from stamper.variables.prompts import Prompter, RichPrompter
from stamper.variables.resolver import VariableResolver, coerce_value, env_key

__all__ = [
    "BUILTIN_NAMES",
    "Prompter",
    "RenderContext",
    "RichPrompter",
    "VariableResolver",
    "coerce_value",
    "compute_builtins",
    "env_key",
    "project_name_variants",
]
