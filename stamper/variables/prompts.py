"""Interactive prompting for template variables using ``rich.prompt``."""

from __future__ import annotations

from typing import Any, Protocol

from rich.prompt import Confirm, IntPrompt, Prompt

from stamper.manifest.models import BoolVariable, ChoiceVariable, IntVariable, VariableSpec
from stamper.utils import console


class Prompter(Protocol):
    """Anything able to ask the user for variable values."""

    def ask_variable(self, variable: VariableSpec, default: Any) -> Any: ...

    def ask_project_name(self) -> str: ...


class RichPrompter:
    """Prompts on the terminal through the shared Rich console."""

    def ask_variable(self, variable: VariableSpec, default: Any) -> Any:
        text = f"[bold]{variable.prompt_text}[/bold]"
        if isinstance(variable, BoolVariable):
            return Confirm.ask(text, default=bool(default), console=console)
        if isinstance(variable, ChoiceVariable):
            if default is None:
                return Prompt.ask(text, choices=variable.choices, console=console)
            return Prompt.ask(text, choices=variable.choices, default=default, console=console)
        if isinstance(variable, IntVariable):
            if default is None:
                return IntPrompt.ask(text, console=console)
            return IntPrompt.ask(text, default=default, console=console)
        if default is None:
            return Prompt.ask(text, console=console)
        return Prompt.ask(text, default=default, console=console)

    def ask_project_name(self) -> str:
        return Prompt.ask("[bold]Project Name[/bold]", console=console)
