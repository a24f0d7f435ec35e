"""The immutable name-to-value mapping every template is rendered with."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any


class RenderContext(Mapping[str, Any]):
    """Read-only render context.

    Remembers which keys are built-ins so reports can tell them apart from
    template variables.
    """

    def __init__(self, values: Mapping[str, Any], builtin_names: Iterable[str] = ()) -> None:
        self._values = dict(values)
        self._builtin_names = frozenset(name for name in builtin_names if name in self._values)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"RenderContext({self._values!r})"

    def template_values(self) -> dict[str, Any]:
        """Values that did not come from the built-in set."""
        return {key: value for key, value in self._values.items() if key not in self._builtin_names}

    def as_dict(self) -> dict[str, Any]:
        """A fresh mutable copy, safe to hand to the template engine."""
        return dict(self._values)
