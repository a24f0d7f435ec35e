"""Case conversion helpers.

Used both to derive the built-in project-name variants and as Jinja2
filters.  Every converter splits its input into words first, so they are
deterministic and agree with each other::

    split_words("myHTTPServer v2") -> ["my", "HTTP", "Server", "v2"]
    kebab_case("My Project")       -> "my-project"
    pascal_case("my_project")      -> "MyProject"
"""

from __future__ import annotations

import re
from collections.abc import Callable

_SEPARATOR_RE = re.compile(r"[^A-Za-z0-9]+")


def split_words(value: str) -> list[str]:
    """Split *value* on separators and case boundaries."""
    words: list[str] = []
    for chunk in _SEPARATOR_RE.split(value):
        if not chunk:
            continue
        s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", chunk)
        s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
        words.extend(part for part in s2.split("_") if part)
    return words


def kebab_case(value: str) -> str:
    return "-".join(word.lower() for word in split_words(value))


def snake_case(value: str) -> str:
    return "_".join(word.lower() for word in split_words(value))


def pascal_case(value: str) -> str:
    return "".join(word.capitalize() for word in split_words(value))


upper_camel_case = pascal_case


def lower_camel_case(value: str) -> str:
    pascal = pascal_case(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""


def shouty_snake_case(value: str) -> str:
    return "_".join(word.upper() for word in split_words(value))


def shouty_kebab_case(value: str) -> str:
    return "-".join(word.upper() for word in split_words(value))


def title_case(value: str) -> str:
    return " ".join(word.capitalize() for word in split_words(value))


CASE_FILTERS: dict[str, Callable[[str], str]] = {
    "kebab_case": kebab_case,
    "snake_case": snake_case,
    "pascal_case": pascal_case,
    "upper_camel_case": upper_camel_case,
    "lower_camel_case": lower_camel_case,
    "shouty_snake_case": shouty_snake_case,
    "shouty_kebab_case": shouty_kebab_case,
    "title_case": title_case,
}
