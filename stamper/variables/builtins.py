"""Built-in variables derived by the pipeline itself.

The project-name variants come from a fixed table of derivations applied
once to the canonical project name.  None of these names may be declared by
a manifest.
"""

from __future__ import annotations

import getpass
import os
import platform
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from stamper import casing

PROJECT_NAME_VARIANTS: dict[str, Callable[[str], str]] = {
    "project-name": casing.kebab_case,
    "project_name": casing.snake_case,
    "crate_name": casing.snake_case,
    "ProjectName": casing.pascal_case,
    "projectName": casing.lower_camel_case,
    "PROJECT_NAME": casing.shouty_snake_case,
    "PROJECT-NAME": casing.shouty_kebab_case,
    "project_title": casing.title_case,
}

ENVIRONMENT_BUILTINS = ("authors", "username", "os-arch", "os_arch", "is_init", "generated_at")

BUILTIN_NAMES: frozenset[str] = frozenset(PROJECT_NAME_VARIANTS) | frozenset(ENVIRONMENT_BUILTINS)


def project_name_variants(name: str) -> dict[str, str]:
    """Return every case variant of *name*, keyed by built-in name."""
    return {key: derive(name) for key, derive in PROJECT_NAME_VARIANTS.items()}


def get_username(environ: Mapping[str, str]) -> str:
    for key in ("USER", "USERNAME", "LOGNAME"):
        if environ.get(key):
            return environ[key]
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


def get_authors(environ: Mapping[str, str]) -> str:
    """Author string from the git author environment, falling back to the OS user."""
    name = environ.get("GIT_AUTHOR_NAME") or get_username(environ)
    email = environ.get("GIT_AUTHOR_EMAIL")
    if name and email:
        return f"{name} <{email}>"
    return name or ""


def get_os_arch() -> str:
    return f"{platform.system()}-{platform.machine()}".lower()


def compute_builtins(
    project_name: str,
    *,
    is_init: bool = False,
    environ: Mapping[str, str] | None = None,
    now: Callable[[], datetime] | None = None,
) -> dict[str, Any]:
    """Compute every built-in variable for *project_name*."""
    env = os.environ if environ is None else environ
    timestamp = (now or (lambda: datetime.now(timezone.utc)))()

    os_arch = get_os_arch()
    values: dict[str, Any] = project_name_variants(project_name)
    values.update(
        {
            "authors": get_authors(env),
            "username": get_username(env),
            "os-arch": os_arch,
            "os_arch": os_arch,
            "is_init": is_init,
            "generated_at": timestamp.isoformat(),
        }
    )
    return values
