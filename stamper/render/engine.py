"""Jinja2 rendering for template files, paths, hook tokens and expressions.

Provides the :class:`TemplateRenderer` class, a thin wrapper around a Jinja2
``Environment`` configured for scaffolding: undefined variables are errors,
trailing newlines are kept and block whitespace control (``trim_blocks`` and
``lstrip_blocks``) is on unless turned off for the invocation.  Every Jinja2
failure is translated into a :class:`~stamper.errors.RenderError` naming the
path or token that failed.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import PurePosixPath
from typing import Any

from jinja2 import (
    Environment,
    StrictUndefined,
    TemplateError,
    TemplateSyntaxError,
    UndefinedError,
)

from stamper.casing import CASE_FILTERS
from stamper.errors import RenderError, RenderReason

_TEMPLATE_MARKERS = ("{{", "{%", "{#")


class TemplateRenderer:
    """Renders template text against a render context."""

    def __init__(self, *, trim_blocks: bool = True, lstrip_blocks: bool = True) -> None:
        self.env = Environment(
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=trim_blocks,
            lstrip_blocks=lstrip_blocks,
            undefined=StrictUndefined,
        )
        for name, func in CASE_FILTERS.items():
            self.env.filters[name] = func
        self._crlf_env = self.env.overlay(newline_sequence="\r\n")

    # -- Text ----------------------------------------------------------------

    def render_string(
        self,
        template_string: str,
        context: Mapping[str, Any],
        *,
        name: str = "<string>",
    ) -> str:
        """Render *template_string*; *name* identifies it in errors.

        Text containing CRLF line endings is rendered with CRLF output.

        Raises:
            RenderError: ``SyntaxError`` for malformed templates and
                ``UndefinedVariable`` for references to unknown names.
        """
        try:
            env = self._crlf_env if "\r\n" in template_string else self.env
            template = env.from_string(template_string)
            return template.render(dict(context))
        except TemplateSyntaxError as exc:
            raise RenderError(
                name, RenderReason.SYNTAX_ERROR, f"line {exc.lineno}: {exc.message}"
            ) from exc
        except UndefinedError as exc:
            raise RenderError(name, RenderReason.UNDEFINED_VARIABLE, exc.message or "") from exc
        except TemplateError as exc:
            raise RenderError(name, RenderReason.SYNTAX_ERROR, str(exc)) from exc

    # -- Paths -----------------------------------------------------------------

    def render_path(self, rel_path: PurePosixPath, context: Mapping[str, Any]) -> PurePosixPath:
        """Render each component of a relative path.

        Raises:
            RenderError: ``InvalidPath`` when a component renders to an empty
                string, has leading or trailing whitespace,
                is ``.``/``..``, or introduces a path separator.
        """
        parts: list[str] = []
        for part in rel_path.parts:
            if not any(marker in part for marker in _TEMPLATE_MARKERS):
                parts.append(part)
                continue
            rendered = self.render_string(part, context, name=str(rel_path))
            if (
                rendered in ("", ".", "..")
                or rendered != rendered.strip()
                or "/" in rendered
                or "\\" in rendered
            ):
                raise RenderError(
                    rel_path,
                    RenderReason.INVALID_PATH,
                    f"component {part!r} rendered to {rendered!r}",
                )
            parts.append(rendered)
        return PurePosixPath(*parts)

    # -- Expressions -----------------------------------------------------------

    def evaluate(self, expression: str, context: Mapping[str, Any], *, name: str) -> bool:
        """Evaluate a Jinja2 expression for truthiness."""
        try:
            compiled = self.env.compile_expression(expression, undefined_to_none=False)
            return bool(compiled(**dict(context)))
        except TemplateSyntaxError as exc:
            raise RenderError(name, RenderReason.SYNTAX_ERROR, exc.message or str(exc)) from exc
        except UndefinedError as exc:
            raise RenderError(name, RenderReason.UNDEFINED_VARIABLE, exc.message or "") from exc
        except TemplateError as exc:
            raise RenderError(name, RenderReason.SYNTAX_ERROR, str(exc)) from exc
