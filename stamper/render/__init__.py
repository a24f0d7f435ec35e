"""Rendering pipeline: Jinja2 engine, entry matching and the tree walker.

Quick usage::

    from stamper.render import Matcher, RenderPipeline, TemplateRenderer

    renderer = TemplateRenderer(trim_blocks=True, lstrip_blocks=True)
    matcher = Matcher(manifest, renderer, context, extra_ignores=ignores)
    written = await RenderPipeline(renderer, matcher).render(root, dest, context)
"""

from stamper.render.engine import TemplateRenderer
from stamper.render.matcher import FileClass, Matcher, classify_bytes, glob_match
from stamper.render.walker import (
    ClaimedPaths,
    EntryMode,
    RenderJob,
    RenderPipeline,
    RenderPlan,
    prepare_destination,
)

__all__ = [
    "ClaimedPaths",
    "EntryMode",
    "FileClass",
    "Matcher",
    "RenderJob",
    "RenderPipeline",
    "RenderPlan",
    "TemplateRenderer",
    "classify_bytes",
    "glob_match",
    "prepare_destination",
]
