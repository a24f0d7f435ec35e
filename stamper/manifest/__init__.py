"""Template manifest: variables, ignore rules, conditionals and hooks.

Quick usage::

    from stamper.manifest import load_manifest
    from stamper.variables import BUILTIN_NAMES

    manifest = load_manifest(template_root, reserved_names=BUILTIN_NAMES)
"""

from stamper.manifest.loader import (
    IGNORE_FILENAME,
    MANIFEST_FILENAMES,
    VCS_METADATA_DIRS,
    default_ignores,
    load_ignore_file,
    load_manifest,
    parse_manifest,
)
from stamper.manifest.models import (
    BoolVariable,
    ChoiceVariable,
    ClassifyOverrides,
    ConditionalRule,
    HookSpec,
    IntVariable,
    StringVariable,
    TemplateManifest,
    VariableSpec,
)

__all__ = [
    "BoolVariable",
    "ChoiceVariable",
    "ClassifyOverrides",
    "ConditionalRule",
    "HookSpec",
    "IGNORE_FILENAME",
    "IntVariable",
    "MANIFEST_FILENAMES",
    "StringVariable",
    "TemplateManifest",
    "VCS_METADATA_DIRS",
    "VariableSpec",
    "default_ignores",
    "load_ignore_file",
    "load_manifest",
    "parse_manifest",
]
