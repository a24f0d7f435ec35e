"""Template sources: locator resolution, workspaces and fetching."""

from stamper.source.fetcher import CHECKOUT_DIRNAME, RepositoryFetcher, classify_git_failure
from stamper.source.locator import SourceDescriptor, expand_locator, resolve_locator
from stamper.source.workspace import Workspace

__all__ = [
    "CHECKOUT_DIRNAME",
    "RepositoryFetcher",
    "SourceDescriptor",
    "Workspace",
    "classify_git_failure",
    "expand_locator",
    "resolve_locator",
]
