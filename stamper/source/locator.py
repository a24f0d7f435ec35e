"""Template locator resolution.

Turns the user-facing locator (``gh:owner/repo``, a URL, a local path...)
and the revision flags into a :class:`SourceDescriptor`.  Resolution is a
pure function: nothing here touches the network or the filesystem.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

from stamper.errors import InvalidLocatorError


# ---------------------------------------------------------------------------
# Shorthand table
# ---------------------------------------------------------------------------

SHORTHAND_HOSTS: dict[str, str] = {
    "gh": "https://github.com/{owner}/{repo}.git",
    "gl": "https://gitlab.com/{owner}/{repo}.git",
    "bb": "https://bitbucket.org/{owner}/{repo}.git",
    "sr": "https://git.sr.ht/~{owner}/{repo}",
}

DEFAULT_SHORTHAND = "gh"

URL_SCHEMES = ("http", "https", "git", "ssh", "file")

_OWNER_REPO_RE = re.compile(r"^(?P<owner>[A-Za-z0-9_.-]+)/(?P<repo>[A-Za-z0-9_.-]+)$")
_URL_RE = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*)://\S+$")
_SCP_RE = re.compile(r"^[A-Za-z0-9_.-]+@[A-Za-z0-9_.-]+:\S+$")
_LOCAL_PREFIXES = ("/", "./", "../", "~")


class SourceDescriptor(BaseModel):
    """Canonical description of where to fetch a template from."""

    model_config = ConfigDict(frozen=True)

    url: str
    revision: str | None = None
    subfolder: str | None = None

    @property
    def is_local(self) -> bool:
        """Whether :attr:`url` names a filesystem path rather than a remote."""
        return _is_local_path(self.url)


def _is_local_path(value: str) -> bool:
    return value in (".", "..") or value.startswith(_LOCAL_PREFIXES)


def _expand_shorthand(prefix: str, owner_repo: str, locator: str) -> str:
    match = _OWNER_REPO_RE.match(owner_repo)
    if not match:
        raise InvalidLocatorError(
            locator, f"Expected '{prefix}:owner/repo', got {locator!r}"
        )
    owner = match.group("owner")
    repo = match.group("repo")
    template = SHORTHAND_HOSTS[prefix]
    if template.endswith(".git") and repo.endswith(".git"):
        repo = repo[: -len(".git")]
    return template.format(owner=owner, repo=repo)


def expand_locator(locator: str) -> str:
    """Expand a single locator string into a fetchable URL or path.

    Raises:
        InvalidLocatorError: If *locator* is not a recognised shorthand, URL
            or local path.
    """
    value = locator.strip()
    if not value:
        raise InvalidLocatorError(locator, "Template locator is empty")

    url_match = _URL_RE.match(value)
    if url_match:
        if url_match.group("scheme").lower() not in URL_SCHEMES:
            raise InvalidLocatorError(
                locator, f"Unsupported URL scheme in {locator!r}"
            )
        return value

    if _SCP_RE.match(value) or _is_local_path(value):
        return value

    prefix, sep, rest = value.partition(":")
    if sep and prefix in SHORTHAND_HOSTS:
        return _expand_shorthand(prefix, rest, locator)

    if _OWNER_REPO_RE.match(value):
        return _expand_shorthand(DEFAULT_SHORTHAND, value, locator)

    raise InvalidLocatorError(locator)


def resolve_locator(
    locator: str | None,
    *,
    git: str | None = None,
    branch: str | None = None,
    tag: str | None = None,
    rev: str | None = None,
    subfolder: str | None = None,
) -> SourceDescriptor:
    """Resolve a locator and revision flags into a :class:`SourceDescriptor`.

    An explicit *git* value takes precedence over the positional *locator*.
    At most one of *branch*, *tag* and *rev* may be given.

    Examples::

        resolve_locator("gh:acme/starter").url
            -> "https://github.com/acme/starter.git"
        resolve_locator("acme/starter", tag="v1").revision -> "v1"
    """
    raw = git if git is not None else locator
    if raw is None:
        raise InvalidLocatorError("", "No template locator given (pass a locator or --git)")

    pins = [value for value in (branch, tag, rev) if value]
    if len(pins) > 1:
        raise InvalidLocatorError(
            raw, "Only one of --branch, --tag and --rev may be given"
        )

    if subfolder is not None and not subfolder.strip():
        subfolder = None

    return SourceDescriptor(
        url=expand_locator(raw),
        revision=pins[0] if pins else None,
        subfolder=subfolder,
    )
