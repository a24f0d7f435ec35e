"""Exception hierarchy for the stamper scaffolding pipeline.

Every stage raises a subclass of :class:`StamperError`.  Each subclass
carries in ``exit_status`` the process exit code that
``stamper.pipeline.main`` uses when the error escapes, so scripts can tell a
bad locator apart from a failing hook without parsing output.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_OK = 0
EXIT_USAGE = 2
EXIT_LOCATOR = 10
EXIT_FETCH = 11
EXIT_MANIFEST = 12
EXIT_VARIABLE = 13
EXIT_RENDER = 14
EXIT_HOOK = 15
EXIT_IO = 16
EXIT_INTERRUPTED = 130


# ---------------------------------------------------------------------------
# Reason enumerations
# ---------------------------------------------------------------------------


class FetchReason(str, Enum):
    """Why a template could not be fetched."""

    NOT_FOUND = "NotFound"
    AUTH_REQUIRED = "AuthRequired"
    NETWORK_FAILURE = "NetworkFailure"
    REF_NOT_FOUND = "RefNotFound"


class ManifestReason(str, Enum):
    """Why a template manifest was rejected."""

    PARSE_ERROR = "ParseError"
    SCHEMA_VIOLATION = "SchemaViolation"
    DUPLICATE_VARIABLE_NAME = "DuplicateVariableName"
    BUILTIN_NAME_COLLISION = "BuiltinNameCollision"


class RenderReason(str, Enum):
    """Why a template entry could not be rendered or written."""

    SYNTAX_ERROR = "SyntaxError"
    UNDEFINED_VARIABLE = "UndefinedVariable"
    WRITE_CONFLICT = "WriteConflict"
    IO_ERROR = "IOError"
    INVALID_PATH = "InvalidPath"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class StamperError(Exception):
    """Base class for every error the pipeline reports to the user."""

    exit_status: int = 1
    kind: str = "error"


class ConfigError(StamperError):
    """Raised when a ``STAMPER_*`` environment setting is malformed."""

    exit_status = EXIT_USAGE
    kind = "configuration error"


class InvalidLocatorError(StamperError):
    """Raised when a template locator matches no shorthand, URL or path."""

    exit_status = EXIT_LOCATOR
    kind = "locator error"

    def __init__(self, locator: str, message: str | None = None) -> None:
        self.locator = locator
        super().__init__(message or f"Unrecognised template locator: {locator!r}")


class FetchError(StamperError):
    """Raised when the template repository cannot be materialised."""

    exit_status = EXIT_FETCH
    kind = "fetch error"

    def __init__(self, reason: FetchReason, url: str, detail: str = "") -> None:
        self.reason = reason
        self.url = url
        self.detail = detail
        message = f"{reason.value}: {url}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.reason is FetchReason.NETWORK_FAILURE


class ManifestError(StamperError):
    """Raised when the template manifest cannot be loaded or is inconsistent."""

    exit_status = EXIT_MANIFEST
    kind = "manifest error"

    def __init__(self, reason: ManifestReason, message: str, path: Path | None = None) -> None:
        self.reason = reason
        self.path = path
        super().__init__(f"{reason.value}: {message}")


class VariableError(StamperError):
    """Base for failures while building the render context."""

    exit_status = EXIT_VARIABLE
    kind = "variable error"


class MissingVariableError(VariableError):
    """Raised when a required variable has no value in non-interactive mode."""

    def __init__(self, variable: str) -> None:
        self.variable = variable
        super().__init__(
            f"Variable '{variable}' is required but no value was provided "
            "(use --define or run interactively)"
        )


class ValidationError(VariableError):
    """Raised when a supplied value does not satisfy its variable spec."""

    def __init__(self, variable: str, reason: str) -> None:
        self.variable = variable
        self.reason = reason
        super().__init__(f"Invalid value for '{variable}': {reason}")


class RenderError(StamperError):
    """Raised when a template entry fails to render or be written."""

    exit_status = EXIT_RENDER
    kind = "render error"

    def __init__(self, path: str | Path, reason: RenderReason, detail: str = "") -> None:
        self.path = str(path)
        self.reason = reason
        self.detail = detail
        message = f"{reason.value} in '{self.path}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class WriteConflictError(RenderError):
    """Raised when two source entries render to the same destination path."""

    def __init__(self, path: str | Path, first: str, second: str) -> None:
        self.first = first
        self.second = second
        super().__init__(
            path,
            RenderReason.WRITE_CONFLICT,
            f"both '{first}' and '{second}' render to this path",
        )


class HookError(StamperError):
    """Raised when a post-generation hook fails."""

    exit_status = EXIT_HOOK
    kind = "hook error"

    def __init__(self, hook_name: str, exit_code: int | None, reason: str = "") -> None:
        self.hook_name = hook_name
        self.exit_code = exit_code
        self.reason = reason
        message = f"Hook '{hook_name}' failed"
        if exit_code is not None:
            message = f"{message} (exit {exit_code})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class StamperIOError(StamperError):
    """Raised for filesystem failures outside of rendering."""

    exit_status = EXIT_IO
    kind = "io error"


class DestinationError(StamperIOError):
    """Raised when the destination directory cannot be used."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class FinalizeError(StamperIOError):
    """Raised when version-control finalisation fails."""
