"""Repository fetching into the run's workspace.

Clones a remote template (or copies a local one) into
``<workspace>/template`` and checks out the pinned revision.  Transient
network failures are retried with exponential backoff; every other failure
is fatal.  A failed attempt never leaves a partial checkout behind.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path

from stamper.config import FetchConfig
from stamper.errors import FetchError, FetchReason
from stamper.source.locator import SourceDescriptor
from stamper.source.workspace import Workspace
from stamper.utils import console, is_within

CHECKOUT_DIRNAME = "template"

# Ordered: the first matching reason wins.
_STDERR_MARKERS: list[tuple[FetchReason, tuple[str, ...]]] = [
    (
        FetchReason.REF_NOT_FOUND,
        (
            "remote branch",
            "did not match any",
            "unknown revision",
            "couldn't find remote ref",
            "reference is not a tree",
            "invalid reference",
        ),
    ),
    (
        FetchReason.AUTH_REQUIRED,
        (
            "authentication failed",
            "could not read username",
            "could not read password",
            "permission denied",
            "terminal prompts disabled",
            "access denied",
        ),
    ),
    (
        FetchReason.NOT_FOUND,
        (
            "repository not found",
            "does not exist",
            "not a git repository",
            "does not appear to be a git repository",
        ),
    ),
    (
        FetchReason.NETWORK_FAILURE,
        (
            "could not resolve host",
            "connection timed out",
            "connection refused",
            "connection reset",
            "network is unreachable",
            "timed out",
            "unable to access",
            "early eof",
            "the remote end hung up",
        ),
    ),
]


def classify_git_failure(stderr: str) -> FetchReason:
    """Map git's stderr to a :class:`FetchReason`.

    Unrecognised failures are treated as ``NotFound`` so that they are not
    retried.
    """
    lowered = stderr.lower()
    for reason, markers in _STDERR_MARKERS:
        if any(marker in lowered for marker in markers):
            return reason
    return FetchReason.NOT_FOUND


class GitCommandError(Exception):
    """Raised when a git subprocess exits non-zero or times out."""

    def __init__(self, message: str, command: str = "", stderr: str = "", timed_out: bool = False):
        self.command = command
        self.stderr = stderr
        self.timed_out = timed_out
        super().__init__(message)


async def _run_git(
    *args: str,
    cwd: str | Path | None = None,
    timeout: float = 60.0,
) -> tuple[str, str]:
    """Run a git command asynchronously and return (stdout, stderr).

    Raises GitCommandError if the command exits with a non-zero code or
    exceeds *timeout*.
    """
    cmd = ["git"] + list(args)
    cmd_str = " ".join(cmd)
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
            env=env,
        )
    except FileNotFoundError as exc:
        raise GitCommandError(
            "git executable not found", command=cmd_str, stderr=str(exc)
        ) from exc

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise GitCommandError(
            f"Git command timed out after {timeout}s: {cmd_str}",
            command=cmd_str,
            stderr=f"timed out after {timeout}s",
            timed_out=True,
        )

    stdout = stdout_bytes.decode("utf-8", errors="replace").strip()
    stderr = stderr_bytes.decode("utf-8", errors="replace").strip()

    if process.returncode != 0:
        raise GitCommandError(
            f"Git command failed (exit {process.returncode}): {cmd_str}\n{stderr}",
            command=cmd_str,
            stderr=stderr,
        )

    return stdout, stderr


class RepositoryFetcher:
    """Materialises a :class:`SourceDescriptor` inside a :class:`Workspace`."""

    def __init__(self, config: FetchConfig | None = None) -> None:
        self.config = config or FetchConfig()

    async def fetch(self, descriptor: SourceDescriptor, workspace: Workspace) -> Path:
        """Fetch the template and return the template root directory.

        Raises:
            FetchError: When the source cannot be fetched after the allowed
                retries, or the pinned revision / subfolder does not exist.
        """
        checkout = workspace.path / CHECKOUT_DIRNAME
        attempts = self.config.retries + 1

        for attempt in range(1, attempts + 1):
            try:
                await self._fetch_once(descriptor, checkout)
                break
            except FetchError as exc:
                _remove_partial(checkout)
                if not exc.retryable or attempt == attempts:
                    raise
                delay = self.config.backoff * 2 ** (attempt - 1)
                console.print(
                    f"[yellow]Fetch attempt {attempt}/{attempts} failed "
                    f"({exc.reason.value}), retrying in {delay:.1f}s...[/yellow]"
                )
                await asyncio.sleep(delay)
            except BaseException:
                _remove_partial(checkout)
                raise

        try:
            return self._template_root(descriptor, checkout)
        except FetchError:
            _remove_partial(checkout)
            raise

    async def _fetch_once(self, descriptor: SourceDescriptor, checkout: Path) -> None:
        if descriptor.is_local:
            await self._copy_local(descriptor, checkout)
        else:
            await self._git(descriptor.url, "clone", "--quiet", descriptor.url, str(checkout))

        if descriptor.revision:
            if not (checkout / ".git").exists():
                raise FetchError(
                    FetchReason.REF_NOT_FOUND,
                    descriptor.url,
                    f"cannot check out '{descriptor.revision}': source is not a git repository",
                )
            await self._git(
                descriptor.url,
                "checkout", "--quiet", descriptor.revision,
                cwd=checkout,
                reason_override=FetchReason.REF_NOT_FOUND,
            )

    async def _copy_local(self, descriptor: SourceDescriptor, checkout: Path) -> None:
        source = Path(descriptor.url).expanduser()
        if not source.is_dir():
            raise FetchError(FetchReason.NOT_FOUND, descriptor.url, "no such directory")
        try:
            await asyncio.to_thread(shutil.copytree, source, checkout, symlinks=True)
        except OSError as exc:
            raise FetchError(FetchReason.NOT_FOUND, descriptor.url, str(exc)) from exc

    async def _git(
        self,
        url: str,
        *args: str,
        cwd: Path | None = None,
        reason_override: FetchReason | None = None,
    ) -> None:
        try:
            await _run_git(*args, cwd=cwd, timeout=self.config.timeout)
        except GitCommandError as exc:
            if exc.timed_out:
                reason = FetchReason.NETWORK_FAILURE
            else:
                reason = classify_git_failure(exc.stderr)
                # A failing checkout after a good clone means the ref is bad.
                if reason_override is not None and reason is not FetchReason.NETWORK_FAILURE:
                    reason = reason_override
            raise FetchError(reason, url, exc.stderr) from exc

    @staticmethod
    def _template_root(descriptor: SourceDescriptor, checkout: Path) -> Path:
        if not descriptor.subfolder:
            return checkout
        root = checkout / descriptor.subfolder
        if not is_within(root, checkout) or not root.is_dir():
            raise FetchError(
                FetchReason.NOT_FOUND,
                descriptor.url,
                f"subfolder '{descriptor.subfolder}' not found in template",
            )
        return root


def _remove_partial(checkout: Path) -> None:
    if checkout.exists():
        shutil.rmtree(checkout, ignore_errors=True)
