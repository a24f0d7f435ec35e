"""stamper pipeline orchestrator.

Drives the scaffolding stages strictly forward:

1. LOCATE    -- Resolve the template locator into a source descriptor.
2. FETCH     -- Clone or copy the template into a transient workspace.
3. MANIFEST  -- Load ``stamper.yaml`` and ``.stamperignore``.
4. VARIABLES -- Build the render context (defines, env, prompts, defaults).
5. RENDER    -- Walk, filter, render and write the template tree.
6. HOOKS     -- Run post-generation hooks inside the new project.
7. FINALIZE  -- Strip, keep or recreate version-control history.

Usage::

    stamper gh:owner/template --name my-project
    python -m stamper ./local-template -d license=MIT --silent
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from collections.abc import Mapping, Sequence
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from rich.panel import Panel

from stamper.config import Config, GenerateArgs, VcsMode, parse_define
from stamper.errors import EXIT_INTERRUPTED, EXIT_OK, StamperError
from stamper.finalizer import Finalizer
from stamper.hooks import HookRunner
from stamper.manifest import load_ignore_file, load_manifest
from stamper.render import Matcher, RenderPipeline, RenderPlan, TemplateRenderer, prepare_destination
from stamper.source import CHECKOUT_DIRNAME, RepositoryFetcher, Workspace, resolve_locator
from stamper.utils import (
    console,
    create_progress,
    format_duration,
    print_error,
    print_stage,
    print_success,
    print_summary_table,
)
from stamper.variables import BUILTIN_NAMES, Prompter, VariableResolver


class GeneratedProject(BaseModel):
    """Outcome of a successful run."""

    model_config = ConfigDict(frozen=True)

    root: Path
    files: list[Path] = Field(default_factory=list)
    hooks_run: list[str] = Field(default_factory=list)
    repository_initialised: bool = False


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class Pipeline:
    """Runs one template generation from locator to finished project.

    Every run owns its own workspace, manifest and context; nothing is
    shared between runs.

    Attributes:
        config: Tuning knobs with the invocation's overrides applied.
        args: The per-invocation arguments.
    """

    def __init__(
        self,
        config: Config,
        args: GenerateArgs,
        prompter: Prompter | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.config = args.apply_to(config)
        self.args = args
        self.prompter = prompter
        self.environ = environ

    async def run(self) -> GeneratedProject:
        """Execute every stage.

        Raises:
            StamperError: The first stage failure.  Files already written to
                the destination are left in place.
        """
        start = time.monotonic()
        args = self.args

        print_stage("Resolving template locator")
        descriptor = resolve_locator(
            args.locator,
            git=args.git,
            branch=args.branch,
            tag=args.tag,
            rev=args.rev,
            subfolder=args.subfolder,
        )
        console.print(
            Panel(
                f"[bold bright_cyan]stamper[/bold bright_cyan]\n"
                f"Template    : {descriptor.url}\n"
                f"Revision    : {descriptor.revision or '(default)'}\n"
                f"Destination : {args.destination.resolve()}",
                title="[bold]Generate[/bold]",
                border_style="bright_cyan",
            )
        )

        with Workspace(keep=self.config.keep_workspace) as workspace:
            print_stage("Fetching template")
            template_root = await RepositoryFetcher(self.config.fetch).fetch(
                descriptor, workspace
            )

            print_stage("Loading manifest")
            manifest = load_manifest(template_root, reserved_names=BUILTIN_NAMES)
            extra_ignores = load_ignore_file(template_root)

            print_stage("Resolving variables")
            context = VariableResolver(
                manifest,
                interactive=not args.silent,
                prompter=self.prompter,
                environ=self.environ,
            ).resolve(args.defines, args.name, is_init=args.init)

            project_dir = self.project_dir(context["project-name"])
            prepare_destination(project_dir, args.force)

            print_stage(f"Rendering into {project_dir}")
            renderer = TemplateRenderer(
                trim_blocks=self.config.render.trim_blocks,
                lstrip_blocks=self.config.render.lstrip_blocks,
            )
            matcher = Matcher(manifest, renderer, context, extra_ignores=extra_ignores)
            pipeline = RenderPipeline(renderer, matcher, self.config.render)

            with create_progress() as progress:
                task = progress.add_task("Rendering files", total=None)

                def _on_plan(plan: RenderPlan) -> None:
                    progress.update(task, total=len(plan.jobs))

                written = await pipeline.render(
                    template_root,
                    project_dir,
                    context,
                    on_progress=lambda _job: progress.advance(task),
                    on_plan=_on_plan,
                )

            hooks_run = await HookRunner(renderer, self.config.hooks).run(
                manifest.ordered_hooks(), project_dir, context.as_dict()
            )

            print_stage("Finalizing")
            initialised = await Finalizer(timeout=self.config.fetch.timeout).finalize(
                project_dir, workspace.path / CHECKOUT_DIRNAME, args.vcs, written
            )

        elapsed = time.monotonic() - start
        print_summary_table(
            {
                "Project": str(project_dir),
                "Files": str(len(written)),
                "Variables": ", ".join(sorted(context.template_values())) or "none",
                "Hooks": ", ".join(hooks_run) or "none",
                "VCS": args.vcs.value,
                "Duration": format_duration(elapsed),
            },
            title="Generated",
        )
        print_success(f"Done! New project created at {project_dir}")

        return GeneratedProject(
            root=project_dir,
            files=written,
            hooks_run=hooks_run,
            repository_initialised=initialised,
        )

    def project_dir(self, project_name: str) -> Path:
        """Directory the project is generated into."""
        if self.args.init:
            return self.args.destination
        return self.args.destination / project_name


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stamper",
        description="stamper -- generate a new project from a template repository",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  stamper gh:owner/template --name my-project\n"
            "  stamper ./template -d license=MIT --silent --name demo\n"
            "  stamper --git https://example.com/t.git --tag v1.2 --vcs none\n"
        ),
    )

    parser.add_argument(
        "locator",
        nargs="?",
        help="Template: gh:/gl:/bb:/sr: shorthand, owner/repo, git URL or local path",
    )
    parser.add_argument("--git", default=None, help="Template git URL (overrides the locator)")

    parser.add_argument("--branch", "-b", default=None, help="Branch to check out")
    parser.add_argument("--tag", "-t", default=None, help="Tag to check out")
    parser.add_argument("--rev", "-r", default=None, help="Commit to check out")

    parser.add_argument(
        "--subfolder", default=None, help="Use a template living below the repository root"
    )
    parser.add_argument(
        "--define", "-d",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Set a template variable (repeatable)",
    )
    parser.add_argument("--name", "-n", default=None, help="Project name")
    parser.add_argument(
        "--destination",
        type=Path,
        default=None,
        help="Parent directory for the project (default: current directory)",
    )
    parser.add_argument(
        "--init",
        action="store_true",
        help="Generate into the destination itself instead of a new subdirectory",
    )
    parser.add_argument(
        "--force", "-f", action="store_true", help="Generate into a non-empty directory"
    )
    parser.add_argument(
        "--vcs",
        choices=[mode.value for mode in VcsMode],
        default=VcsMode.FRESH.value,
        help="none: no history; git: keep template history; fresh: git init (default)",
    )
    parser.add_argument(
        "--silent", "-s", action="store_true", help="Never prompt; use defines and defaults"
    )
    parser.add_argument("--no-hooks", action="store_true", help="Do not run template hooks")
    parser.add_argument(
        "--no-trim-blocks", action="store_true", help="Disable Jinja2 trim_blocks"
    )
    parser.add_argument(
        "--no-lstrip-blocks", action="store_true", help="Disable Jinja2 lstrip_blocks"
    )
    parser.add_argument(
        "--keep-workspace",
        action="store_true",
        help="Keep the temporary workspace for debugging",
    )
    parser.add_argument("--quiet", "-q", action="store_true", help="Suppress progress output")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> GenerateArgs:
    """Parse command-line arguments into :class:`GenerateArgs`."""
    parser = build_parser()
    ns = parser.parse_args(argv)

    defines: dict[str, str] = {}
    for raw in ns.define:
        try:
            key, value = parse_define(raw)
        except ValueError as exc:
            parser.error(str(exc))
        defines[key] = value

    console.quiet = ns.quiet

    return GenerateArgs(
        locator=ns.locator,
        git=ns.git,
        branch=ns.branch,
        tag=ns.tag,
        rev=ns.rev,
        subfolder=ns.subfolder,
        defines=defines,
        name=ns.name,
        destination=ns.destination or Path.cwd(),
        force=ns.force,
        init=ns.init,
        vcs=VcsMode(ns.vcs),
        silent=ns.silent or not sys.stdin.isatty(),
        run_hooks=not ns.no_hooks,
        keep_workspace=ns.keep_workspace,
        trim_blocks=False if ns.no_trim_blocks else None,
        lstrip_blocks=False if ns.no_lstrip_blocks else None,
    )


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point for ``stamper`` and ``python -m stamper``."""
    args = parse_args(argv)

    try:
        pipeline = Pipeline(Config.from_env(), args)
        asyncio.run(pipeline.run())
    except StamperError as exc:
        print_error(f"{exc.kind}: {exc}")
        sys.exit(exc.exit_status)
    except KeyboardInterrupt:
        print_error("Interrupted")
        sys.exit(EXIT_INTERRUPTED)

    sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
