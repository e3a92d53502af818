"""Command line entry point for reference build resolution.

Usage:

    refbuild resolve jobs.json "project/PR-7#3" --repo . --store
    refbuild show "project/PR-7#3"

``resolve`` loads a job graph snapshot (see ``refbuild.core.snapshot``), runs
the resolution for one build and prints the log trail. Settings such as the
database URL and job defaults come from the environment (see
``refbuild.config.Settings``); command line options override the defaults.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from refbuild.config import Settings, get_settings
from refbuild.core.filtered_log import FilteredLog
from refbuild.core.git import GitCommitMatcher, RepositoryError
from refbuild.core.reference.configuration import ReferenceConfiguration
from refbuild.core.reference.engine import ReferenceBuild, ResolutionEngine
from refbuild.core.reference.matchers import AcceptAllMatcher
from refbuild.core.reference.providers import CommitMatcher
from refbuild.core.results import BuildResult
from refbuild.core.snapshot import SnapshotError, load_job_graph
from refbuild.db.base import build_engine
from refbuild.db.store import ReferenceStore, ReferenceStoreError

console = Console()
log = logger.bind(module="cli")


class _LoguruInterceptHandler(logging.Handler):
    """Bridge standard-library logging records into Loguru."""

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - thin wrapper
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.opt(exception=record.exc_info).log(level, record.getMessage())


def _configure_logging(settings: Settings) -> None:
    """Configure Loguru and route stdlib logging (SQLAlchemy, GitPython) through it."""

    level = (settings.log_level or "INFO").upper()
    logger.remove()
    logger.add(sys.stderr, level=level, backtrace=False, diagnose=False)

    root = logging.getLogger()
    root.handlers = [_LoguruInterceptHandler()]
    root.setLevel(level)
    logging.captureWarnings(True)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="refbuild", description="Select reference builds for trend analysis.")
    sub = parser.add_subparsers(dest="command", required=True)

    resolve = sub.add_parser("resolve", help="Resolve the reference build of a build.")
    resolve.add_argument("snapshot", help="Path to a JSON job graph snapshot.")
    resolve.add_argument("build_id", help="Id of the build to resolve the reference for.")
    resolve.add_argument("--reference-job", default=None, help="Use this job instead of inferring one.")
    resolve.add_argument("--target-branch", default=None, help="Override the inferred target branch.")
    resolve.add_argument(
        "--required-result",
        default=None,
        choices=[result.value for result in BuildResult],
        help="Worst acceptable result of a reference build.",
    )
    resolve.add_argument(
        "--consider-running-build",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Allow a running build as first candidate.",
    )
    resolve.add_argument(
        "--latest-build-if-not-found",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Fall back to the latest build when no build qualifies.",
    )
    resolve.add_argument("--repo", default=None, help="Git clone used to compare commits.")
    resolve.add_argument("--store", action="store_true", help="Persist the outcome in the reference store.")

    show = sub.add_parser("show", help="Show a stored reference build.")
    show.add_argument("build_id", help="Id of the originating build.")
    return parser


def _configuration(args: argparse.Namespace, settings: Settings) -> ReferenceConfiguration:
    configuration = ReferenceConfiguration.from_settings(settings)
    if args.reference_job is not None:
        configuration.set_reference_job(args.reference_job)
    if args.target_branch is not None:
        configuration.set_target_branch(args.target_branch)
    if args.required_result is not None:
        configuration.set_required_result(args.required_result)
    if args.consider_running_build is not None:
        configuration.set_consider_running_build(args.consider_running_build)
    if args.latest_build_if_not_found is not None:
        configuration.set_latest_build_if_not_found(args.latest_build_if_not_found)
    return configuration


def _matcher(args: argparse.Namespace, settings: Settings) -> CommitMatcher:
    path = args.repo or settings.git_repo_path
    if not path:
        console.log("[yellow]No git repository configured[/]; every candidate is treated as related")
        return AcceptAllMatcher()
    return GitCommitMatcher.open(path, remote=settings.git_remote, fetch_depth=settings.git_fetch_depth)


def _render(reference: ReferenceBuild) -> None:
    for message in reference.messages:
        console.print(f"  {message}", markup=False, highlight=False)
    table = Table(title="Reference build", show_lines=False)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("build", escape(reference.owner))
    table.add_row("reference_job", escape(reference.reference_job_name or "-"))
    table.add_row("reference_build", escape(reference.reference_build_id_or_dash))
    console.print(table)


def _resolve(args: argparse.Namespace, settings: Settings) -> int:
    graph = load_job_graph(args.snapshot)
    build = graph.find_build(args.build_id)
    if build is None:
        console.print(f"[bold red]Unknown build[/] {escape(repr(args.build_id))}")
        return 1

    engine = ResolutionEngine.from_graph(graph, _matcher(args, settings), _configuration(args, settings))
    trail = FilteredLog(f"Reference build resolution for {build.id}")
    reference = engine.find_reference_build(build, trail)
    _render(reference)

    if args.store:
        store = ReferenceStore(build_engine(settings.database_url, echo=settings.db_echo))
        store.ensure_schema()
        store.save(reference)
        console.log(f"[green]Stored reference build[/] for {escape(reference.owner)}")
    return 0


def _show(args: argparse.Namespace, settings: Settings) -> int:
    store = ReferenceStore(build_engine(settings.database_url, echo=settings.db_echo))
    store.ensure_schema()
    reference = store.get(args.build_id)
    if reference is None:
        console.print(f"[yellow]No stored reference build[/] for {escape(repr(args.build_id))}")
        return 1
    _render(reference)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint."""

    args = _build_parser().parse_args(argv)
    settings = get_settings()
    _configure_logging(settings)

    handlers = {"resolve": _resolve, "show": _show}
    try:
        return handlers[args.command](args, settings)
    except (SnapshotError, RepositoryError, ReferenceStoreError) as exc:
        console.print(f"[bold red]{type(exc).__name__}[/] {escape(str(exc))}", highlight=False)
        log.error("{} failed: {}", args.command, exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
