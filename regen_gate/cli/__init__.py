"""Entry points for the command-line interface.

``regen-gate run`` executes the whole pull request pipeline, ``check`` runs
only the staleness gate, ``should-run`` evaluates the trigger filter and
``history`` prints recorded step events.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from ..annotations import Reporter
from ..config import load_config
from ..errors import ConcurrencyError, GitError, RegenGateError
from ..events import load_event
from ..freshness import check_freshness, head_revision, upstream_revision
from ..git import GitRepo
from ..metrics import start_metrics_server
from ..pipeline import Pipeline
from ..stage_store import StageStore
from ..steps import StepContext
from ..trigger import should_run

logger = logging.getLogger(__name__)

app = typer.Typer(help="Keep generated protocol-buffer code in sync with its sources")


def _options(ctx: typer.Context) -> Dict[str, Any]:
    return ctx.obj or {}


def _load(ctx: typer.Context) -> Dict[str, Any]:
    try:
        return load_config(_options(ctx).get("config"))
    except ValueError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.callback()
def _global_options(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to a YAML configuration file",
    ),
    root: str = typer.Option(
        ".",
        "--root",
        help="Repository root containing the working directory",
    ),
    metrics_port: Optional[int] = typer.Option(
        None,
        "--metrics-port",
        help="Expose Prometheus metrics on PORT before executing the command",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Handle global options for the CLI."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if metrics_port is not None:
        start_metrics_server(metrics_port)
    ctx.obj = {"config": config, "root": root}


@app.command("run")
def run_pipeline(ctx: typer.Context) -> None:
    """Run the full pipeline: fetch, generate, check freshness, lint and build."""

    cfg = _load(ctx)
    pipeline = Pipeline.default(cfg, root=_options(ctx).get("root", "."))
    try:
        result = pipeline.run()
    except ConcurrencyError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    for step in result.steps:
        line = f"{step.name}\t{step.status}"
        if step.reason and step.status != "skipped":
            line += f"\t{step.reason}"
        typer.echo(line)
    if result.status != "success":
        typer.echo(f"run {result.run_id} {result.status}", err=True)
    raise typer.Exit(code=result.exit_code)


@app.command("check")
def check(ctx: typer.Context) -> None:
    """Fail if regenerating changed any committed file."""

    cfg = _load(ctx)
    context = StepContext.from_config(cfg, _options(ctx).get("root", "."))
    try:
        report = check_freshness(context.repo, cfg, context.reporter)
    except GitError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(report.verdict.value)
    if not report.ok:
        raise typer.Exit(code=1)


@app.command("should-run")
def should_run_cmd(
    ctx: typer.Context,
    event_path: Optional[str] = typer.Option(
        None, "--event", help="Pull request event payload (defaults to GITHUB_EVENT_PATH)"
    ),
    changed: Optional[List[str]] = typer.Option(
        None, "--changed", help="Changed file path; may be repeated"
    ),
    from_git: bool = typer.Option(
        False, "--from-git", help="Compute changed files from the fork point"
    ),
    strict: bool = typer.Option(False, "--strict", help="Exit 1 when the answer is no"),
) -> None:
    """Print ``yes`` if the workflow applies to this pull request."""

    cfg = _load(ctx)
    event = load_event(event_path)
    files: List[str] | None = list(changed) if changed else None
    if files is None and from_git:
        repo = GitRepo(Path(_options(ctx).get("root", ".")))
        try:
            head, upstream = head_revision(cfg), upstream_revision(cfg)
            fork = repo.merge_base(head, upstream)
            if fork is None:
                logger.warning(
                    "%s and %s share no history; not filtering on changed paths",
                    head,
                    upstream,
                )
            else:
                files = repo.changed_files(f"{fork}...HEAD")
        except GitError as exc:
            typer.echo(f"error: {exc}", err=True)
            raise typer.Exit(code=1) from exc

    answer = should_run(cfg, event=event, changed_files=files)
    typer.echo("yes" if answer else "no")
    if strict and not answer:
        raise typer.Exit(code=1)


@app.command("history")
def history(
    ctx: typer.Context,
    workflow: Optional[str] = typer.Option(None, "--workflow", help="Workflow name"),
    run_id: Optional[str] = typer.Option(None, "--run-id", help="Only show this run"),
) -> None:
    """List recorded step events."""

    cfg = _load(ctx)
    store = StageStore(cfg.get("stages_path"))
    for event in store.get_events(workflow or cfg["workflow"], run_id=run_id):
        line = f"{event.get('time')}\t{event.get('run_id', '-')}\t{event['stage']}\t{event.get('status', '')}"
        if event.get("reason"):
            line += f"\t{event['reason']}"
        typer.echo(line)


def main(args: list[str] | None = None) -> int:
    """Run the CLI with ``args`` and return its exit code.

    Parameters
    ----------
    args:
        CLI arguments. If ``None`` (default), an empty list is passed so
        that pytest arguments are ignored during tests.
    """

    try:
        rv = app(args or [], standalone_mode=False)
    except RegenGateError as exc:
        Reporter().error(str(exc))
        return 1
    return rv if isinstance(rv, int) else 0


__all__ = ["app", "main", "run_pipeline", "check", "should_run_cmd", "history"]
