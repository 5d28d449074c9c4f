from __future__ import annotations

import dataclasses
from pathlib import Path

import typer

from promote.cli.commands._helpers import exit_code_for
from promote.cli.context import CLIContext, build_context, open_host, resolve_repo
from promote.core.errors import ErrorCode
from promote.output.console import Style
from promote.release.job import JobOutcome, PromotionJob


def run(
    tag: str = typer.Argument(
        ...,
        envvar="GITHUB_REF_NAME",
        help="Pushed tag (default: $GITHUB_REF_NAME)",
    ),
    repo: str | None = typer.Option(
        None,
        "--repo",
        envvar="GITHUB_REPOSITORY",
        help="Repository owner/name (default: $GITHUB_REPOSITORY, then promote.toml)",
    ),
    config: Path | None = typer.Option(None, "--config", help="Path to promote.toml"),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Fetch and repackage, but do not publish"
    ),
    keep_staging: bool = typer.Option(
        False, "--keep-staging", help="Keep the staging directory after the run"
    ),
) -> None:
    """Promote the latest pre-release's assets into a draft release for TAG."""
    ctx = build_context(config)
    if keep_staging:
        ctx = dataclasses.replace(
            ctx,
            config=dataclasses.replace(
                ctx.config,
                staging=dataclasses.replace(ctx.config.staging, keep=True),
            ),
        )

    if not tag.strip():
        typer.echo("error: empty tag", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    slug = resolve_repo(ctx, repo)
    host = open_host(ctx, slug)

    ctx.console.header(f"Promote {tag} ({slug})")
    job = PromotionJob(host, config=ctx.config, console=ctx.console)
    outcome = job.run(tag.strip(), dry_run=dry_run)

    _print_outcome(ctx, outcome)
    if outcome.error is not None:
        raise typer.Exit(code=int(exit_code_for(outcome.error)))


def _print_outcome(ctx: CLIContext, outcome: JobOutcome) -> None:
    console = ctx.console
    console.newline()
    console.field("status", outcome.status)
    console.field("tag", outcome.tag)
    if outcome.source is not None:
        console.field("source", outcome.source.tag)
    if outcome.release is not None and outcome.release.url:
        console.field("release", outcome.release.url)
    for name in outcome.assets:
        console.print(f"  {name}", Style.DIM)

    # failures were already reported by the job
    if outcome.status == "skipped":
        console.info(outcome.reason)
    elif outcome.status == "succeeded":
        console.success(outcome.reason)
