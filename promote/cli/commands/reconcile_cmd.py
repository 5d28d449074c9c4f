from __future__ import annotations

from pathlib import Path

import typer

from promote.cli.commands._helpers import exit_code_for, exit_on_error
from promote.cli.context import build_context, open_host, resolve_repo
from promote.core.errors import ErrorCode
from promote.core.result import Err
from promote.output.console import Style
from promote.release.reconcile import reconcile as reconcile_release


def reconcile(
    tag: str = typer.Argument(..., help="Tag of the target release"),
    repo: str | None = typer.Option(
        None,
        "--repo",
        envvar="GITHUB_REPOSITORY",
        help="Repository owner/name (default: $GITHUB_REPOSITORY, then promote.toml)",
    ),
    config: Path | None = typer.Option(None, "--config", help="Path to promote.toml"),
    delete_partial: bool = typer.Option(
        False, "--delete-partial", help="Delete the release if it is only partially populated"
    ),
) -> None:
    """Inspect the release for TAG; exit 6 while it is left partially published."""
    ctx = build_context(config)
    host = open_host(ctx, resolve_repo(ctx, repo))

    result = reconcile_release(
        host,
        tag,
        archive_ext=ctx.config.release.archive_ext,
        delete_partial=delete_partial,
        console=ctx.console,
    )
    if isinstance(result, Err):
        exit_on_error(result, ctx, exit_code_for(result.error))
        return

    status = result.value
    match status.state:
        case "complete" | "missing":
            ctx.console.success(status.summary)
        case "incompatible":
            ctx.console.error(status.summary)
            raise typer.Exit(code=int(ErrorCode.PROMOTION_FAILED))
        case "partial":
            for slug in status.missing:
                ctx.console.print(f"  missing: {slug}", Style.DIM)
            if status.deleted:
                ctx.console.info(status.summary)
                return
            ctx.console.warning(status.summary)
            ctx.console.print("hint: re-run the promotion or pass --delete-partial", Style.DIM)
            raise typer.Exit(code=int(ErrorCode.PARTIAL_PUBLISH))
