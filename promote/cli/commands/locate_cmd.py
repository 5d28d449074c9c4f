from __future__ import annotations

from pathlib import Path

import typer

from promote.cli.commands._helpers import exit_code_for, exit_on_error
from promote.cli.context import build_context, open_host, resolve_repo
from promote.core.result import Err
from promote.output.console import Style
from promote.release.locator import locate_source_release
from promote.release.matrix import expected_asset_names


def locate(
    repo: str | None = typer.Option(
        None,
        "--repo",
        envvar="GITHUB_REPOSITORY",
        help="Repository owner/name (default: $GITHUB_REPOSITORY, then promote.toml)",
    ),
    config: Path | None = typer.Option(None, "--config", help="Path to promote.toml"),
) -> None:
    """Show the pre-release a promotion would copy from, and its matrix assets."""
    ctx = build_context(config)
    host = open_host(ctx, resolve_repo(ctx, repo))

    located = locate_source_release(host)
    if isinstance(located, Err):
        exit_on_error(located, ctx, exit_code_for(located.error))
        return

    source = located.value
    ctx.console.field("tag", source.tag)
    ctx.console.field("created", source.created_at.isoformat())

    attached = set(source.assets)
    for entry, name in expected_asset_names(source.tag, ctx.config.release.archive_ext).items():
        if name in attached:
            ctx.console.print(f"  {entry.slug}: {name}", Style.DIM)
        else:
            ctx.console.warning(f"{entry.slug}: missing {name}")
