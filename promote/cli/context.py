from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from promote.core.config import DEFAULT_CONFIG_FILENAME, Config, load_config, load_config_or_default
from promote.cli.commands._helpers import exit_on_error
from promote.core.errors import ErrorCode
from promote.core.result import Err
from promote.output.console import ConsoleProtocol, RichConsole
from promote.release.gh import ensure_gh_auth, ensure_gh_available
from promote.release.host import GhReleaseHost, ReleaseHost


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    console: ConsoleProtocol
    root: Path


def build_context(config_path: Path | None = None) -> CLIContext:
    """Load configuration and set up output.

    An explicit --config must exist; the default promote.toml is optional.
    """
    root = Path.cwd()
    if config_path is not None:
        config_result = load_config(config_path.expanduser())
    else:
        config_result = load_config_or_default(root / DEFAULT_CONFIG_FILENAME)

    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(config=config_result.value, console=RichConsole(), root=root)


def resolve_repo(ctx: CLIContext, repo: str | None) -> str:
    """Pick the repository from --repo / $GITHUB_REPOSITORY, then promote.toml."""
    slug = (repo or "").strip() or ctx.config.release.repo
    if not slug:
        typer.echo("error: no repository (use --repo or set GITHUB_REPOSITORY)", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    owner, sep, name = slug.partition("/")
    if not sep or not owner or not name or "/" in name:
        typer.echo(f"error: invalid repository (expected owner/name): {slug}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    return slug


def open_host(ctx: CLIContext, repo: str) -> ReleaseHost:
    """Return a gh-backed host after checking that gh is installed and authenticated."""
    exit_on_error(ensure_gh_available(), ctx, ErrorCode.ENV_ERROR)
    exit_on_error(ensure_gh_auth(workspace_root=ctx.root), ctx, ErrorCode.ENV_ERROR)
    return GhReleaseHost(repo, workspace_root=ctx.root)
