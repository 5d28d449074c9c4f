from __future__ import annotations

import typer

from promote import __version__
from promote.cli.commands.classify_cmd import classify
from promote.cli.commands.locate_cmd import locate
from promote.cli.commands.reconcile_cmd import reconcile
from promote.cli.commands.run_cmd import run


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Promote the latest pre-release's build artifacts into a release for a pushed tag.",
)


# Commands
app.command()(run)
app.command()(classify)
app.command()(locate)
app.command()(reconcile)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    pass


def main() -> None:
    app()
