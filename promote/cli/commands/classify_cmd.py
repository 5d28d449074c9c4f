from __future__ import annotations

import typer

from promote.output.console import RichConsole, Style
from promote.release.tags import classify as classify_tag


def classify(
    tag: str = typer.Argument(..., help="Tag name, e.g. v1.2.0 or v1.2.0-pre3-force-release"),
) -> None:
    """Show whether TAG would trigger a promotion. Offline, always exits 0."""
    console = RichConsole()
    result = classify_tag(tag)
    t = result.tag

    console.field("tag", t.raw or "<empty>")
    console.field("release", _yes_no(t.is_release))
    console.field("pre-release", _yes_no(t.is_pre_release))
    console.field("forced", _yes_no(t.is_forced))
    if t.version is not None:
        pre = f" pre {t.version.pre}" if t.version.pre is not None else ""
        console.field("version", f"{t.version.version.to_tag()}{pre}")

    if result.should_promote:
        suffix = " (published as pre-release)" if result.is_forced else ""
        console.success(f"promote{suffix}")
    else:
        console.print("skip", Style.DIM)


def _yes_no(value: bool) -> str:
    return "yes" if value else "no"
