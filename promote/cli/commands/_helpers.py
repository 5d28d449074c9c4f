"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer

from promote.core.errors import ErrorCode
from promote.core.result import Err, Result
from promote.output.console import Style
from promote.release.errors import PromotionError

if TYPE_CHECKING:
    from promote.cli.context import CLIContext


def exit_on_error[T, E](
    result: Result[T, E],
    ctx: CLIContext,
    error_code: ErrorCode = ErrorCode.PROMOTION_FAILED,
) -> None:
    """Exit with error if result is Err, otherwise return.

    Expects error objects to have 'message' and optional 'hint' attributes.
    """
    if isinstance(result, Err):
        error = result.error
        message: str = getattr(error, "message", str(error))
        hint: str | None = getattr(error, "hint", None)
        ctx.console.error(message)
        if hint:
            ctx.console.print(f"hint: {hint}", Style.DIM)
        raise typer.Exit(code=int(error_code))


def exit_code_for(error: PromotionError) -> ErrorCode:
    """Map a pipeline failure to the process exit code."""
    if error.partial_publish:
        return ErrorCode.PARTIAL_PUBLISH
    match error.kind:
        case "host_failed":
            return ErrorCode.NETWORK_ERROR
        case "staging_failed":
            return ErrorCode.IO_ERROR
        case _:
            return ErrorCode.PROMOTION_FAILED
