"""Error types for the release promotion pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

HostErrorKind = Literal[
    "gh_missing",
    "gh_auth_required",
    "not_found",
    "transient",
    "invalid_payload",
    "failed",
]

PromotionErrorKind = Literal[
    "source_not_found",
    "host_failed",
    "fetch_failed",
    "extraction_failed",
    "publish_failed",
    "staging_failed",
    "cancelled",
]


@dataclass(frozen=True, slots=True)
class HostError:
    """Failure reported by a release host operation.

    Only `transient` errors are worth retrying; everything else is final for
    the operation that produced it.
    """

    kind: HostErrorKind
    message: str
    hint: str | None = None

    @property
    def retryable(self) -> bool:
        return self.kind == "transient"

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


@dataclass(frozen=True, slots=True)
class PromotionError:
    """Canonical pipeline error payload.

    Attributes:
        kind: Error class, decides the job's exit code.
        message: Human-readable reason.
        hint: Optional operator guidance (underlying stderr, next step).
        entries: Matrix entries (`Platform-Network`) that failed, if any.
        partial_publish: True when the target release was left with a subset
            of the expected assets attached.
    """

    kind: PromotionErrorKind
    message: str
    hint: str | None = None
    entries: tuple[str, ...] = ()
    partial_publish: bool = False

    def pretty(self) -> str:
        text = self.message
        if self.entries:
            text = f"{text}: {', '.join(self.entries)}"
        if self.hint:
            text = f"{text} (hint: {self.hint})"
        return text


def host_failure(error: HostError, *, message: str) -> PromotionError:
    """Wrap a HostError from a step that has no more specific error kind."""
    return PromotionError(kind="host_failed", message=message, hint=error.pretty())
