"""Detection and repair of incomplete target releases.

A publish that fails halfway leaves a release with some matrix assets
attached. This module compares a release's attachments with the fixed matrix
and, on request, deletes a partial record so a fresh run can recreate it.
Complete and incompatible records are never modified.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from promote.core.result import Err, Ok, Result
from promote.output.console import ConsoleProtocol
from promote.release.errors import PromotionError, host_failure
from promote.release.host import ReleaseHost
from promote.release.matrix import MATRIX_SIZE, missing_entries, unexpected_names

__all__ = ["TargetStatus", "inspect_target_release", "reconcile"]

TargetState = Literal["missing", "complete", "partial", "incompatible"]


@dataclass(frozen=True, slots=True)
class TargetStatus:
    tag: str
    state: TargetState
    attached: tuple[str, ...] = ()
    missing: tuple[str, ...] = ()  # matrix entry slugs
    unexpected: tuple[str, ...] = ()
    deleted: bool = False

    @property
    def summary(self) -> str:
        match self.state:
            case "missing":
                return f"{self.tag}: no release"
            case "complete":
                return f"{self.tag}: complete ({MATRIX_SIZE}/{MATRIX_SIZE} assets)"
            case "partial":
                have = MATRIX_SIZE - len(self.missing)
                return f"{self.tag}: partial ({have}/{MATRIX_SIZE} assets)"
            case "incompatible":
                return f"{self.tag}: unexpected assets {', '.join(self.unexpected)}"


def inspect_target_release(
    host: ReleaseHost, tag: str, *, archive_ext: str
) -> Result[TargetStatus, PromotionError]:
    assets = host.get_release_assets(tag)
    if isinstance(assets, Err):
        if assets.error.kind == "not_found":
            return Ok(TargetStatus(tag=tag, state="missing"))
        return Err(host_failure(assets.error, message=f"failed to read release {tag}"))

    attached = assets.value
    missing = tuple(e.slug for e in missing_entries(tag, archive_ext, attached))
    unexpected = unexpected_names(tag, archive_ext, attached)

    state: TargetState
    if unexpected:
        state = "incompatible"
    elif missing:
        state = "partial"
    else:
        state = "complete"

    return Ok(
        TargetStatus(tag=tag, state=state, attached=attached, missing=missing, unexpected=unexpected)
    )


def reconcile(
    host: ReleaseHost,
    tag: str,
    *,
    archive_ext: str,
    delete_partial: bool,
    console: ConsoleProtocol | None = None,
) -> Result[TargetStatus, PromotionError]:
    """Inspect the release for tag; delete it if partial and delete_partial is set.

    An empty release (created, nothing uploaded) counts as partial.
    """
    inspected = inspect_target_release(host, tag, archive_ext=archive_ext)
    if isinstance(inspected, Err):
        return inspected

    status = inspected.value
    if status.state != "partial" or not delete_partial:
        return Ok(status)

    deleted = host.delete_release(tag)
    if isinstance(deleted, Err):
        return Err(host_failure(deleted.error, message=f"failed to delete partial release {tag}"))

    if console is not None:
        console.success(f"deleted partial release {tag}")
    return Ok(
        TargetStatus(
            tag=tag,
            state=status.state,
            attached=status.attached,
            missing=status.missing,
            deleted=True,
        )
    )
