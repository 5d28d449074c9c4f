"""Selection of the pre-release to promote.

The host gives no guarantee about which pre-release is "current", so the
choice is made here, explicitly: the published (non-draft) pre-release with
the latest creation time wins; ties go to the higher version, then to the
lexicographically later tag.
"""

from __future__ import annotations

from promote.core.result import Err, Ok, Result
from promote.release.errors import PromotionError, host_failure
from promote.release.host import ReleaseHost
from promote.release.model import SourceRelease
from promote.release.semver import version_sort_key

__all__ = ["locate_source_release", "select_source_release", "source_sort_key"]


def source_sort_key(release: SourceRelease) -> tuple[object, ...]:
    return (release.created_at, version_sort_key(release.tag), release.tag)


def select_source_release(releases: list[SourceRelease]) -> SourceRelease | None:
    # Drafts are excluded: a forced promotion publishes a draft pre-release,
    # which must not become the source of a later run.
    candidates = [r for r in releases if r.prerelease and not r.draft]
    if not candidates:
        return None
    return max(candidates, key=source_sort_key)


def locate_source_release(host: ReleaseHost) -> Result[SourceRelease, PromotionError]:
    releases = host.list_releases(prerelease=True)
    if isinstance(releases, Err):
        return Err(host_failure(releases.error, message="failed to list pre-releases"))

    selected = select_source_release(releases.value)
    if selected is None:
        return Err(
            PromotionError(
                kind="source_not_found",
                message="no published pre-release to promote",
                hint="Publish a pre-release with the build artifacts first.",
            )
        )
    return Ok(selected)
