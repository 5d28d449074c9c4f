"""Publication of the repackaged assets as the target release.

The host offers no multi-asset transaction, so publication is a sequence:
create-or-get the record, upload what is missing, re-read the attachment list.
A failure that leaves an incomplete record behind is reported as a partial
publish so recovery tooling knows the record must be completed or deleted. A
record created by the failing run with nothing attached is removed instead.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from time import sleep as _sleep

from promote.core.config import RetryConfig
from promote.core.result import Err, Ok, Result
from promote.output.console import ConsoleProtocol, Style
from promote.release.errors import PromotionError
from promote.release.host import ReleaseHost
from promote.release.model import ReleaseHandle, RepackagedAsset, TargetRelease
from promote.release.retry import Sleep, with_retry

__all__ = ["publish"]


def _left_incomplete(
    host: ReleaseHost,
    release: ReleaseHandle,
    attached: set[str],
    *,
    retry: RetryConfig,
    console: ConsoleProtocol | None,
    sleep: Sleep,
) -> bool:
    """Whether a failed publish leaves an incomplete record on the host.

    A record created by this run that holds no asset yet is deleted, so the
    failure leaves nothing behind.
    """
    if attached or not release.created:
        return True

    deleted = with_retry(lambda: host.delete_release(release.tag), policy=retry, sleep=sleep)
    if isinstance(deleted, Err):
        if console is not None:
            console.warning(f"could not remove empty release {release.tag}: {deleted.error.message}")
        return True

    if console is not None:
        console.print(f"removed empty release {release.tag}", Style.DIM)
    return False


def publish(
    host: ReleaseHost,
    target_tag: str,
    is_forced: bool,
    assets: Sequence[RepackagedAsset],
    *,
    retry: RetryConfig,
    console: ConsoleProtocol | None = None,
    cancel: threading.Event | None = None,
    sleep: Sleep = _sleep,
) -> Result[TargetRelease, PromotionError]:
    """Create (or complete) the draft release for target_tag with all assets.

    Args:
        host: Release host
        target_tag: Tag of the release to publish
        is_forced: Forced releases are flagged as pre-release
        assets: One repackaged asset per matrix entry, already verified
        retry: Upload retry budget

    Returns:
        Ok(TargetRelease) once every asset is attached, or Err(publish_failed).
    """
    expected = [a.name for a in assets]
    expected_set = set(expected)

    handle = with_retry(
        lambda: host.create_or_get_release(target_tag, draft=True, prerelease=is_forced),
        policy=retry,
        sleep=sleep,
    )
    if isinstance(handle, Err):
        return Err(
            PromotionError(
                kind="publish_failed",
                message=f"failed to create release {target_tag}",
                hint=handle.error.pretty(),
            )
        )

    release = handle.value
    attached = set(release.assets)

    if not release.created:
        extra = sorted(attached - expected_set)
        if extra:
            return Err(
                PromotionError(
                    kind="publish_failed",
                    message=f"release {target_tag} already exists with unexpected assets",
                    hint="Delete the release or its extra assets, then re-run.",
                    entries=tuple(extra),
                )
            )
        if console is not None and (not release.draft or release.prerelease != is_forced):
            console.warning(
                f"release {target_tag} exists with draft={release.draft} "
                f"prerelease={release.prerelease}; expected draft=True prerelease={is_forced}"
            )
        if attached == expected_set:
            if console is not None:
                console.info(f"release {target_tag} already has all {len(expected)} assets")
            return Ok(
                TargetRelease(
                    tag=target_tag,
                    draft=release.draft,
                    prerelease=release.prerelease,
                    assets=tuple(expected),
                    reused=True,
                    url=release.url,
                )
            )
        if attached and console is not None:
            console.warning(
                f"release {target_tag} is partially populated "
                f"({len(attached)}/{len(expected)}); uploading the rest"
            )

    for asset in assets:
        if asset.name in attached:
            continue

        if cancel is not None and cancel.is_set():
            return Err(
                PromotionError(
                    kind="cancelled",
                    message=f"cancelled while publishing {target_tag}",
                    partial_publish=_left_incomplete(
                        host, release, attached, retry=retry, console=console, sleep=sleep
                    ),
                )
            )

        uploaded = with_retry(
            lambda: host.upload_asset(release, asset.name, asset.path),
            policy=retry,
            sleep=sleep,
        )
        if isinstance(uploaded, Err):
            return Err(
                PromotionError(
                    kind="publish_failed",
                    message=f"failed to upload {asset.name}",
                    hint=uploaded.error.pretty(),
                    entries=(asset.entry.slug,),
                    partial_publish=_left_incomplete(
                        host, release, attached, retry=retry, console=console, sleep=sleep
                    ),
                )
            )

        attached.add(asset.name)
        if console is not None:
            console.print(f"uploaded {asset.name}", Style.DIM)

    final = with_retry(lambda: host.get_release_assets(target_tag), policy=retry, sleep=sleep)
    if isinstance(final, Err):
        return Err(
            PromotionError(
                kind="publish_failed",
                message=f"failed to verify release {target_tag}",
                hint=final.error.pretty(),
                partial_publish=True,
            )
        )

    if set(final.value) != expected_set:
        missing = sorted(expected_set - set(final.value))
        extra = sorted(set(final.value) - expected_set)
        return Err(
            PromotionError(
                kind="publish_failed",
                message=f"release {target_tag} does not hold the expected assets",
                hint=f"missing: {', '.join(missing) or '-'}; unexpected: {', '.join(extra) or '-'}",
                partial_publish=True,
            )
        )

    return Ok(
        TargetRelease(
            tag=target_tag,
            draft=release.draft,
            prerelease=release.prerelease,
            assets=tuple(expected),
            url=release.url,
        )
    )
