"""Download of the source release's matrix assets.

All-or-nothing: either every matrix entry is downloaded, or the step fails
naming the entries that could not be fetched and leaves nothing behind.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from time import sleep as _sleep

from promote.core.config import RetryConfig
from promote.core.result import Err, Ok, Result
from promote.output.console import ConsoleProtocol, Style
from promote.platform.files import remove_tree
from promote.release.errors import HostError, PromotionError
from promote.release.host import ReleaseHost
from promote.release.matrix import ASSET_MATRIX, expected_asset_names, missing_entries
from promote.release.model import FetchedAsset, MatrixEntry, SourceRelease
from promote.release.retry import Sleep, with_retry

__all__ = ["fetch_assets", "DOWNLOADS_DIR"]

DOWNLOADS_DIR = "downloads"


def _cancelled() -> HostError:
    return HostError(kind="failed", message="cancelled")


def _joined(future: Future[Result[FetchedAsset, HostError]]) -> Result[FetchedAsset, HostError]:
    try:
        return future.result()
    except Exception as e:  # noqa: BLE001
        return Err(HostError(kind="failed", message=f"unexpected error: {e!r}"))


def _fetch_one(
    host: ReleaseHost,
    source: SourceRelease,
    entry: MatrixEntry,
    name: str,
    *,
    dest_dir: Path,
    retry: RetryConfig,
    sleep: Sleep,
    cancel: threading.Event | None,
) -> Result[FetchedAsset, HostError]:
    if cancel is not None and cancel.is_set():
        return Err(_cancelled())

    result = with_retry(
        lambda: host.download_asset(source.tag, name, dest_dir),
        policy=retry,
        sleep=sleep,
        cancel=cancel,
    )
    if isinstance(result, Err):
        return result

    try:
        size = result.value.stat().st_size
    except OSError as e:
        return Err(HostError(kind="failed", message=f"downloaded file unreadable: {e}"))

    return Ok(
        FetchedAsset(
            entry=entry,
            path=result.value,
            source_tag=source.tag,
            source_name=name,
            size=size,
        )
    )


def fetch_assets(
    host: ReleaseHost,
    source: SourceRelease,
    *,
    staging_dir: Path,
    archive_ext: str,
    retry: RetryConfig,
    workers: int = len(ASSET_MATRIX),
    console: ConsoleProtocol | None = None,
    cancel: threading.Event | None = None,
    sleep: Sleep = _sleep,
) -> Result[dict[MatrixEntry, FetchedAsset], PromotionError]:
    """Download one asset per matrix entry from `source`.

    Every entry downloads into its own directory under
    `<staging_dir>/downloads/`, concurrently. The call returns only after all
    entries resolved.

    Returns:
        Ok with one FetchedAsset per entry (matrix order), or Err(fetch_failed)
        naming the failed entries. On Err no downloaded file is left behind.
    """
    attached = host.get_release_assets(source.tag)
    if isinstance(attached, Err):
        return Err(
            PromotionError(
                kind="fetch_failed",
                message=f"failed to list assets of {source.tag}",
                hint=attached.error.pretty(),
            )
        )

    missing = missing_entries(source.tag, archive_ext, attached.value)
    if missing:
        return Err(
            PromotionError(
                kind="fetch_failed",
                message=f"pre-release {source.tag} is missing assets",
                entries=tuple(e.slug for e in missing),
            )
        )

    names = expected_asset_names(source.tag, archive_ext)
    download_root = staging_dir / DOWNLOADS_DIR

    with ThreadPoolExecutor(max_workers=max(1, min(workers, len(names)))) as pool:
        futures = {
            entry: pool.submit(
                _fetch_one,
                host,
                source,
                entry,
                name,
                dest_dir=download_root / entry.slug,
                retry=retry,
                sleep=sleep,
                cancel=cancel,
            )
            for entry, name in names.items()
        }
        results = {entry: _joined(future) for entry, future in futures.items()}

    if cancel is not None and cancel.is_set():
        remove_tree(download_root)
        return Err(PromotionError(kind="cancelled", message="cancelled during fetch"))

    failed = {entry: r.error for entry, r in results.items() if isinstance(r, Err)}
    if failed:
        remove_tree(download_root)
        return Err(
            PromotionError(
                kind="fetch_failed",
                message=f"failed to download assets from {source.tag}",
                hint="; ".join(f"{e.slug}: {err.pretty()}" for e, err in failed.items()),
                entries=tuple(e.slug for e in failed),
            )
        )

    fetched: dict[MatrixEntry, FetchedAsset] = {}
    for entry, r in results.items():
        if isinstance(r, Ok):
            fetched[entry] = r.value
            if console is not None:
                console.print(f"fetched {r.value.source_name} ({r.value.size} bytes)", Style.DIM)
    return Ok(fetched)
