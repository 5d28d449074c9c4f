"""Repackaging of fetched archives under the target tag's name.

Each entry is extracted into its own empty directory, re-archived as
`<targetTag>-<Platform>-<Network>.<ext>` and then checked: the new archive
must hold exactly the files of the source archive (paths, contents, modes).
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

from promote.core.result import Err, Ok, Result
from promote.output.console import ConsoleProtocol, Style
from promote.release.archive import (
    create_archive,
    extract_archive,
    manifest_mismatches,
    read_manifest,
    sha256_file,
    tree_manifest,
)
from promote.release.errors import PromotionError
from promote.release.matrix import asset_name
from promote.release.model import FetchedAsset, MatrixEntry, RepackagedAsset

__all__ = ["repackage", "repackage_all", "EXTRACT_DIR", "OUTPUT_DIR"]

EXTRACT_DIR = "extract"
OUTPUT_DIR = "out"


def _extraction_error(entry: MatrixEntry, message: str) -> Err[PromotionError]:
    return Err(
        PromotionError(
            kind="extraction_failed",
            message=f"failed to repackage {entry.slug}",
            hint=message,
            entries=(entry.slug,),
        )
    )


def _joined(
    entry: MatrixEntry, future: Future[Result[RepackagedAsset, PromotionError]]
) -> Result[RepackagedAsset, PromotionError]:
    try:
        return future.result()
    except Exception as e:  # noqa: BLE001
        return _extraction_error(entry, f"unexpected error: {e!r}")


def repackage(
    fetched: FetchedAsset,
    target_tag: str,
    *,
    staging_dir: Path,
    archive_ext: str,
) -> Result[RepackagedAsset, PromotionError]:
    entry = fetched.entry
    extract_dir = staging_dir / EXTRACT_DIR / entry.slug
    name = asset_name(target_tag, entry, archive_ext)
    output = staging_dir / OUTPUT_DIR / name

    extracted = extract_archive(fetched.path, extract_dir)
    if isinstance(extracted, Err):
        return _extraction_error(entry, str(extracted.error))

    source_manifest = read_manifest(fetched.path)
    if isinstance(source_manifest, Err):
        return _extraction_error(entry, str(source_manifest.error))

    try:
        extracted_manifest = tree_manifest(extract_dir)
    except (OSError, ValueError) as e:
        return _extraction_error(entry, f"cannot read extracted tree: {e}")

    on_disk = manifest_mismatches(source_manifest.value, extracted_manifest)
    if on_disk:
        return _extraction_error(entry, f"extracted tree differs from archive: {', '.join(on_disk)}")

    created = create_archive(extract_dir, output)
    if isinstance(created, Err):
        return _extraction_error(entry, str(created.error))

    output_manifest = read_manifest(output)
    if isinstance(output_manifest, Err):
        return _extraction_error(entry, str(output_manifest.error))

    repacked = manifest_mismatches(source_manifest.value, output_manifest.value)
    if repacked:
        return _extraction_error(entry, f"repackaged archive differs from source: {', '.join(repacked)}")

    try:
        digest = sha256_file(output)
    except OSError as e:
        return _extraction_error(entry, f"IO error: {e}")

    return Ok(
        RepackagedAsset(
            entry=entry,
            name=name,
            path=output,
            files_count=created.value,
            sha256=digest,
            source=fetched,
        )
    )


def repackage_all(
    fetched: Mapping[MatrixEntry, FetchedAsset],
    target_tag: str,
    *,
    staging_dir: Path,
    archive_ext: str,
    workers: int = 1,
    console: ConsoleProtocol | None = None,
    cancel: threading.Event | None = None,
) -> Result[dict[MatrixEntry, RepackagedAsset], PromotionError]:
    """Repackage every fetched asset; any failure fails the whole step.

    The returned mapping keeps the order of `fetched`.
    """
    if cancel is not None and cancel.is_set():
        return Err(PromotionError(kind="cancelled", message="cancelled before repackaging"))

    with ThreadPoolExecutor(max_workers=max(1, min(workers, len(fetched) or 1))) as pool:
        futures = {
            entry: pool.submit(
                repackage,
                asset,
                target_tag,
                staging_dir=staging_dir,
                archive_ext=archive_ext,
            )
            for entry, asset in fetched.items()
        }
        results = {entry: _joined(entry, future) for entry, future in futures.items()}

    failed = [r.error for r in results.values() if isinstance(r, Err)]
    if failed:
        return Err(
            PromotionError(
                kind="extraction_failed",
                message="failed to repackage assets",
                hint="; ".join(f"{e.entries[0]}: {e.hint}" for e in failed),
                entries=tuple(e.entries[0] for e in failed),
            )
        )

    out: dict[MatrixEntry, RepackagedAsset] = {}
    for entry, r in results.items():
        if isinstance(r, Ok):
            out[entry] = r.value
            if console is not None:
                console.print(
                    f"repackaged {r.value.source.source_name} -> {r.value.name} "
                    f"({r.value.files_count} files)",
                    Style.DIM,
                )
    return Ok(out)
