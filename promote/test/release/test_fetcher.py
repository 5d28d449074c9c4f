from __future__ import annotations

import threading
from pathlib import Path

import pytest

from promote.core.config import RetryConfig
from promote.core.result import Err, Ok
from promote.output.console import MockConsole
from promote.release.errors import HostError
from promote.release.fetcher import DOWNLOADS_DIR, fetch_assets
from promote.release.host import MockReleaseHost
from promote.release.locator import locate_source_release
from promote.release.matrix import ASSET_MATRIX, asset_name
from promote.release.model import SourceRelease

FAST = RetryConfig(attempts=3, delay_seconds=0.0)


def _source(host: MockReleaseHost) -> SourceRelease:
    located = locate_source_release(host)
    assert isinstance(located, Ok)
    return located.value


def _no_sleep(seconds: float) -> None:
    del seconds


def test_fetches_every_entry_into_its_own_directory(
    seeded_host: MockReleaseHost, source_tag: str, tmp_path: Path
) -> None:
    console = MockConsole()
    result = fetch_assets(
        seeded_host,
        _source(seeded_host),
        staging_dir=tmp_path,
        archive_ext="tar.gz",
        retry=FAST,
        console=console,
        sleep=_no_sleep,
    )

    assert isinstance(result, Ok)
    assert list(result.value) == list(ASSET_MATRIX)
    for entry, asset in result.value.items():
        assert asset.path == tmp_path / DOWNLOADS_DIR / entry.slug / asset.source_name
        assert asset.source_name == asset_name(source_tag, entry, "tar.gz")
        assert asset.path.read_bytes() == seeded_host.releases[source_tag].assets[asset.source_name]
        assert asset.size == asset.path.stat().st_size
    assert len(console.find("fetched ")) == len(ASSET_MATRIX)


def test_missing_asset_fails_before_downloading(
    seeded_host: MockReleaseHost, source_tag: str, tmp_path: Path
) -> None:
    assets = seeded_host.releases[source_tag].assets
    del assets[asset_name(source_tag, ASSET_MATRIX[3], "tar.gz")]

    result = fetch_assets(
        seeded_host,
        _source(seeded_host),
        staging_dir=tmp_path,
        archive_ext="tar.gz",
        retry=FAST,
        sleep=_no_sleep,
    )

    assert isinstance(result, Err)
    assert result.error.kind == "fetch_failed"
    assert result.error.entries == ("macOS-x86-mainnet",)
    assert seeded_host.calls_to("download_asset") == []
    assert not (tmp_path / DOWNLOADS_DIR).exists()


def test_transient_download_errors_are_retried(
    seeded_host: MockReleaseHost, source_tag: str, tmp_path: Path
) -> None:
    name = asset_name(source_tag, ASSET_MATRIX[0], "tar.gz")
    seeded_host.fail_download(
        name,
        HostError(kind="transient", message="HTTP 502"),
        HostError(kind="transient", message="HTTP 503"),
    )

    result = fetch_assets(
        seeded_host,
        _source(seeded_host),
        staging_dir=tmp_path,
        archive_ext="tar.gz",
        retry=FAST,
        sleep=_no_sleep,
    )

    assert isinstance(result, Ok)
    assert seeded_host.calls_to("download_asset").count(name) == 3


def test_any_failed_entry_fails_the_step_and_cleans_up(
    seeded_host: MockReleaseHost, source_tag: str, tmp_path: Path
) -> None:
    bad = [ASSET_MATRIX[1], ASSET_MATRIX[4]]
    for entry in bad:
        seeded_host.fail_download(
            asset_name(source_tag, entry, "tar.gz"),
            *[HostError(kind="transient", message="HTTP 503")] * FAST.attempts,
        )

    result = fetch_assets(
        seeded_host,
        _source(seeded_host),
        staging_dir=tmp_path,
        archive_ext="tar.gz",
        retry=FAST,
        sleep=_no_sleep,
    )

    assert isinstance(result, Err)
    assert result.error.kind == "fetch_failed"
    assert result.error.entries == ("Linux-mainnet", "macOS-arm64-testnet")
    assert "HTTP 503" in (result.error.hint or "")
    assert not (tmp_path / DOWNLOADS_DIR).exists()


def test_unexpected_download_error_fails_the_entry(
    seeded_host: MockReleaseHost,
    source_tag: str,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    broken = asset_name(source_tag, ASSET_MATRIX[5], "tar.gz")
    real = seeded_host.download_asset

    def download(tag: str, name: str, dest_dir: Path):
        if name == broken:
            raise PermissionError("read-only staging")
        return real(tag, name, dest_dir)

    monkeypatch.setattr(seeded_host, "download_asset", download)

    result = fetch_assets(
        seeded_host,
        _source(seeded_host),
        staging_dir=tmp_path,
        archive_ext="tar.gz",
        retry=FAST,
        sleep=_no_sleep,
    )

    assert isinstance(result, Err)
    assert result.error.kind == "fetch_failed"
    assert result.error.entries == ("macOS-arm64-mainnet",)
    assert "read-only staging" in (result.error.hint or "")
    assert not (tmp_path / DOWNLOADS_DIR).exists()


def test_non_transient_error_is_not_retried(
    seeded_host: MockReleaseHost, source_tag: str, tmp_path: Path
) -> None:
    name = asset_name(source_tag, ASSET_MATRIX[2], "tar.gz")
    seeded_host.fail_download(name, HostError(kind="failed", message="HTTP 403"))

    result = fetch_assets(
        seeded_host,
        _source(seeded_host),
        staging_dir=tmp_path,
        archive_ext="tar.gz",
        retry=FAST,
        sleep=_no_sleep,
    )

    assert isinstance(result, Err)
    assert result.error.entries == ("macOS-x86-testnet",)
    assert seeded_host.calls_to("download_asset").count(name) == 1


def test_unreadable_source_release(seeded_host: MockReleaseHost, tmp_path: Path) -> None:
    source = _source(seeded_host)
    del seeded_host.releases[source.tag]

    result = fetch_assets(
        seeded_host, source, staging_dir=tmp_path, archive_ext="tar.gz", retry=FAST
    )
    assert isinstance(result, Err)
    assert result.error.kind == "fetch_failed"


@pytest.mark.parametrize("workers", [1, 6])
def test_result_independent_of_worker_count(
    seeded_host: MockReleaseHost, tmp_path: Path, workers: int
) -> None:
    result = fetch_assets(
        seeded_host,
        _source(seeded_host),
        staging_dir=tmp_path,
        archive_ext="tar.gz",
        retry=FAST,
        workers=workers,
    )
    assert isinstance(result, Ok)
    assert list(result.value) == list(ASSET_MATRIX)


def test_cancelled_fetch(seeded_host: MockReleaseHost, tmp_path: Path) -> None:
    cancel = threading.Event()
    cancel.set()

    result = fetch_assets(
        seeded_host,
        _source(seeded_host),
        staging_dir=tmp_path,
        archive_ext="tar.gz",
        retry=FAST,
        cancel=cancel,
    )

    assert isinstance(result, Err)
    assert result.error.kind == "cancelled"
    assert seeded_host.calls_to("download_asset") == []
