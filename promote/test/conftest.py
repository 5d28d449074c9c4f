from __future__ import annotations

import io
import stat
import tarfile
import zipfile
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta

import pytest

from promote.release.host import MockReleaseHost
from promote.release.matrix import ASSET_MATRIX, asset_name
from promote.release.model import MatrixEntry

SOURCE_TAG = "v1.2.0-pre3"
T0 = datetime(2026, 1, 10, 12, 0, tzinfo=UTC)

# path -> content, or (content, permission bits)
FileSpec = Mapping[str, bytes | tuple[bytes, int]]
MakeArchive = Callable[..., bytes]


def _split(content: bytes | tuple[bytes, int]) -> tuple[bytes, int]:
    if isinstance(content, tuple):
        return content
    return content, 0o644


def _tar_bytes(files: FileSpec, fmt: str, symlinks: Mapping[str, str]) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode={"tar.gz": "w:gz", "tar.xz": "w:xz"}[fmt]) as tar:
        root = tarfile.TarInfo(".")
        root.type = tarfile.DIRTYPE
        root.mode = 0o755
        tar.addfile(root)
        for name, content in files.items():
            data, perm = _split(content)
            info = tarfile.TarInfo(f"./{name}")
            info.size = len(data)
            info.mode = perm
            info.mtime = 1_700_000_000
            tar.addfile(info, io.BytesIO(data))
        for name, target in symlinks.items():
            info = tarfile.TarInfo(f"./{name}")
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tar.addfile(info)
    return buf.getvalue()


def _zip_bytes(files: FileSpec, symlinks: Mapping[str, str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in files.items():
            data, perm = _split(content)
            info = zipfile.ZipInfo(name, date_time=(2024, 1, 1, 0, 0, 0))
            info.external_attr = (stat.S_IFREG | perm) << 16
            zf.writestr(info, data)
        for name, target in symlinks.items():
            info = zipfile.ZipInfo(name, date_time=(2024, 1, 1, 0, 0, 0))
            info.external_attr = (stat.S_IFLNK | 0o777) << 16
            zf.writestr(info, target)
    return buf.getvalue()


@pytest.fixture
def make_archive() -> MakeArchive:
    """Build archive bytes: make_archive({"bin/tool": (b"..", 0o755)}, fmt="zip")."""

    def make(
        files: FileSpec, fmt: str = "tar.gz", *, symlinks: Mapping[str, str] | None = None
    ) -> bytes:
        if fmt == "zip":
            return _zip_bytes(files, symlinks or {})
        return _tar_bytes(files, fmt, symlinks or {})

    return make


def entry_files(entry: MatrixEntry) -> dict[str, bytes | tuple[bytes, int]]:
    return {
        "bin/node": (f"node-{entry.slug}".encode(), 0o755),
        "config/network.toml": f"network = '{entry.network.value}'\n".encode(),
        "README.md": b"# node\n",
    }


@pytest.fixture
def seeded_host(make_archive: MakeArchive) -> MockReleaseHost:
    """Host with an older pre-release, the source pre-release, and a stable release."""
    host = MockReleaseHost()
    host.add_release("v1.0.0", created_at=T0 - timedelta(days=30), prerelease=False)
    host.add_release(
        "v1.1.0-pre1",
        created_at=T0 - timedelta(days=1),
        assets={asset_name("v1.1.0-pre1", e, "tar.gz"): b"old" for e in ASSET_MATRIX},
    )
    host.add_release(
        SOURCE_TAG,
        created_at=T0,
        assets={
            asset_name(SOURCE_TAG, e, "tar.gz"): make_archive(entry_files(e)) for e in ASSET_MATRIX
        },
    )
    return host


@pytest.fixture
def source_tag() -> str:
    return SOURCE_TAG


@pytest.fixture
def files_for() -> Callable[[MatrixEntry], dict[str, bytes | tuple[bytes, int]]]:
    return entry_files
