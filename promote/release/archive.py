"""Archive extraction, creation and content manifests.

This module provides:
- extract_archive: full extraction of a tar.gz, tar.xz or zip archive into an
  empty directory, refusing anything that could escape it
- create_archive: re-archive a directory tree into one of the same formats
- read_manifest / tree_manifest: (relative path -> kind, mode, digest) views
  of an archive or a directory, used to prove a repackage changed nothing

Regular files, directories and in-tree symlinks round-trip with their
relative paths, contents and permission bits. Tar hard links are extracted as
copies of their target.
"""

from __future__ import annotations

import hashlib
import lzma
import os
import shutil
import stat
import tarfile
import time
import zipfile
import zlib
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import IO, Literal

from promote.core.config import ARCHIVE_EXTENSIONS
from promote.core.result import Err, Ok, Result

__all__ = [
    "ArchiveError",
    "ExtractResult",
    "ManifestEntry",
    "Manifest",
    "archive_format",
    "extract_archive",
    "create_archive",
    "read_manifest",
    "tree_manifest",
    "manifest_mismatches",
    "sha256_file",
]

_TAR_READ_MODES = {"tar.gz": "r:gz", "tar.xz": "r:xz"}
_TAR_WRITE_MODES = {"tar.gz": "w:gz", "tar.xz": "w:xz"}

# Decompression errors that are not TarError/OSError subclasses.
_CORRUPT_ERRORS = (tarfile.TarError, zipfile.BadZipFile, EOFError, lzma.LZMAError, zlib.error)


@dataclass(frozen=True, slots=True)
class ArchiveError:
    """Archive processing error.

    Attributes:
        archive: Path to the archive (or directory) that failed
        message: Human-readable error message
    """

    archive: Path
    message: str

    def __str__(self) -> str:
        return f"{self.message}: {self.archive.name}"


@dataclass(frozen=True, slots=True)
class ExtractResult:
    dest: Path
    files_count: int  # regular files and symlinks


@dataclass(frozen=True, slots=True)
class ManifestEntry:
    """What a path holds: sha256 for files, link target for symlinks.

    `mode` is None when the archive records no permission bits (zip entries
    written without Unix attributes).
    """

    kind: Literal["file", "symlink"]
    mode: int | None
    digest: str


Manifest = dict[str, ManifestEntry]


def archive_format(name: str) -> str | None:
    """Container format for a file name, by its full extension."""
    lowered = name.lower()
    for ext in ARCHIVE_EXTENSIONS:
        if lowered.endswith(f".{ext}"):
            return ext
    return None


def _member_parts(member_name: str) -> tuple[str, ...] | None:
    """Normalized relative path components, () for the root entry, None if unsafe."""
    normalized = member_name.replace("\\", "/")
    if normalized.startswith("/"):
        return None

    parts = PurePosixPath(normalized).parts
    if any(part == ".." for part in parts):
        return None
    if parts and parts[0].endswith(":"):
        return None
    return parts


def _is_within_root(root: Path, target: Path) -> bool:
    try:
        return target.resolve().is_relative_to(root.resolve())
    except OSError:
        return False


def _link_stays_inside(parts: tuple[str, ...], linkname: str) -> bool:
    if not linkname or linkname.startswith("/"):
        return False
    joined = os.path.normpath(os.path.join(*parts[:-1], linkname) if parts[:-1] else linkname)
    return joined != ".." and not joined.startswith("../") and not os.path.isabs(joined)


def _sha256_stream(stream: IO[bytes]) -> str:
    h = hashlib.sha256()
    for chunk in iter(lambda: stream.read(1024 * 1024), b""):
        h.update(chunk)
    return h.hexdigest()


def sha256_file(path: Path) -> str:
    with path.open("rb") as f:
        return _sha256_stream(f)


class _Extractor:
    """Writes members into an empty destination, one archive at a time."""

    def __init__(self, archive: Path, dest: Path) -> None:
        self.archive = archive
        self.dest = dest
        self.root = dest.resolve()
        self.files_count = 0
        self._dirs: list[tuple[Path, int | None, float | None]] = []

    def fail(self, message: str) -> Err[ArchiveError]:
        return Err(ArchiveError(archive=self.archive, message=message))

    def target(self, parts: tuple[str, ...]) -> Path | None:
        target = self.dest.joinpath(*parts)
        if not _is_within_root(self.root, target.parent):
            return None
        return target

    def _clear(self, target: Path) -> None:
        if target.is_symlink() or target.is_file():
            target.unlink()

    def add_dir(self, target: Path, mode: int | None, mtime: float | None) -> None:
        target.mkdir(parents=True, exist_ok=True)
        self._dirs.append((target, mode, mtime))

    def add_file(self, target: Path, src: IO[bytes], mode: int | None, mtime: float | None) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        self._clear(target)
        with src, open(target, "wb") as dst:
            shutil.copyfileobj(src, dst)
        if mode is not None:
            os.chmod(target, mode)
        if mtime is not None:
            os.utime(target, (mtime, mtime))
        self.files_count += 1

    def add_symlink(self, target: Path, linkname: str) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        self._clear(target)
        os.symlink(linkname, target)
        self.files_count += 1

    def finish(self) -> Result[ExtractResult, ArchiveError]:
        if self.files_count == 0:
            return self.fail("archive is empty")
        # Deepest first, so read-only parents are applied last.
        for path, mode, mtime in sorted(self._dirs, key=lambda d: len(d[0].parts), reverse=True):
            if mode is not None:
                os.chmod(path, mode)
            if mtime is not None:
                os.utime(path, (mtime, mtime))
        return Ok(ExtractResult(dest=self.dest, files_count=self.files_count))


def _extract_tar(ex: _Extractor, fmt: str) -> Result[ExtractResult, ArchiveError]:
    with tarfile.open(ex.archive, _TAR_READ_MODES[fmt]) as tar:
        for member in tar.getmembers():
            parts = _member_parts(member.name)
            if parts is None:
                return ex.fail(f"unsafe member path {member.name!r}")
            if not parts:
                continue

            target = ex.target(parts)
            if target is None:
                return ex.fail(f"member escapes extraction root {member.name!r}")

            mode = member.mode & 0o777
            if member.isdir():
                ex.add_dir(target, mode, member.mtime)
            elif member.isreg() or member.islnk():
                if member.islnk() and _member_parts(member.linkname) is None:
                    return ex.fail(f"unsafe hard link {member.name!r} -> {member.linkname!r}")
                src = tar.extractfile(member)
                if src is None:
                    return ex.fail(f"unreadable member {member.name!r}")
                ex.add_file(target, src, mode, member.mtime)
            elif member.issym():
                if not _link_stays_inside(parts, member.linkname):
                    return ex.fail(f"symlink escapes archive {member.name!r} -> {member.linkname!r}")
                ex.add_symlink(target, member.linkname)
            else:
                return ex.fail(f"unsupported member type {member.name!r}")
    return ex.finish()


def _zip_unix_mode(info: zipfile.ZipInfo) -> int:
    return info.external_attr >> 16


def _zip_mtime(info: zipfile.ZipInfo) -> float:
    return time.mktime((*info.date_time, 0, 0, -1))


def _extract_zip(ex: _Extractor) -> Result[ExtractResult, ArchiveError]:
    with zipfile.ZipFile(ex.archive, "r") as zf:
        bad = zf.testzip()
        if bad is not None:
            return ex.fail(f"corrupt member {bad!r}")

        for info in zf.infolist():
            parts = _member_parts(info.filename)
            if parts is None:
                return ex.fail(f"unsafe member path {info.filename!r}")
            if not parts:
                continue

            target = ex.target(parts)
            if target is None:
                return ex.fail(f"member escapes extraction root {info.filename!r}")

            unix = _zip_unix_mode(info)
            mode = (unix & 0o777) or None
            if info.is_dir():
                ex.add_dir(target, mode, _zip_mtime(info))
            elif stat.S_ISLNK(unix):
                linkname = zf.read(info).decode("utf-8")
                if not _link_stays_inside(parts, linkname):
                    return ex.fail(f"symlink escapes archive {info.filename!r} -> {linkname!r}")
                ex.add_symlink(target, linkname)
            else:
                ex.add_file(target, zf.open(info), mode, _zip_mtime(info))
    return ex.finish()


def extract_archive(archive: Path, dest: Path) -> Result[ExtractResult, ArchiveError]:
    """Extract the whole archive into dest, which must be absent or empty.

    Fails on corrupt or empty archives, on absolute or `..` paths, on links
    pointing outside the tree and on device/fifo members.
    """
    if not archive.is_file():
        return Err(ArchiveError(archive=archive, message="archive not found"))

    fmt = archive_format(archive.name)
    if fmt is None:
        return Err(ArchiveError(archive=archive, message="unsupported archive format"))

    if dest.exists() and any(dest.iterdir()):
        return Err(ArchiveError(archive=archive, message=f"staging directory not empty: {dest}"))

    try:
        dest.mkdir(parents=True, exist_ok=True)
        ex = _Extractor(archive, dest)
        if fmt == "zip":
            return _extract_zip(ex)
        return _extract_tar(ex, fmt)
    except _CORRUPT_ERRORS as e:
        return Err(ArchiveError(archive=archive, message=f"corrupt archive ({e})"))
    except UnicodeDecodeError as e:
        return Err(ArchiveError(archive=archive, message=f"invalid symlink target ({e})"))
    except (OverflowError, ValueError) as e:
        return Err(ArchiveError(archive=archive, message=f"invalid member metadata ({e})"))
    except OSError as e:
        return Err(ArchiveError(archive=archive, message=f"IO error: {e}"))


def _iter_tree(root: Path) -> Iterator[Path]:
    """Relative paths under root, sorted, each directory before its contents."""
    with os.scandir(root) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        path = Path(entry.path)
        yield path.relative_to(root)
        if entry.is_dir(follow_symlinks=False):
            for sub in _iter_tree(path):
                yield path.relative_to(root) / sub


def _reset_owner(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    return info


def _zip_date_time(mtime: float) -> tuple[int, int, int, int, int, int]:
    # Zip cannot store timestamps before 1980.
    t = time.localtime(max(mtime, 315532800 + 86400))
    return (t.tm_year, t.tm_mon, t.tm_mday, t.tm_hour, t.tm_min, t.tm_sec)


def _create_zip(src_dir: Path, archive: Path) -> int:
    count = 0
    with zipfile.ZipFile(
        archive, "w", compression=zipfile.ZIP_DEFLATED, strict_timestamps=False
    ) as zf:
        for rel in _iter_tree(src_dir):
            path = src_dir / rel
            st = path.lstat()
            if stat.S_ISLNK(st.st_mode):
                info = zipfile.ZipInfo(rel.as_posix(), date_time=_zip_date_time(st.st_mtime))
                info.external_attr = (stat.S_IFLNK | 0o777) << 16
                zf.writestr(info, os.readlink(path))
                count += 1
            elif stat.S_ISDIR(st.st_mode):
                zf.write(path, arcname=rel.as_posix())
            else:
                zf.write(path, arcname=rel.as_posix())
                count += 1
    return count


def _create_tar(src_dir: Path, archive: Path, fmt: str) -> int:
    count = 0
    with tarfile.open(archive, _TAR_WRITE_MODES[fmt], format=tarfile.PAX_FORMAT) as tar:
        for rel in _iter_tree(src_dir):
            path = src_dir / rel
            tar.add(path, arcname=rel.as_posix(), recursive=False, filter=_reset_owner)
            if not path.is_dir() or path.is_symlink():
                count += 1
    return count


def create_archive(src_dir: Path, archive: Path) -> Result[int, ArchiveError]:
    """Archive the contents of src_dir (not src_dir itself) into archive.

    The format follows archive's extension. Returns the number of files and
    symlinks written.
    """
    fmt = archive_format(archive.name)
    if fmt is None:
        return Err(ArchiveError(archive=archive, message="unsupported archive format"))
    if not src_dir.is_dir():
        return Err(ArchiveError(archive=src_dir, message="source directory not found"))

    try:
        archive.parent.mkdir(parents=True, exist_ok=True)
        if fmt == "zip":
            count = _create_zip(src_dir, archive)
        else:
            count = _create_tar(src_dir, archive, fmt)
    except (tarfile.TarError, OSError, OverflowError, ValueError) as e:
        archive.unlink(missing_ok=True)
        return Err(ArchiveError(archive=archive, message=f"archive creation failed: {e}"))

    if count == 0:
        archive.unlink(missing_ok=True)
        return Err(ArchiveError(archive=src_dir, message="nothing to archive"))
    return Ok(count)


def _tar_manifest(archive: Path, fmt: str) -> Manifest:
    manifest: Manifest = {}
    with tarfile.open(archive, _TAR_READ_MODES[fmt]) as tar:
        for member in tar.getmembers():
            parts = _member_parts(member.name)
            if not parts:
                continue
            key = "/".join(parts)
            if member.issym():
                manifest[key] = ManifestEntry("symlink", None, member.linkname)
            elif member.isreg() or member.islnk():
                src = tar.extractfile(member)
                if src is None:
                    continue
                with src:
                    manifest[key] = ManifestEntry("file", member.mode & 0o777, _sha256_stream(src))
    return manifest


def _zip_manifest(archive: Path) -> Manifest:
    manifest: Manifest = {}
    with zipfile.ZipFile(archive, "r") as zf:
        for info in zf.infolist():
            parts = _member_parts(info.filename)
            if not parts or info.is_dir():
                continue
            key = "/".join(parts)
            unix = _zip_unix_mode(info)
            if stat.S_ISLNK(unix):
                manifest[key] = ManifestEntry("symlink", None, zf.read(info).decode("utf-8"))
            else:
                with zf.open(info) as src:
                    manifest[key] = ManifestEntry("file", (unix & 0o777) or None, _sha256_stream(src))
    return manifest


def read_manifest(archive: Path) -> Result[Manifest, ArchiveError]:
    """Files and symlinks recorded in an archive (directories are implied)."""
    fmt = archive_format(archive.name)
    if fmt is None:
        return Err(ArchiveError(archive=archive, message="unsupported archive format"))
    try:
        if fmt == "zip":
            return Ok(_zip_manifest(archive))
        return Ok(_tar_manifest(archive, fmt))
    except _CORRUPT_ERRORS as e:
        return Err(ArchiveError(archive=archive, message=f"corrupt archive ({e})"))
    except (OSError, ValueError) as e:
        return Err(ArchiveError(archive=archive, message=f"IO error: {e}"))


def tree_manifest(root: Path) -> Manifest:
    """Files and symlinks under a directory, keyed by relative POSIX path."""
    manifest: Manifest = {}
    for rel in _iter_tree(root):
        path = root / rel
        st = path.lstat()
        if stat.S_ISLNK(st.st_mode):
            manifest[rel.as_posix()] = ManifestEntry("symlink", None, os.readlink(path))
        elif stat.S_ISREG(st.st_mode):
            manifest[rel.as_posix()] = ManifestEntry(
                "file", stat.S_IMODE(st.st_mode) & 0o777, sha256_file(path)
            )
    return manifest


def manifest_mismatches(expected: Manifest, actual: Manifest) -> list[str]:
    """Paths that differ between two manifests, sorted.

    A None mode in `expected` matches any mode.
    """
    bad: set[str] = set(expected.keys() ^ actual.keys())
    for key in expected.keys() & actual.keys():
        want, got = expected[key], actual[key]
        if want.kind != got.kind or want.digest != got.digest:
            bad.add(key)
        elif want.mode is not None and want.mode != got.mode:
            bad.add(key)
    return sorted(bad)
