from __future__ import annotations

import io
import os
import stat
import tarfile
from pathlib import Path

import pytest

from promote.core.result import Err, Ok
from promote.release.archive import (
    ManifestEntry,
    archive_format,
    create_archive,
    extract_archive,
    manifest_mismatches,
    read_manifest,
    tree_manifest,
)


def _write(path: Path, data: bytes) -> Path:
    path.write_bytes(data)
    return path


@pytest.mark.parametrize(
    ("name", "fmt"),
    [
        ("a.tar.gz", "tar.gz"),
        ("A.TAR.XZ", "tar.xz"),
        ("a.zip", "zip"),
        ("a.tgz", None),
        ("a.gz", None),
    ],
)
def test_archive_format(name: str, fmt: str | None) -> None:
    assert archive_format(name) == fmt


@pytest.mark.parametrize("fmt", ["tar.gz", "tar.xz", "zip"])
def test_extract_restores_paths_contents_and_modes(
    make_archive, tmp_path: Path, fmt: str
) -> None:
    archive = _write(
        tmp_path / f"src.{fmt}",
        make_archive({"bin/tool": (b"#!/bin/sh\n", 0o755), "etc/conf": b"x = 1\n"}, fmt),
    )
    dest = tmp_path / "out"

    result = extract_archive(archive, dest)

    assert isinstance(result, Ok)
    assert result.value.files_count == 2
    assert (dest / "bin" / "tool").read_bytes() == b"#!/bin/sh\n"
    assert stat.S_IMODE((dest / "bin" / "tool").stat().st_mode) == 0o755
    assert stat.S_IMODE((dest / "etc" / "conf").stat().st_mode) == 0o644


def test_extract_refuses_non_empty_destination(make_archive, tmp_path: Path) -> None:
    archive = _write(tmp_path / "a.tar.gz", make_archive({"f": b"1"}))
    dest = tmp_path / "out"
    dest.mkdir()
    (dest / "stale").write_text("x", encoding="utf-8")

    result = extract_archive(archive, dest)
    assert isinstance(result, Err)
    assert "not empty" in result.error.message


def test_extract_corrupt_archive(tmp_path: Path) -> None:
    archive = _write(tmp_path / "a.tar.gz", b"\x1f\x8bnot really gzip")
    result = extract_archive(archive, tmp_path / "out")
    assert isinstance(result, Err)
    assert "corrupt" in result.error.message


def test_extract_truncated_archive(make_archive, tmp_path: Path) -> None:
    data = make_archive({"big": os.urandom(64 * 1024)})
    archive = _write(tmp_path / "a.tar.gz", data[: len(data) // 2])
    result = extract_archive(archive, tmp_path / "out")
    assert isinstance(result, Err)


@pytest.mark.parametrize("fmt", ["tar.gz", "zip"])
def test_extract_empty_archive(make_archive, tmp_path: Path, fmt: str) -> None:
    archive = _write(tmp_path / f"a.{fmt}", make_archive({}, fmt))
    result = extract_archive(archive, tmp_path / "out")
    assert isinstance(result, Err)
    assert result.error.message == "archive is empty"


def test_extract_unsupported_format(tmp_path: Path) -> None:
    archive = _write(tmp_path / "a.rar", b"Rar!")
    result = extract_archive(archive, tmp_path / "out")
    assert isinstance(result, Err)
    assert str(result.error) == "unsupported archive format: a.rar"


@pytest.mark.parametrize("member", ["../evil", "/etc/evil", "a/../../evil"])
def test_extract_rejects_path_traversal(make_archive, tmp_path: Path, member: str) -> None:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        info = tarfile.TarInfo(member)
        info.size = 1
        tar.addfile(info, io.BytesIO(b"x"))
    archive = _write(tmp_path / "a.tar.gz", buf.getvalue())

    result = extract_archive(archive, tmp_path / "out")
    assert isinstance(result, Err)
    assert not (tmp_path / "evil").exists()


@pytest.mark.parametrize("fmt", ["tar.gz", "zip"])
def test_extract_rejects_escaping_symlink(make_archive, tmp_path: Path, fmt: str) -> None:
    archive = _write(
        tmp_path / f"a.{fmt}",
        make_archive({"f": b"1"}, fmt, symlinks={"lib/link": "../../outside"}),
    )
    result = extract_archive(archive, tmp_path / "out")
    assert isinstance(result, Err)
    assert "symlink" in result.error.message


def test_extract_rejects_device_members(tmp_path: Path) -> None:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        info = tarfile.TarInfo("dev/null")
        info.type = tarfile.CHRTYPE
        tar.addfile(info)
    archive = _write(tmp_path / "a.tar.gz", buf.getvalue())

    result = extract_archive(archive, tmp_path / "out")
    assert isinstance(result, Err)
    assert "unsupported member type" in result.error.message


def test_extract_out_of_range_mtime_is_an_error(tmp_path: Path) -> None:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz", format=tarfile.PAX_FORMAT) as tar:
        info = tarfile.TarInfo("bin/tool")
        info.size = 4
        info.mode = 0o755
        info.mtime = 10**20
        tar.addfile(info, io.BytesIO(b"tool"))
    archive = _write(tmp_path / "a.tar.gz", buf.getvalue())

    result = extract_archive(archive, tmp_path / "out")

    assert isinstance(result, Err)
    assert "invalid member metadata" in result.error.message


def test_hard_links_are_extracted_as_copies(tmp_path: Path) -> None:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        info = tarfile.TarInfo("bin/tool")
        info.size = 4
        info.mode = 0o755
        tar.addfile(info, io.BytesIO(b"tool"))
        link = tarfile.TarInfo("bin/alias")
        link.type = tarfile.LNKTYPE
        link.linkname = "bin/tool"
        link.mode = 0o755
        tar.addfile(link)
    archive = _write(tmp_path / "a.tar.gz", buf.getvalue())
    dest = tmp_path / "out"

    result = extract_archive(archive, dest)

    assert isinstance(result, Ok)
    assert (dest / "bin" / "alias").read_bytes() == b"tool"
    assert not (dest / "bin" / "alias").is_symlink()


@pytest.mark.parametrize("fmt", ["tar.gz", "tar.xz", "zip"])
def test_create_archive_preserves_tree(make_archive, tmp_path: Path, fmt: str) -> None:
    src = _write(
        tmp_path / f"src.{fmt}",
        make_archive(
            {"bin/tool": (b"tool", 0o750), "README": b"hi", "empty.txt": b""},
            fmt,
            symlinks={"bin/current": "tool"},
        ),
    )
    tree = tmp_path / "tree"
    assert isinstance(extract_archive(src, tree), Ok)

    out = tmp_path / f"out.{fmt}"
    created = create_archive(tree, out)

    assert created == Ok(4)
    source_manifest = read_manifest(src)
    output_manifest = read_manifest(out)
    assert isinstance(source_manifest, Ok)
    assert isinstance(output_manifest, Ok)
    assert manifest_mismatches(source_manifest.value, output_manifest.value) == []
    assert output_manifest.value["bin/current"] == ManifestEntry("symlink", None, "tool")
    assert output_manifest.value["bin/tool"].mode == 0o750


def test_create_archive_members_are_relative(tmp_path: Path) -> None:
    tree = tmp_path / "tree"
    (tree / "sub").mkdir(parents=True)
    (tree / "sub" / "f").write_bytes(b"1")
    out = tmp_path / "out.tar.gz"

    assert create_archive(tree, out) == Ok(1)
    with tarfile.open(out, "r:gz") as tar:
        names = tar.getnames()
        assert names == ["sub", "sub/f"]
        assert all(m.uid == 0 and m.uname == "" for m in tar.getmembers())


def test_create_archive_from_empty_dir_fails(tmp_path: Path) -> None:
    tree = tmp_path / "tree"
    tree.mkdir()
    out = tmp_path / "out.tar.gz"

    result = create_archive(tree, out)
    assert isinstance(result, Err)
    assert not out.exists()


def test_tree_manifest_and_mismatches(tmp_path: Path) -> None:
    tree = tmp_path / "tree"
    tree.mkdir()
    (tree / "a").write_bytes(b"1")
    (tree / "a").chmod(0o644)
    manifest = tree_manifest(tree)
    assert set(manifest) == {"a"}

    changed = dict(manifest)
    changed["a"] = ManifestEntry("file", 0o600, manifest["a"].digest)
    changed["b"] = ManifestEntry("file", 0o644, "x")
    assert manifest_mismatches(manifest, changed) == ["a", "b"]

    wildcard = {"a": ManifestEntry("file", None, manifest["a"].digest)}
    assert manifest_mismatches(wildcard, manifest) == []
