"""The fixed artifact matrix and its naming convention.

Every release carries exactly one archive per (platform, network) pair, named
`<tag>-<Platform>-<Network>.<ext>`. Fetching (source tag) and publishing
(target tag) both derive names from here so the two sides always agree.
"""

from __future__ import annotations

from collections.abc import Iterable

from promote.release.model import MatrixEntry, Network, Platform

__all__ = [
    "ASSET_MATRIX",
    "MATRIX_SIZE",
    "asset_name",
    "expected_asset_names",
    "missing_entries",
    "unexpected_names",
]


ASSET_MATRIX: tuple[MatrixEntry, ...] = (
    MatrixEntry(Platform.LINUX, Network.TESTNET),
    MatrixEntry(Platform.LINUX, Network.MAINNET),
    MatrixEntry(Platform.MACOS_X86, Network.TESTNET),
    MatrixEntry(Platform.MACOS_X86, Network.MAINNET),
    MatrixEntry(Platform.MACOS_ARM64, Network.TESTNET),
    MatrixEntry(Platform.MACOS_ARM64, Network.MAINNET),
)

MATRIX_SIZE = len(Platform) * len(Network)
assert len(ASSET_MATRIX) == MATRIX_SIZE and len(set(ASSET_MATRIX)) == MATRIX_SIZE


def asset_name(tag: str, entry: MatrixEntry, archive_ext: str) -> str:
    return f"{tag}-{entry.slug}.{archive_ext}"


def expected_asset_names(tag: str, archive_ext: str) -> dict[MatrixEntry, str]:
    """Expected asset name per entry, in matrix order."""
    return {entry: asset_name(tag, entry, archive_ext) for entry in ASSET_MATRIX}


def missing_entries(tag: str, archive_ext: str, attached: Iterable[str]) -> tuple[MatrixEntry, ...]:
    """Entries whose asset is not among `attached`, in matrix order."""
    present = set(attached)
    return tuple(
        entry
        for entry, name in expected_asset_names(tag, archive_ext).items()
        if name not in present
    )


def unexpected_names(tag: str, archive_ext: str, attached: Iterable[str]) -> tuple[str, ...]:
    """Attached names that do not belong to the matrix for `tag`, sorted."""
    expected = set(expected_asset_names(tag, archive_ext).values())
    return tuple(sorted(set(attached) - expected))
