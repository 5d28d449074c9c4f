from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path


class Platform(Enum):
    """Build platforms, valued by their spelling in asset names."""

    LINUX = "Linux"
    MACOS_X86 = "macOS-x86"
    MACOS_ARM64 = "macOS-arm64"

    def __str__(self) -> str:
        return self.value


class Network(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class MatrixEntry:
    """One (platform, network) combination requiring its own artifact."""

    platform: Platform
    network: Network

    @property
    def slug(self) -> str:
        """`Linux-mainnet`; also names the entry's staging directories."""
        return f"{self.platform.value}-{self.network.value}"

    def __str__(self) -> str:
        return self.slug


@dataclass(frozen=True, slots=True)
class SourceRelease:
    """A release record on the host, as returned by list_releases."""

    tag: str
    created_at: datetime
    prerelease: bool
    draft: bool = False
    assets: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class FetchedAsset:
    entry: MatrixEntry
    path: Path
    source_tag: str
    source_name: str
    size: int


@dataclass(frozen=True, slots=True)
class RepackagedAsset:
    entry: MatrixEntry
    name: str
    path: Path
    files_count: int
    sha256: str
    source: FetchedAsset


@dataclass(frozen=True, slots=True)
class ReleaseHandle:
    """Target release record as seen right after create-or-get."""

    tag: str
    draft: bool
    prerelease: bool
    created: bool  # False: the record already existed
    assets: tuple[str, ...] = ()
    url: str | None = None


@dataclass(frozen=True, slots=True)
class TargetRelease:
    """A fully populated, published release record."""

    tag: str
    draft: bool
    prerelease: bool
    assets: tuple[str, ...]
    reused: bool = False  # complete record found, nothing uploaded
    url: str | None = None
