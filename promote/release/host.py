"""Release host abstraction.

This module provides:
- ReleaseHost: Protocol for the operations the pipeline needs (injectable)
- GhReleaseHost: GitHub Releases through the gh CLI
- MockReleaseHost: in-memory host with failure injection, for tests
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from promote.core.result import Err, Ok, Result
from promote.core.structured import as_obj_list, as_str_dict, get_list, get_str
from promote.release.errors import HostError
from promote.release.gh import gh_json, run_gh
from promote.release.model import ReleaseHandle, SourceRelease
from promote.release.timeouts import GH_RELEASES_PAGE_SIZE, GH_TRANSFER_TIMEOUT_SECONDS

__all__ = [
    "ReleaseHost",
    "GhReleaseHost",
    "MockReleaseHost",
    "MockRelease",
    "parse_timestamp",
]


@runtime_checkable
class ReleaseHost(Protocol):
    """Operations the promotion pipeline performs against the release host."""

    def list_releases(self, *, prerelease: bool) -> Result[list[SourceRelease], HostError]:
        """Releases whose prerelease flag equals `prerelease`, oldest first."""
        ...

    def get_release_assets(self, tag: str) -> Result[tuple[str, ...], HostError]:
        """Names of the assets attached to the release for `tag`."""
        ...

    def download_asset(self, tag: str, name: str, dest_dir: Path) -> Result[Path, HostError]:
        """Download one asset into dest_dir; returns the written file path."""
        ...

    def create_or_get_release(
        self, tag: str, *, draft: bool, prerelease: bool
    ) -> Result[ReleaseHandle, HostError]:
        """Return the release for `tag`, creating it with the given flags if absent."""
        ...

    def upload_asset(self, handle: ReleaseHandle, name: str, path: Path) -> Result[None, HostError]:
        ...

    def delete_release(self, tag: str) -> Result[None, HostError]:
        """Delete the release record (never the git tag)."""
        ...


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO 8601 timestamp as returned by the GitHub API (UTC if naive)."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _asset_names(items: list[object] | None) -> tuple[str, ...]:
    names: list[str] = []
    for item in items or []:
        d = as_str_dict(item)
        if d is None:
            continue
        name = get_str(d, "name")
        if name is not None:
            names.append(name)
    return tuple(names)


class GhReleaseHost:
    """GitHub Releases through the gh CLI.

    Relies on gh's own authentication (gh auth login, GH_TOKEN/GITHUB_TOKEN).
    Metadata reads are retried on transient errors; transfers are single
    attempts, retried by the caller under its own budget.
    """

    def __init__(
        self,
        repo: str,
        *,
        workspace_root: Path | None = None,
        transfer_timeout: float = GH_TRANSFER_TIMEOUT_SECONDS,
    ) -> None:
        self.repo = repo
        self.workspace_root = workspace_root or Path.cwd()
        self.transfer_timeout = transfer_timeout

    def list_releases(self, *, prerelease: bool) -> Result[list[SourceRelease], HostError]:
        endpoint = f"repos/{self.repo}/releases?per_page={GH_RELEASES_PAGE_SIZE}"
        obj = gh_json(
            workspace_root=self.workspace_root,
            cmd=["gh", "api", "--paginate", "--slurp", endpoint],
            message=f"failed to list releases: {self.repo}",
        )
        if isinstance(obj, Err):
            return obj

        # --slurp wraps every page in one outer array.
        pages = as_obj_list(obj.value)
        if pages is None:
            return Err(
                HostError(kind="invalid_payload", message=f"unexpected releases payload: {self.repo}")
            )
        raw: list[object] = []
        for page in pages:
            items = as_obj_list(page)
            if items is None:
                return Err(
                    HostError(kind="invalid_payload", message=f"unexpected releases page: {self.repo}")
                )
            raw.extend(items)

        out: list[SourceRelease] = []
        for item in raw:
            d = as_str_dict(item)
            if d is None:
                continue

            tag = get_str(d, "tag_name")
            created = get_str(d, "created_at")
            prerelease_obj = d.get("prerelease")
            draft_obj = d.get("draft")
            if tag is None or created is None or not isinstance(prerelease_obj, bool):
                continue
            if prerelease_obj != prerelease:
                continue

            created_at = parse_timestamp(created)
            if created_at is None:
                continue

            out.append(
                SourceRelease(
                    tag=tag,
                    created_at=created_at,
                    prerelease=prerelease_obj,
                    draft=draft_obj is True,
                    assets=_asset_names(get_list(d, "assets")),
                )
            )

        out.sort(key=lambda r: r.created_at)
        return Ok(out)

    def _view(self, tag: str) -> Result[dict[str, object], HostError]:
        obj = gh_json(
            workspace_root=self.workspace_root,
            cmd=[
                "gh",
                "release",
                "view",
                tag,
                "--repo",
                self.repo,
                "--json",
                "tagName,isDraft,isPrerelease,assets,url",
            ],
            message=f"failed to view release: {tag}",
        )
        if isinstance(obj, Err):
            return obj

        data = as_str_dict(obj.value)
        if data is None:
            return Err(HostError(kind="invalid_payload", message=f"unexpected release payload: {tag}"))
        return Ok(data)

    def get_release_assets(self, tag: str) -> Result[tuple[str, ...], HostError]:
        data = self._view(tag)
        if isinstance(data, Err):
            return data
        return Ok(_asset_names(get_list(data.value, "assets")))

    def download_asset(self, tag: str, name: str, dest_dir: Path) -> Result[Path, HostError]:
        dest_dir.mkdir(parents=True, exist_ok=True)
        result = run_gh(
            workspace_root=self.workspace_root,
            cmd=[
                "gh",
                "release",
                "download",
                tag,
                "--repo",
                self.repo,
                "--pattern",
                name,
                "--dir",
                str(dest_dir),
                "--clobber",
            ],
            message=f"failed to download {name}",
            timeout=self.transfer_timeout,
        )
        if isinstance(result, Err):
            return result

        path = dest_dir / name
        if not path.is_file():
            return Err(
                HostError(kind="failed", message=f"download produced no file: {name}", hint=str(dest_dir))
            )
        return Ok(path)

    def create_or_get_release(
        self, tag: str, *, draft: bool, prerelease: bool
    ) -> Result[ReleaseHandle, HostError]:
        existing = self._view(tag)
        if isinstance(existing, Ok):
            data = existing.value
            return Ok(
                ReleaseHandle(
                    tag=tag,
                    draft=data.get("isDraft") is True,
                    prerelease=data.get("isPrerelease") is True,
                    created=False,
                    assets=_asset_names(get_list(data, "assets")),
                    url=get_str(data, "url"),
                )
            )
        if existing.error.kind != "not_found":
            return existing

        cmd = [
            "gh",
            "release",
            "create",
            tag,
            "--repo",
            self.repo,
            "--title",
            tag,
            "--notes",
            "",
            "--verify-tag",
        ]
        if draft:
            cmd.append("--draft")
        if prerelease:
            cmd.append("--prerelease")

        created = run_gh(
            workspace_root=self.workspace_root,
            cmd=cmd,
            message=f"failed to create release: {tag}",
        )
        if isinstance(created, Err):
            return created

        return Ok(
            ReleaseHandle(
                tag=tag,
                draft=draft,
                prerelease=prerelease,
                created=True,
                url=created.value.strip() or None,
            )
        )

    def upload_asset(self, handle: ReleaseHandle, name: str, path: Path) -> Result[None, HostError]:
        # gh names the asset after the file.
        if path.name != name:
            return Err(
                HostError(kind="failed", message=f"asset file name mismatch: {path.name} != {name}")
            )

        result = run_gh(
            workspace_root=self.workspace_root,
            cmd=["gh", "release", "upload", handle.tag, str(path), "--repo", self.repo],
            message=f"failed to upload {name}",
            timeout=self.transfer_timeout,
        )
        if isinstance(result, Err):
            return result
        return Ok(None)

    def delete_release(self, tag: str) -> Result[None, HostError]:
        result = run_gh(
            workspace_root=self.workspace_root,
            cmd=["gh", "release", "delete", tag, "--repo", self.repo, "--yes"],
            message=f"failed to delete release: {tag}",
        )
        if isinstance(result, Err):
            return result
        return Ok(None)


@dataclass
class MockRelease:
    tag: str
    created_at: datetime
    prerelease: bool
    draft: bool = False
    assets: dict[str, bytes] = field(default_factory=lambda: {})


class MockReleaseHost:
    """In-memory release host for testing.

    Usage:
        host = MockReleaseHost()
        host.add_release("v1.2.0-pre3", created_at=ts, assets={"v1.2.0-pre3-Linux-testnet.tar.gz": data})
        host.fail_download("v1.2.0-pre3-Linux-testnet.tar.gz", HostError(kind="transient", message="503"))
    """

    def __init__(self) -> None:
        self.releases: dict[str, MockRelease] = {}
        self.calls: list[tuple[str, str]] = []
        self._download_failures: dict[str, list[HostError]] = {}
        self._upload_failures: dict[str, list[HostError]] = {}
        self._list_failure: HostError | None = None
        self._delete_failures: dict[str, list[HostError]] = {}
        self._lock = threading.Lock()

    def add_release(
        self,
        tag: str,
        *,
        created_at: datetime,
        prerelease: bool = True,
        draft: bool = False,
        assets: Mapping[str, bytes] | None = None,
    ) -> MockRelease:
        release = MockRelease(
            tag=tag,
            created_at=created_at,
            prerelease=prerelease,
            draft=draft,
            assets=dict(assets or {}),
        )
        self.releases[tag] = release
        return release

    def fail_download(self, name: str, *errors: HostError) -> None:
        """Queue errors returned by the next downloads of `name`, before it succeeds."""
        self._download_failures.setdefault(name, []).extend(errors)

    def fail_upload(self, name: str, *errors: HostError) -> None:
        self._upload_failures.setdefault(name, []).extend(errors)

    def fail_list(self, error: HostError | None) -> None:
        self._list_failure = error

    def fail_delete(self, tag: str, *errors: HostError) -> None:
        self._delete_failures.setdefault(tag, []).extend(errors)

    def calls_to(self, op: str) -> list[str]:
        return [arg for name, arg in self.calls if name == op]

    def _record(self, op: str, arg: str) -> None:
        with self._lock:
            self.calls.append((op, arg))

    def _pop_failure(self, queue: dict[str, list[HostError]], name: str) -> HostError | None:
        with self._lock:
            pending = queue.get(name)
            if pending:
                return pending.pop(0)
        return None

    def list_releases(self, *, prerelease: bool) -> Result[list[SourceRelease], HostError]:
        self._record("list_releases", str(prerelease))
        if self._list_failure is not None:
            return Err(self._list_failure)

        out = [
            SourceRelease(
                tag=r.tag,
                created_at=r.created_at,
                prerelease=r.prerelease,
                draft=r.draft,
                assets=tuple(r.assets),
            )
            for r in self.releases.values()
            if r.prerelease == prerelease
        ]
        out.sort(key=lambda r: r.created_at)
        return Ok(out)

    def get_release_assets(self, tag: str) -> Result[tuple[str, ...], HostError]:
        self._record("get_release_assets", tag)
        release = self.releases.get(tag)
        if release is None:
            return Err(HostError(kind="not_found", message=f"release not found: {tag}"))
        return Ok(tuple(release.assets))

    def download_asset(self, tag: str, name: str, dest_dir: Path) -> Result[Path, HostError]:
        self._record("download_asset", name)
        failure = self._pop_failure(self._download_failures, name)
        if failure is not None:
            return Err(failure)

        release = self.releases.get(tag)
        if release is None or name not in release.assets:
            return Err(HostError(kind="not_found", message=f"asset not found: {name}"))

        dest_dir.mkdir(parents=True, exist_ok=True)
        path = dest_dir / name
        path.write_bytes(release.assets[name])
        return Ok(path)

    def create_or_get_release(
        self, tag: str, *, draft: bool, prerelease: bool
    ) -> Result[ReleaseHandle, HostError]:
        self._record("create_or_get_release", tag)
        release = self.releases.get(tag)
        created = release is None
        if release is None:
            release = self.add_release(
                tag, created_at=datetime.now(UTC), prerelease=prerelease, draft=draft
            )
        return Ok(
            ReleaseHandle(
                tag=tag,
                draft=release.draft,
                prerelease=release.prerelease,
                created=created,
                assets=tuple(release.assets),
            )
        )

    def upload_asset(self, handle: ReleaseHandle, name: str, path: Path) -> Result[None, HostError]:
        self._record("upload_asset", name)
        failure = self._pop_failure(self._upload_failures, name)
        if failure is not None:
            return Err(failure)

        release = self.releases.get(handle.tag)
        if release is None:
            return Err(HostError(kind="not_found", message=f"release not found: {handle.tag}"))
        if name in release.assets:
            return Err(HostError(kind="failed", message=f"asset already exists: {name}"))

        release.assets[name] = path.read_bytes()
        return Ok(None)

    def delete_release(self, tag: str) -> Result[None, HostError]:
        self._record("delete_release", tag)
        failure = self._pop_failure(self._delete_failures, tag)
        if failure is not None:
            return Err(failure)
        if self.releases.pop(tag, None) is None:
            return Err(HostError(kind="not_found", message=f"release not found: {tag}"))
        return Ok(None)
