from __future__ import annotations

from pathlib import Path

import pytest
import typer

from promote.cli import context as context_mod
from promote.cli.context import CLIContext, build_context, open_host, resolve_repo
from promote.core.config import Config, ReleaseConfig
from promote.core.errors import ErrorCode
from promote.core.result import Err, Ok
from promote.output.console import MockConsole
from promote.release.errors import HostError
from promote.release.host import GhReleaseHost


def test_build_context_without_config_uses_defaults(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    ctx = build_context()
    assert ctx.config == Config()
    assert ctx.root == tmp_path


def test_build_context_reads_promote_toml(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "promote.toml").write_text('[release]\nrepo = "owner/name"\n', encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    assert build_context().config.release.repo == "owner/name"


def test_build_context_explicit_missing_config_exits(tmp_path: Path) -> None:
    with pytest.raises(typer.Exit) as exc:
        build_context(tmp_path / "nope.toml")
    assert exc.value.exit_code == int(ErrorCode.USER_ERROR)


def test_build_context_invalid_config_exits(tmp_path: Path) -> None:
    path = tmp_path / "promote.toml"
    path.write_text('[release]\narchive_ext = "rar"\n', encoding="utf-8")
    with pytest.raises(typer.Exit) as exc:
        build_context(path)
    assert exc.value.exit_code == int(ErrorCode.USER_ERROR)


def _ctx(tmp_path: Path, repo: str | None = None) -> CLIContext:
    return CLIContext(
        config=Config(release=ReleaseConfig(repo=repo)), console=MockConsole(), root=tmp_path
    )


def test_resolve_repo_prefers_flag(tmp_path: Path) -> None:
    assert resolve_repo(_ctx(tmp_path, "cfg/repo"), " flag/repo ") == "flag/repo"
    assert resolve_repo(_ctx(tmp_path, "cfg/repo"), None) == "cfg/repo"


def test_open_host_requires_gh(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        context_mod,
        "ensure_gh_available",
        lambda: Err(HostError(kind="gh_missing", message="gh: missing", hint="install gh")),
    )
    ctx = _ctx(tmp_path)

    with pytest.raises(typer.Exit) as exc:
        open_host(ctx, "owner/name")

    assert exc.value.exit_code == int(ErrorCode.ENV_ERROR)
    assert isinstance(ctx.console, MockConsole)
    assert ctx.console.find("hint: install gh")


def test_open_host_requires_auth(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(context_mod, "ensure_gh_available", lambda: Ok(None))
    monkeypatch.setattr(
        context_mod,
        "ensure_gh_auth",
        lambda *, workspace_root: Err(HostError(kind="gh_auth_required", message="gh auth required")),
    )

    with pytest.raises(typer.Exit) as exc:
        open_host(_ctx(tmp_path), "owner/name")

    assert exc.value.exit_code == int(ErrorCode.ENV_ERROR)


def test_open_host_returns_gh_host(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(context_mod, "ensure_gh_available", lambda: Ok(None))
    monkeypatch.setattr(context_mod, "ensure_gh_auth", lambda *, workspace_root: Ok(None))

    host = open_host(_ctx(tmp_path), "owner/name")

    assert isinstance(host, GhReleaseHost)
    assert host.repo == "owner/name"
    assert host.workspace_root == tmp_path
