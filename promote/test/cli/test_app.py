from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from promote import __version__
from promote.cli.app import app
from promote.cli.context import CLIContext
from promote.release.job import JobOutcome

runner = CliRunner()


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_commands_registered() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for name in ("run", "classify", "locate", "reconcile"):
        assert name in result.output


def test_classify_via_cli() -> None:
    result = runner.invoke(app, ["classify", "v1.2.0"])
    assert result.exit_code == 0
    assert "promote" in result.output


def test_run_reads_tag_and_repo_from_workflow_env(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    import promote.cli.commands.run_cmd as run_cmd

    monkeypatch.chdir(tmp_path)

    seen: dict[str, str] = {}

    def fake_open_host(_ctx: CLIContext, repo: str) -> object:
        seen["repo"] = repo
        return object()

    class FakeJob:
        def __init__(self, host: object, **_: object) -> None:
            del host

        def run(self, tag: str, *, dry_run: bool = False) -> JobOutcome:
            seen["tag"] = tag
            return JobOutcome(status="skipped", tag=tag, reason="test", states=())

    monkeypatch.setattr(run_cmd, "open_host", fake_open_host)
    monkeypatch.setattr(run_cmd, "PromotionJob", FakeJob)

    result = runner.invoke(
        app,
        ["run"],
        env={"GITHUB_REF_NAME": "v9.9.9", "GITHUB_REPOSITORY": "owner/name"},
    )

    assert result.exit_code == 0, result.output
    assert seen == {"repo": "owner/name", "tag": "v9.9.9"}
