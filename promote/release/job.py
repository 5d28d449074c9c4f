"""PromotionJob: one promotion run for one tag.

States, in order:

    TRIGGERED -> CLASSIFIED -> LOCATED -> FETCHED -> REPACKAGED -> PUBLISHED -> DONE

with FAILED reachable from every non-terminal state. A tag that is not
eligible goes straight from CLASSIFIED to DONE and the run is reported as
skipped. The staging directory holding downloads and repackaged archives is
created per run and removed when the run ends, whatever the outcome.
"""

from __future__ import annotations

import tempfile
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from time import sleep as _sleep
from typing import Literal

from promote.core.config import Config
from promote.core.result import Err, Ok, Result
from promote.output.console import ConsoleProtocol, MockConsole, Style
from promote.platform.files import remove_tree
from promote.release.errors import PromotionError
from promote.release.fetcher import fetch_assets
from promote.release.host import ReleaseHost
from promote.release.locator import locate_source_release
from promote.release.model import SourceRelease, TargetRelease
from promote.release.publisher import publish
from promote.release.repackager import repackage_all
from promote.release.retry import Sleep
from promote.release.tags import TagClassification, classify

__all__ = ["JobOutcome", "JobState", "JobStatus", "PromotionJob"]


class JobState(Enum):
    TRIGGERED = "triggered"
    CLASSIFIED = "classified"
    LOCATED = "located"
    FETCHED = "fetched"
    REPACKAGED = "repackaged"
    PUBLISHED = "published"
    DONE = "done"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


JobStatus = Literal["skipped", "succeeded", "failed"]


@dataclass(frozen=True, slots=True)
class JobOutcome:
    """Terminal report of a promotion run."""

    status: JobStatus
    tag: str
    reason: str
    states: tuple[JobState, ...]
    error: PromotionError | None = None
    source: SourceRelease | None = None
    release: TargetRelease | None = None
    assets: tuple[str, ...] = ()
    dry_run: bool = False

    @property
    def partial_publish(self) -> bool:
        return self.error is not None and self.error.partial_publish

    @property
    def ok(self) -> bool:
        return self.status != "failed"


class PromotionJob:
    """Runs classify -> locate -> fetch -> repackage -> publish for one tag.

    Usage:
        job = PromotionJob(GhReleaseHost("owner/name"), config=config, console=RichConsole())
        outcome = job.run("v1.2.0")
        if outcome.status == "failed":
            print(outcome.reason)

    `cancel` may be set from another thread; the job stops at the next state
    boundary (or fetch attempt) and fails without publishing.
    """

    def __init__(
        self,
        host: ReleaseHost,
        *,
        config: Config | None = None,
        console: ConsoleProtocol | None = None,
        cancel: threading.Event | None = None,
        sleep: Sleep = _sleep,
    ) -> None:
        self.host = host
        self.config = config or Config()
        self.console: ConsoleProtocol = console or MockConsole()
        self.cancel = cancel or threading.Event()
        self._sleep = sleep
        self._states: list[JobState] = []
        self.staging_dir: Path | None = None

    @property
    def states(self) -> tuple[JobState, ...]:
        return tuple(self._states)

    def _enter(self, state: JobState, detail: str = "") -> None:
        self._states.append(state)
        self.console.state(str(state), detail)

    def _outcome(self, status: JobStatus, tag: str, reason: str, **kwargs: object) -> JobOutcome:
        return JobOutcome(
            status=status,
            tag=tag,
            reason=reason,
            states=self.states,
            **kwargs,  # type: ignore[arg-type]
        )

    def _fail(self, tag: str, error: PromotionError, **kwargs: object) -> JobOutcome:
        self._enter(JobState.FAILED, error.kind)
        self.console.error(error.pretty())
        if error.partial_publish:
            self.console.warning(
                f"release {tag} is partially published: complete it by re-running, "
                f"or remove it with `promote reconcile {tag} --delete-partial`"
            )
        return self._outcome("failed", tag, error.pretty(), error=error, **kwargs)

    def _cancelled(self, before: JobState) -> PromotionError | None:
        if not self.cancel.is_set():
            return None
        return PromotionError(kind="cancelled", message=f"cancelled before {before}")

    def run(self, tag_text: str, *, dry_run: bool = False) -> JobOutcome:
        self._states = []
        self._enter(JobState.TRIGGERED, tag_text)

        classification = classify(tag_text)
        detail = "forced" if classification.is_forced else ""
        self._enter(JobState.CLASSIFIED, detail)
        if not classification.should_promote:
            self.console.info(f"tag {tag_text!r} is not eligible for promotion")
            self._enter(JobState.DONE, "skipped")
            return self._outcome("skipped", tag_text, "tag not eligible for promotion")

        cancelled = self._cancelled(JobState.LOCATED)
        if cancelled is not None:
            return self._fail(tag_text, cancelled)

        located = locate_source_release(self.host)
        if isinstance(located, Err):
            return self._fail(tag_text, located.error)
        source = located.value
        self._enter(JobState.LOCATED, source.tag)

        staging = self._create_staging()
        if isinstance(staging, Err):
            return self._fail(tag_text, staging.error, source=source)
        self.staging_dir = staging.value

        try:
            return self._promote(classification, source, staging.value, dry_run=dry_run)
        finally:
            if self.config.staging.keep:
                self.console.print(f"staging kept: {staging.value}", Style.DIM)
            else:
                remove_tree(staging.value)

    def _create_staging(self) -> Result[Path, PromotionError]:
        parent = self.config.staging.dir
        try:
            if parent is not None:
                parent.mkdir(parents=True, exist_ok=True)
            path = tempfile.mkdtemp(prefix="promote-", dir=str(parent) if parent else None)
        except OSError as e:
            return Err(
                PromotionError(
                    kind="staging_failed",
                    message="failed to create staging directory",
                    hint=str(e),
                )
            )
        return Ok(Path(path))

    def _promote(
        self,
        classification: TagClassification,
        source: SourceRelease,
        staging: Path,
        *,
        dry_run: bool,
    ) -> JobOutcome:
        tag = classification.tag.raw
        ext = self.config.release.archive_ext
        retry = self.config.retry

        cancelled = self._cancelled(JobState.FETCHED)
        if cancelled is not None:
            return self._fail(tag, cancelled, source=source)

        fetched = fetch_assets(
            self.host,
            source,
            staging_dir=staging,
            archive_ext=ext,
            retry=retry,
            workers=self.config.fetch.workers,
            console=self.console,
            cancel=self.cancel,
            sleep=self._sleep,
        )
        if isinstance(fetched, Err):
            return self._fail(tag, fetched.error, source=source)
        self._enter(JobState.FETCHED, f"{len(fetched.value)} assets")

        cancelled = self._cancelled(JobState.REPACKAGED)
        if cancelled is not None:
            return self._fail(tag, cancelled, source=source)

        repackaged = repackage_all(
            fetched.value,
            tag,
            staging_dir=staging,
            archive_ext=ext,
            workers=self.config.fetch.workers,
            console=self.console,
            cancel=self.cancel,
        )
        if isinstance(repackaged, Err):
            return self._fail(tag, repackaged.error, source=source)
        assets = list(repackaged.value.values())
        names = tuple(a.name for a in assets)
        self._enter(JobState.REPACKAGED, f"{len(assets)} assets")

        if dry_run:
            for a in assets:
                self.console.print(f"would upload {a.name} sha256={a.sha256}", Style.DIM)
            self._enter(JobState.DONE, "dry run")
            return self._outcome(
                "succeeded",
                tag,
                f"dry run: {len(assets)} assets ready for {tag}",
                source=source,
                assets=names,
                dry_run=True,
            )

        cancelled = self._cancelled(JobState.PUBLISHED)
        if cancelled is not None:
            return self._fail(tag, cancelled, source=source, assets=names)

        published = publish(
            self.host,
            tag,
            classification.is_forced,
            assets,
            retry=retry,
            console=self.console,
            cancel=self.cancel,
            sleep=self._sleep,
        )
        if isinstance(published, Err):
            return self._fail(tag, published.error, source=source, assets=names)
        release = published.value
        self._enter(JobState.PUBLISHED, "reused" if release.reused else "")

        self._enter(JobState.DONE)
        reason = (
            f"{tag} already published with {len(names)} assets"
            if release.reused
            else f"published {tag} with {len(names)} assets from {source.tag}"
        )
        return self._outcome(
            "succeeded", tag, reason, source=source, release=release, assets=names
        )
