from __future__ import annotations

import json
import shutil
from pathlib import Path
from time import sleep

from promote.core.result import Err, Ok, Result
from promote.platform.process import ProcessError
from promote.platform.process import run as run_process
from promote.release.errors import HostError, HostErrorKind
from promote.release.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
)

_TRANSIENT_MARKERS = (
    "timed out",
    "timeout",
    "connection reset",
    "connection refused",
    "temporarily unavailable",
    "service unavailable",
    "bad gateway",
    "gateway timeout",
    "tls handshake timeout",
    "network is unreachable",
    "unexpected eof",
    "http 429",
    "http 500",
    "http 502",
    "http 503",
    "http 504",
)

_NOT_FOUND_MARKERS = (
    "release not found",
    "could not find",
    "http 404",
    "not found",
)

_AUTH_MARKERS = (
    "gh auth login",
    "authentication required",
    "http 401",
    "bad credentials",
)


def classify_gh_error(error: ProcessError) -> HostErrorKind:
    text = f"{error.stderr}\n{error.stdout}".lower()
    if error.returncode == -1:
        if "timed out" in text:
            return "transient"
        if "no such file" in text:
            return "gh_missing"
    if any(marker in text for marker in _AUTH_MARKERS):
        return "gh_auth_required"
    if any(marker in text for marker in _TRANSIENT_MARKERS):
        return "transient"
    if any(marker in text for marker in _NOT_FOUND_MARKERS):
        return "not_found"
    return "failed"


def run_gh(
    *,
    workspace_root: Path,
    cmd: list[str],
    message: str,
    timeout: float = GH_TIMEOUT_SECONDS,
    retry_attempts: int = 1,
) -> Result[str, HostError]:
    """Run a gh command, retrying transient failures up to `retry_attempts` times.

    Only idempotent commands should be given more than one attempt.
    """
    attempts = max(1, retry_attempts)
    for attempt in range(attempts):
        result = run_process(cmd, cwd=workspace_root, timeout=timeout)
        if isinstance(result, Ok):
            return result

        error = result.error
        kind = classify_gh_error(error)
        if attempt < attempts - 1 and kind == "transient":
            sleep(GH_READ_RETRY_DELAY_SECONDS * (attempt + 1))
            continue

        return Err(HostError(kind=kind, message=message, hint=error.stderr.strip() or None))

    return Err(HostError(kind="failed", message=message))


def run_gh_read(*, workspace_root: Path, cmd: list[str], message: str) -> Result[str, HostError]:
    return run_gh(
        workspace_root=workspace_root,
        cmd=cmd,
        message=message,
        retry_attempts=GH_READ_RETRY_ATTEMPTS,
    )


def gh_json(*, workspace_root: Path, cmd: list[str], message: str) -> Result[object, HostError]:
    result = run_gh_read(workspace_root=workspace_root, cmd=cmd, message=message)
    if isinstance(result, Err):
        return result

    try:
        obj: object = json.loads(result.value)
    except json.JSONDecodeError as e:
        return Err(
            HostError(
                kind="invalid_payload",
                message=f"gh returned invalid JSON: {e}",
                hint=" ".join(cmd[:4]),
            )
        )
    return Ok(obj)


def ensure_gh_available() -> Result[None, HostError]:
    if shutil.which("gh") is None:
        return Err(
            HostError(
                kind="gh_missing",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


def ensure_gh_auth(*, workspace_root: Path) -> Result[None, HostError]:
    result = run_process(["gh", "auth", "status"], cwd=workspace_root, timeout=GH_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            HostError(
                kind="gh_auth_required",
                message="gh auth required",
                hint="Run: gh auth login (or set GH_TOKEN)",
            )
        )
    return Ok(None)
