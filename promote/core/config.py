"""Typed configuration loading and access.

This module provides dataclasses for the optional promote.toml file with
full type safety and validation. Every setting has a default, so a missing
file is equivalent to an empty one.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_bool, get_float, get_int, get_str, get_table

__all__ = [
    "Config",
    "ConfigError",
    "FetchConfig",
    "ReleaseConfig",
    "RetryConfig",
    "StagingConfig",
    "load_config",
    "load_config_or_default",
    "ARCHIVE_EXTENSIONS",
    "DEFAULT_ARCHIVE_EXT",
    "DEFAULT_CONFIG_FILENAME",
]

DEFAULT_CONFIG_FILENAME = "promote.toml"

# Container formats the repackager can read and write.
ARCHIVE_EXTENSIONS: tuple[str, ...] = ("tar.gz", "tar.xz", "zip")
DEFAULT_ARCHIVE_EXT = "tar.gz"

DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0
DEFAULT_FETCH_WORKERS = 6


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Which repository to promote in, and the asset container format."""

    repo: str | None = None  # owner/name
    archive_ext: str = DEFAULT_ARCHIVE_EXT


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Retry budget for network operations (downloads and uploads).

    The delay grows linearly: attempt n waits delay_seconds * n.
    """

    attempts: int = DEFAULT_RETRY_ATTEMPTS
    delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS


@dataclass(frozen=True, slots=True)
class FetchConfig:
    workers: int = DEFAULT_FETCH_WORKERS


@dataclass(frozen=True, slots=True)
class StagingConfig:
    """Where the per-job staging directory is created."""

    dir: Path | None = None  # None: system temp dir
    keep: bool = False


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    staging: StagingConfig = field(default_factory=StagingConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML).

        Raises:
            ValueError: if a value is present but out of range.
        """
        release: StrDict = get_table(data, "release") or {}
        retry: StrDict = get_table(data, "retry") or {}
        fetch: StrDict = get_table(data, "fetch") or {}
        staging: StrDict = get_table(data, "staging") or {}

        archive_ext = get_str(release, "archive_ext") or DEFAULT_ARCHIVE_EXT
        archive_ext = archive_ext.lstrip(".")
        if archive_ext not in ARCHIVE_EXTENSIONS:
            raise ValueError(
                f"unsupported release.archive_ext: {archive_ext} "
                f"(expected one of: {', '.join(ARCHIVE_EXTENSIONS)})"
            )

        attempts = get_int(retry, "attempts")
        if attempts is not None and attempts < 1:
            raise ValueError("retry.attempts must be >= 1")

        delay = get_float(retry, "delay_seconds")
        if delay is not None and delay < 0:
            raise ValueError("retry.delay_seconds must be >= 0")

        workers = get_int(fetch, "workers")
        if workers is not None and workers < 1:
            raise ValueError("fetch.workers must be >= 1")

        staging_dir = get_str(staging, "dir")

        return cls(
            release=ReleaseConfig(repo=get_str(release, "repo"), archive_ext=archive_ext),
            retry=RetryConfig(
                attempts=attempts if attempts is not None else DEFAULT_RETRY_ATTEMPTS,
                delay_seconds=delay if delay is not None else DEFAULT_RETRY_DELAY_SECONDS,
            ),
            fetch=FetchConfig(workers=workers or DEFAULT_FETCH_WORKERS),
            staging=StagingConfig(
                dir=Path(staging_dir).expanduser() if staging_dir else None,
                keep=bool(get_bool(staging, "keep")),
            ),
        )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to promote.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Like load_config, but a missing file yields the default Config.

    A file that exists but is invalid is still an error.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
