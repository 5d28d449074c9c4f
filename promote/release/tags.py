"""Tag classification: does a newly created tag trigger a promotion?

Rules, mirroring the tag filters of the release workflow:
- release tags start with `v` followed by a digit (`v*`, restricted to
  version-like names);
- tags carrying `-pre` after the prefix are pre-releases and are excluded
  (`!v*-pre*`);
- tags carrying `-force-release` are promoted even if they look like
  pre-releases (`*-force-release*`), and are published flagged as pre-release.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from promote.release.semver import ParsedVersion, parse_version_tag

__all__ = ["Tag", "TagClassification", "classify", "parse_tag"]

_RELEASE_RE = re.compile(r"v\d[0-9A-Za-z._+\-]*")
_PRE_RELEASE_RE = re.compile(r"^v.*-pre")
_FORCED_RE = re.compile(r"-force-release")


@dataclass(frozen=True, slots=True)
class Tag:
    raw: str
    version: ParsedVersion | None
    is_release: bool
    is_pre_release: bool
    is_forced: bool


@dataclass(frozen=True, slots=True)
class TagClassification:
    tag: Tag
    should_promote: bool

    @property
    def is_forced(self) -> bool:
        return self.tag.is_forced


def parse_tag(text: str) -> Tag:
    """Parse a tag from its text alone. Never raises."""
    raw = text if isinstance(text, str) else ""
    return Tag(
        raw=raw,
        version=parse_version_tag(raw),
        is_release=_RELEASE_RE.fullmatch(raw) is not None,
        is_pre_release=_PRE_RELEASE_RE.search(raw) is not None,
        is_forced=_FORCED_RE.search(raw) is not None,
    )


def classify(text: str) -> TagClassification:
    tag = parse_tag(text)
    should_promote = tag.is_release and (not tag.is_pre_release or tag.is_forced)
    return TagClassification(tag=tag, should_promote=should_promote)
