from __future__ import annotations

import re
from dataclasses import dataclass


_VERSION_RE = re.compile(
    r"^v(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-pre\.?(0|[1-9]\d*))?"
    r"(?:-.*)?\Z"
)


@dataclass(frozen=True, slots=True, order=True)
class SemVer:
    major: int
    minor: int
    patch: int

    def to_tag(self) -> str:
        return f"v{self.major}.{self.minor}.{self.patch}"


@dataclass(frozen=True, slots=True)
class ParsedVersion:
    """Version parsed from a tag such as `v1.2.0`, `v1.2.0-pre3` or `v1.2.0-force-release`.

    `pre` is the pre-release number (`-pre3` -> 3, bare `-pre` -> 0), None for
    tags without a pre-release suffix. Any other suffix is ignored.
    """

    version: SemVer
    pre: int | None

    def sort_key(self) -> tuple[int, int, int, int]:
        # A final version sorts after all of its pre-releases.
        pre_rank = self.pre if self.pre is not None else 1 << 31
        return (self.version.major, self.version.minor, self.version.patch, pre_rank)


def parse_version_tag(tag: str) -> ParsedVersion | None:
    m = _VERSION_RE.match(tag)
    if m is None:
        return None
    base = SemVer(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    pre = m.group(4)
    if pre is None and "-pre" in tag[m.end(3) :].split("-force-release", 1)[0]:
        pre = "0"
    return ParsedVersion(version=base, pre=int(pre) if pre is not None else None)


def version_sort_key(tag: str) -> tuple[int, ...]:
    """Sort key placing parseable tags above unparseable ones, then by version."""
    parsed = parse_version_tag(tag)
    if parsed is None:
        return (0,)
    return (1, *parsed.sort_key())
