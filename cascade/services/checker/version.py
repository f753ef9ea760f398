"""Go module version parsing and ordering.

Go versions are semantic versions with a ``v`` prefix. Pseudo-versions
(``v0.0.0-20240101120000-abcdef123456``) are pre-releases whose identifiers
sort by timestamp, so plain semver precedence orders them correctly.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = ["GoVersion", "compare_versions", "normalize_version", "parse_version"]

_VERSION_RE = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)
_PSEUDO_RE = re.compile(r"(?:^|[.-])\d{14}-[0-9a-f]{12}$")


@dataclass(frozen=True, slots=True)
class GoVersion:
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()

    @property
    def is_pseudo(self) -> bool:
        return bool(self.prerelease) and _PSEUDO_RE.search(".".join(self.prerelease)) is not None

    def to_tag(self) -> str:
        tag = f"v{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            tag += "-" + ".".join(self.prerelease)
        return tag


def parse_version(text: str) -> GoVersion | None:
    m = _VERSION_RE.match(text.strip())
    if m is None:
        return None
    pre = tuple(m.group(4).split(".")) if m.group(4) else ()
    return GoVersion(int(m.group(1)), int(m.group(2)), int(m.group(3)), pre)


def normalize_version(text: str) -> str:
    text = text.strip()
    if text and not text.startswith("v"):
        return "v" + text
    return text


def _compare_identifiers(a: tuple[str, ...], b: tuple[str, ...]) -> int:
    # A release sorts after any of its pre-releases.
    if not a and not b:
        return 0
    if not a:
        return 1
    if not b:
        return -1

    for x, y in zip(a, b):
        if x == y:
            continue
        x_num, y_num = x.isdigit(), y.isdigit()
        if x_num and y_num:
            return -1 if int(x) < int(y) else 1
        if x_num != y_num:
            return -1 if x_num else 1
        return -1 if x < y else 1

    if len(a) == len(b):
        return 0
    return -1 if len(a) < len(b) else 1


def compare_versions(a: GoVersion, b: GoVersion) -> int:
    """Return -1, 0 or 1 as ``a`` sorts before, equal to or after ``b``."""
    left = (a.major, a.minor, a.patch)
    right = (b.major, b.minor, b.patch)
    if left != right:
        return -1 if left < right else 1
    return _compare_identifiers(a.prerelease, b.prerelease)
