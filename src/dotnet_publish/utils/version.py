"""Buildpack version parsing for deprecation notices."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(
    r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$"
)


@dataclass(frozen=True)
class VersionInfo:
    """Semantic version with major.minor.patch components."""

    major: int
    minor: int = 0
    patch: int = 0
    prerelease: str | None = None

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            return f"{base}-{self.prerelease}"
        return base

    @classmethod
    def from_string(cls, version_str: str | None) -> VersionInfo | None:
        """Parse version from strings like '1.2.3', 'v0.4' or '2.0.0-rc.1'.

        Missing minor/patch components default to zero.
        """
        if not version_str:
            return None

        match = VERSION_PATTERN.match(version_str.strip())
        if not match:
            return None

        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor") or 0),
            patch=int(match.group("patch") or 0),
            prerelease=match.group("prerelease"),
        )

    def inc_major(self) -> VersionInfo:
        """Next major release: major + 1, minor and patch reset."""
        return VersionInfo(major=self.major + 1)


def next_major_version(version_str: str | None) -> str | None:
    """Return the next major version for a buildpack version string.

    Args:
        version_str: Current buildpack version

    Returns:
        Next major version as a string, or None if the version is not parseable
    """
    version = VersionInfo.from_string(version_str)
    if version is None:
        logger.debug(f"Cannot parse buildpack version: {version_str!r}")
        return None
    return str(version.inc_major())
