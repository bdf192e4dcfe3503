"""
Version-constrained selection of a catalog template directory.

Each catalog component ships several packaged releases, one per directory
("0", "1", "2", ...). Every directory declares the range of server versions
it supports and a version label. Given a server version this module picks
exactly one of them:

    1. Drop directories whose range excludes the version
    2. A single survivor wins
    3. Otherwise the survivor whose label equals the component's preferred
       version (config.yml) wins
    4. Otherwise the survivor with the largest integer name wins
    5. Otherwise nothing is selected

All tie-breaks are ordered explicitly so the result never depends on the
order candidates were read from disk.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Union

from semver import Version

logger = logging.getLogger(__name__)

UNAVAILABLE = "unavailable"

_INTEGER_NAME = re.compile(r'[0-9]+')


class InvalidVersion(ValueError):
    """Raised when text is not a semantic version"""
    pass


def parse_version(text: Optional[str]) -> Version:
    """
    Parse a release version such as "v1.6.10" or "2.0.0-rc1-hotfix".

    Versions follow SemVer 2.0: MAJOR.MINOR.PATCH with optional
    pre-release and build parts. A leading "v" is ignored.

    Raises:
        InvalidVersion: If the text is empty or not a semantic version
    """
    if not text or not text.strip():
        raise InvalidVersion("empty version")
    stripped = text.strip()
    if stripped[0] in "vV":
        stripped = stripped[1:]
    try:
        return Version.parse(stripped)
    except ValueError as e:
        raise InvalidVersion(str(e)) from e


def _optional_version(text: Optional[str]) -> Optional[Version]:
    """Parse a range bound; malformed or empty text means unbounded"""
    if not text:
        return None
    try:
        return parse_version(str(text))
    except InvalidVersion:
        logger.debug(f"Ignoring malformed version bound {text!r}")
        return None


@dataclass(frozen=True)
class VersionRange:
    """Inclusive range; a missing bound is unbounded on that side."""
    lower: Optional[Version] = None
    upper: Optional[Version] = None

    @classmethod
    def from_text(cls, lower: Optional[str], upper: Optional[str]) -> 'VersionRange':
        return cls(lower=_optional_version(lower), upper=_optional_version(upper))

    def contains(self, version: Version) -> bool:
        if self.lower is not None and version < self.lower:
            return False
        if self.upper is not None and version > self.upper:
            return False
        return True


@dataclass(frozen=True)
class CandidateDirectory:
    """One packaged release variant of a catalog component."""
    name: str
    declared_version: str = ""
    version_range: VersionRange = field(default_factory=VersionRange)

    @property
    def ordinal(self) -> Optional[int]:
        """Directory name as a non-negative integer, or None"""
        if _INTEGER_NAME.fullmatch(self.name):
            return int(self.name)
        return None


@dataclass(frozen=True)
class DirectorySelection:
    name: str
    declared_version: str

    @property
    def selected(self) -> bool:
        return bool(self.name)


NO_SELECTION = DirectorySelection(name="", declared_version=UNAVAILABLE)


def filter_candidates(version: Version, candidates: Iterable[CandidateDirectory]) -> List[CandidateDirectory]:
    """Candidates whose range contains version, sorted by name"""
    return sorted(
        (c for c in candidates if c.version_range.contains(version)),
        key=lambda c: c.name
    )


def resolve_version_directory(
    version: Version,
    candidates: Iterable[CandidateDirectory],
    preferred: Union[str, Callable[[], Optional[str]], None] = None,
) -> DirectorySelection:
    """
    Pick the candidate directory to use for a server version.

    Args:
        version: Target server version
        candidates: All directories of one component
        preferred: Preferred declared version from the component's config.yml,
            or a callable returning it. The callable is only invoked when more
            than one candidate survives the range filter.

    Returns:
        DirectorySelection of the chosen directory, or NO_SELECTION
    """
    remaining = filter_candidates(version, candidates)

    if len(remaining) == 1:
        chosen = remaining[0]
        return DirectorySelection(chosen.name, chosen.declared_version)

    if len(remaining) > 1 and callable(preferred):
        preferred = preferred()
    if preferred:
        # remaining is sorted by name, so duplicates resolve to the lowest name
        for candidate in remaining:
            if candidate.declared_version == preferred:
                return DirectorySelection(candidate.name, candidate.declared_version)

    numbered = [c for c in remaining if c.ordinal is not None]
    if numbered:
        chosen = max(numbered, key=lambda c: (c.ordinal, c.name))
        return DirectorySelection(chosen.name, chosen.declared_version)

    if remaining:
        logger.debug(f"No integer-named directory among {[c.name for c in remaining]}")
    return NO_SELECTION


def catalog_branch(version: Version) -> str:
    """Catalog branch that carries templates for a server version"""
    if Version(1, 6, 0) < version < Version(2, 0, 0):
        return "v1.6-release"
    if version >= Version(2, 0, 0):
        return "v2.0-release"
    return "master"
