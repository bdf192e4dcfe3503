"""
Shared types for registry synchronization.

Token and TagIndex are immutable values. Holders replace them wholesale
instead of editing them, so a reader that grabbed a reference never sees a
half-written credential or a partially rebuilt index.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class Token:
    """Bearer credential issued by the registry auth service."""
    access_token: str
    issued_at: datetime
    expires_in: int  # seconds

    def expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.expires_in)

    def is_valid(self, safety_margin: int = 30, now: Optional[datetime] = None) -> bool:
        """
        Check whether the token can still be sent.

        A token is invalid once now >= issued_at + expires_in - safety_margin,
        leaving room for batching and transmission to the registry.
        """
        now = now or datetime.now(timezone.utc)
        return now < self.expires_at() - timedelta(seconds=safety_margin)

    @property
    def authorization(self) -> str:
        return f"Bearer {self.access_token}"


@dataclass(frozen=True)
class TagIndex:
    """
    Snapshot of tag→digest and digest→tags for one release stream.

    Both mappings are built together by build() and never patched, so every
    tag in tag_digest is a member of digest_tags[tag_digest[tag]].
    """
    tag_digest: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    digest_tags: Mapping[str, FrozenSet[str]] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def build(cls, pairs: Iterable[Tuple[str, str]]) -> 'TagIndex':
        """Build an index from (tag, digest) pairs. A repeated tag keeps its last digest."""
        tag_digest: Dict[str, str] = {}
        for tag, digest in pairs:
            tag_digest[tag] = digest

        grouped: Dict[str, set] = {}
        for tag, digest in tag_digest.items():
            grouped.setdefault(digest, set()).add(tag)

        return cls(
            tag_digest=MappingProxyType(tag_digest),
            digest_tags=MappingProxyType({d: frozenset(t) for d, t in grouped.items()}),
        )

    def __len__(self) -> int:
        return len(self.tag_digest)

    def aliases(self, tag: str) -> List[str]:
        """Other tags sharing this tag's digest, sorted"""
        digest = self.tag_digest.get(tag)
        if digest is None:
            return []
        return sorted(t for t in self.digest_tags.get(digest, ()) if t != tag)

    def analog(self, tag: str) -> str:
        """Return the lexically smallest other tag sharing this tag's digest, else the tag itself."""
        others = self.aliases(tag)
        return others[0] if others else tag
