"""
Tag synchronization engine.

Rebuilds the tag↔digest index of the tracked release stream at startup and
then on a fixed period, and answers alias queries from the last published
snapshot.

Concurrency:
    - Digest lookups run in batches of batch_size; each batch is joined
      before the next starts. This caps open sockets and file descriptors.
    - Results land in cycle-local scratch maps. Only the finished index is
      published, under the same lock readers take, so a reader sees either
      the old or the new index, never a mix.
    - Readers hold the lock only to grab the snapshot reference. No I/O
      happens under it, and request handlers never trigger a refresh.
"""

import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from registry.registry_client import RegistryClient
from registry.types import TagIndex

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 128
DEFAULT_SYNC_INTERVAL = 12 * 60 * 60  # seconds


class TagIndexStore:
    """Holds the current TagIndex. Publishing swaps the whole value."""

    def __init__(self):
        self._lock = threading.Lock()
        self._index = TagIndex()
        self._tags: Tuple[str, ...] = ()
        self._published_at: Optional[datetime] = None

    def publish(self, index: TagIndex, tags: List[str]):
        with self._lock:
            self._index = index
            self._tags = tuple(tags)
            self._published_at = datetime.now(timezone.utc)

    def current(self) -> TagIndex:
        with self._lock:
            return self._index

    def tags(self) -> List[str]:
        with self._lock:
            return list(self._tags)

    @property
    def published_at(self) -> Optional[datetime]:
        with self._lock:
            return self._published_at


class TagSyncEngine:
    """Periodically rebuilds the tag index of one repository."""

    def __init__(
        self,
        client: RegistryClient,
        batch_size: int = DEFAULT_BATCH_SIZE,
        interval_seconds: float = DEFAULT_SYNC_INTERVAL,
        store: Optional[TagIndexStore] = None,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive: {batch_size}")
        self.client = client
        self.batch_size = batch_size
        self.interval_seconds = interval_seconds
        self.store = store or TagIndexStore()

    async def refresh(self) -> bool:
        """
        Run one synchronization cycle.

        Returns:
            True if a new index was published, False if the tag list could not
            be fetched and the previous snapshot was kept
        """
        try:
            tags = await self.client.list_tags()
        except Exception as e:
            logger.error(f"Failed to fetch tag list, keeping previous index: {e}")
            return False

        pairs: List[Tuple[str, str]] = []
        failed = 0
        for start in range(0, len(tags), self.batch_size):
            batch = tags[start:start + self.batch_size]
            results = await asyncio.gather(
                *(self.client.fetch_digest(tag) for tag in batch),
                return_exceptions=True
            )
            for tag, result in zip(batch, results):
                if isinstance(result, BaseException):
                    if isinstance(result, asyncio.CancelledError):
                        raise result
                    failed += 1
                    logger.warning(f"Error reading tag {tag}: {result}")
                    continue
                pairs.append((tag, result))

        index = TagIndex.build(pairs)
        self.store.publish(index, tags)
        logger.info(
            f"Published tag index: {len(index)} tags, {len(index.digest_tags)} digests, {failed} failed lookups"
        )
        return True

    async def run_periodically(self):
        """Refresh now, then every interval_seconds until cancelled"""
        logger.info(f"Starting tag sync loop (interval={self.interval_seconds}s, batch_size={self.batch_size})")
        while True:
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Tag sync cycle failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    def find_tag_analog(self, tag: str) -> str:
        """Return another tag with the same digest, or the tag itself"""
        return self.store.current().analog(tag)

    def find_tag_aliases(self, tag: str) -> List[str]:
        """All other tags with the same digest, sorted"""
        return self.store.current().aliases(tag)

    def snapshot(self) -> Dict[str, str]:
        """Copy of the current tag→digest mapping"""
        return dict(self.store.current().tag_digest)

    def tag_list(self) -> List[str]:
        """Tag list fetched by the last published cycle"""
        return self.store.tags()

    @property
    def last_refresh(self) -> Optional[datetime]:
        return self.store.published_at
