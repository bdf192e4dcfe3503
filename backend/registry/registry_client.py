"""
Registry v2 API client for one tracked repository.

Lists the repository's tags and resolves a tag to its content digest with a
metadata-only HEAD request on the manifest endpoint.
"""

import asyncio
import logging
import re
from typing import List, Optional

import aiohttp

from registry.token_manager import TokenManager

logger = logging.getLogger(__name__)

MANIFEST_ACCEPT = (
    "application/json,"
    "application/vnd.docker.distribution.manifest.v2+json"
)


class RegistryError(RuntimeError):
    """Raised when a registry request fails or returns an unusable response."""
    pass


class RegistryClient:
    """
    Client for the tag-list and manifest endpoints of one repository.

    A single aiohttp session is shared by all requests. Its connector limit
    caps simultaneous outbound connections, matching the sync batch width.
    """

    def __init__(
        self,
        registry_url: str,
        repository: str,
        token_manager: TokenManager,
        include_prerelease: bool = False,
        prerelease_pattern: str = r'-rc[0-9]+$',
        connection_limit: int = 128,
        timeout: float = 10,
    ):
        self.registry_url = registry_url.rstrip("/")
        self.repository = repository
        self.token_manager = token_manager
        self.include_prerelease = include_prerelease
        self.prerelease_pattern = re.compile(prerelease_pattern)
        self.connection_limit = connection_limit
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit=self.connection_limit),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self):
        """Close the shared HTTP session"""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _headers(self) -> dict:
        # TokenError propagates to the caller of the authenticated operation
        token = await self.token_manager.ensure_valid()
        return {
            "Authorization": token.authorization,
            "Accept": MANIFEST_ACCEPT,
        }

    def filter_tags(self, tags: List[str]) -> List[str]:
        """Drop pre-release tags unless they are included by configuration"""
        if self.include_prerelease:
            return list(tags)
        return [tag for tag in tags if not self.prerelease_pattern.search(tag)]

    async def list_tags(self) -> List[str]:
        """
        Fetch the full tag list of the repository.

        Returns:
            Tags in registry order, pre-release tags removed when excluded

        Raises:
            TokenError: If no token could be obtained
            RegistryError: If the request fails or the body is malformed
        """
        url = f"{self.registry_url}/v2/{self.repository}/tags/list"
        headers = await self._headers()

        try:
            async with self._get_session().get(url, headers=headers) as response:
                if response.status != 200:
                    raise RegistryError(f"Registry returned {response.status} for {url}")
                data = await response.json(content_type=None)
        except asyncio.TimeoutError:
            raise RegistryError(f"Timeout fetching tag list: {url}")
        except aiohttp.ClientError as e:
            raise RegistryError(f"Error fetching tag list: {e}")

        tags = data.get("tags") if isinstance(data, dict) else None
        if not isinstance(tags, list):
            raise RegistryError(f"Malformed tag list response from {url}")

        tags = self.filter_tags([str(tag) for tag in tags])
        logger.info(f"Fetched {self.repository} tag list (count={len(tags)})")
        return tags

    async def fetch_digest(self, tag: str) -> str:
        """
        Resolve a tag to its content digest without downloading the manifest.

        Raises:
            TokenError: If no token could be obtained
            RegistryError: On a non-200 response or a missing digest header
        """
        url = f"{self.registry_url}/v2/{self.repository}/manifests/{tag}"
        headers = await self._headers()

        try:
            async with self._get_session().head(url, headers=headers) as response:
                if response.status != 200:
                    raise RegistryError(f"Registry returned {response.status} for {url}")
                digest = response.headers.get("Docker-Content-Digest")
        except asyncio.TimeoutError:
            raise RegistryError(f"Timeout fetching manifest: {url}")
        except aiohttp.ClientError as e:
            raise RegistryError(f"Error fetching manifest: {e}")

        if not digest:
            raise RegistryError(f"No Docker-Content-Digest header for {url}")
        return digest
