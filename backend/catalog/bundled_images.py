"""
Discovery of images baked into the server binary.

Some images never appear in catalog templates: the server's embedded cattle
build references them in cattle-global.properties. Finding them takes two
raw-content reads:

    1. rancher/rancher/<tag>/server/Dockerfile   -> ENV CATTLE_CATTLE_VERSION <v>
    2. rancher/cattle/<v>/resources/content/cattle-global.properties
       -> lb.instance.image=... and bootstrap.required.image=...
"""

import asyncio
import logging
from typing import List, Optional

import aiohttp

logger = logging.getLogger(__name__)

IMAGE_PROPERTIES = ("lb.instance.image=", "bootstrap.required.image=")


def parse_cattle_version(dockerfile: str) -> str:
    """Value of the first 'ENV CATTLE_CATTLE_VERSION <v>' line, or ''"""
    for line in dockerfile.splitlines():
        fields = line.split(" ")
        if len(fields) >= 3 and fields[0] == "ENV" and fields[1] == "CATTLE_CATTLE_VERSION":
            return fields[2]
    return ""


def parse_image_properties(properties: str) -> List[str]:
    """Image values of the lb and bootstrap properties, in file order"""
    images = []
    for line in properties.splitlines():
        line = line.strip()
        for prefix in IMAGE_PROPERTIES:
            if line.startswith(prefix):
                image = line[len(prefix):].strip()
                if image:
                    images.append(image)
    return images


class BundledImageFinder:
    """Reads raw release documents to list images embedded in the server"""

    def __init__(self, raw_content_url: str = "https://raw.githubusercontent.com", timeout: float = 10):
        self.raw_content_url = raw_content_url.rstrip("/")
        self.timeout = timeout

    async def _fetch_text(self, url: str) -> Optional[str]:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                    if response.status == 200:
                        return await response.text()
                    logger.warning(f"Raw content request returned {response.status}: {url}")
        except asyncio.TimeoutError:
            logger.warning(f"Timeout fetching {url}")
        except aiohttp.ClientError as e:
            logger.warning(f"Error fetching {url}: {e}")
        return None

    async def detect_cattle_version(self, release_tag: str) -> str:
        """Cattle version the release's Dockerfile pins, or '' when unknown"""
        url = f"{self.raw_content_url}/rancher/rancher/{release_tag}/server/Dockerfile"
        dockerfile = await self._fetch_text(url)
        if dockerfile is None:
            logger.warning(f"Couldn't fetch Dockerfile for {release_tag}")
            return ""
        return parse_cattle_version(dockerfile)

    async def get_bundled_images(self, release_tag: str) -> List[str]:
        """Images injected through cattle properties; empty on any failure"""
        cattle_version = await self.detect_cattle_version(release_tag)
        if not cattle_version:
            logger.warning(f"Couldn't find CATTLE_CATTLE_VERSION in Dockerfile for {release_tag}")
            return []
        logger.info(f"Detected cattle version {cattle_version} for {release_tag}")

        url = (
            f"{self.raw_content_url}/rancher/cattle/{cattle_version}"
            f"/resources/content/cattle-global.properties"
        )
        properties = await self._fetch_text(url)
        if properties is None:
            logger.warning(f"Couldn't fetch cattle-global.properties for cattle {cattle_version}")
            return []
        return parse_image_properties(properties)
