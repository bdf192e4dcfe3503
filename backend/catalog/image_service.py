"""
Image Set Service

Answers "which images does release <tag> need?":

1. Canonicalize the tag through the sync engine's alias lookup
2. Parse it as a version and pick the catalog branch for that version
3. Sync the catalog mirror to that branch
4. For each infra component, select the version directory and collect the
   images its service definition references
5. Add the images bundled into the server build
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Set

from catalog.bundled_images import BundledImageFinder
from catalog.catalog_loader import CatalogMetadataError, list_components, resolve_component
from catalog.catalog_mirror import CatalogMirror
from catalog.compose_images import version_directory_images
from catalog.version_resolver import InvalidVersion, catalog_branch, parse_version
from models.image_models import ImageSet
from registry.tag_sync import TagSyncEngine

logger = logging.getLogger(__name__)

INFRA_TEMPLATES_DIR = "infra-templates"


class InvalidReleaseVersion(ValueError):
    """Raised when a tag cannot be read as a release version"""
    pass


class CatalogUnavailableError(RuntimeError):
    """Raised when the catalog mirror cannot be synced or read"""
    pass


def _is_version(tag: str) -> bool:
    try:
        parse_version(tag)
    except InvalidVersion:
        return False
    return True


def normalize(images: List[str]) -> List[str]:
    """Sorted, de-duplicated image list"""
    return sorted(set(images))


class ImageSetService:
    """Resolves the image set of a release tag"""

    def __init__(
        self,
        sync_engine: TagSyncEngine,
        mirror: CatalogMirror,
        bundled_images: BundledImageFinder,
    ):
        self.sync_engine = sync_engine
        self.mirror = mirror
        self.bundled_images = bundled_images

    def canonical_tag(self, tag: str) -> str:
        """
        Version-like name for a requested tag.

        The first alias (in sorted order) sharing the tag's digest that reads
        as a version wins ("latest", "stable" -> "v1.6.10"). When no alias is
        a version the tag is kept as requested.
        """
        for alias in self.sync_engine.find_tag_aliases(tag):
            if _is_version(alias):
                return alias
        return tag

    async def images_for_tag(self, tag: str) -> ImageSet:
        """
        Resolve the image set of a release tag.

        Raises:
            InvalidReleaseVersion: If the (canonical) tag is not a version
            CatalogUnavailableError: If the catalog could not be synced or listed
        """
        version_tag = self.canonical_tag(tag)
        try:
            version = parse_version(version_tag)
        except InvalidVersion as e:
            raise InvalidReleaseVersion(f"Invalid version ({version_tag}): {e}")

        branch = catalog_branch(version)

        async with self.mirror.lock:
            result = await self.mirror.sync(branch)
            if not result.success:
                raise CatalogUnavailableError(result.error or f"Error syncing catalog branch {branch}")
            images = await asyncio.to_thread(self._catalog_images, version)

        images.extend(await self.bundled_images.get_bundled_images(version_tag))
        return ImageSet(images=normalize(images))

    def _catalog_images(self, version) -> List[str]:
        infra_dir = Path(self.mirror.path) / INFRA_TEMPLATES_DIR
        try:
            components = list_components(infra_dir)
        except CatalogMetadataError as e:
            raise CatalogUnavailableError(f"Error reading infra-templates dir: {e}")

        images: Set[str] = set()
        for component in components:
            component_dir = infra_dir / component
            try:
                selection = resolve_component(version, component_dir)
            except CatalogMetadataError as e:
                # One broken component must not fail the whole request
                logger.error(f"Skipping component {component}: {e}")
                continue

            if selection.selected:
                images.update(version_directory_images(component_dir / selection.name))
            else:
                logger.info(f"No template of {component} supports {version}")
        return list(images)
