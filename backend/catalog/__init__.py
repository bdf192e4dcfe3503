"""
Catalog Module

Turns a release version into the images its catalog templates reference.

This module provides:
- version_resolver: range filtering and tie-breaks over version directories
- catalog_loader: reads component metadata into candidates
- compose_images / template_renderer: image extraction from templates
- bundled_images: images embedded in the server build
- CatalogMirror: local working copy of the catalog repository
"""
from catalog.version_resolver import (
    CandidateDirectory,
    DirectorySelection,
    InvalidVersion,
    VersionRange,
    NO_SELECTION,
    UNAVAILABLE,
    catalog_branch,
    parse_version,
    resolve_version_directory,
)
from catalog.catalog_loader import CatalogMetadataError, resolve_component
from catalog.catalog_mirror import CatalogMirror, GitNotAvailableError, SyncResult

__all__ = [
    'CandidateDirectory',
    'DirectorySelection',
    'InvalidVersion',
    'VersionRange',
    'NO_SELECTION',
    'UNAVAILABLE',
    'catalog_branch',
    'parse_version',
    'resolve_version_directory',
    'CatalogMetadataError',
    'resolve_component',
    'CatalogMirror',
    'GitNotAvailableError',
    'SyncResult',
]
