"""
Reads catalog component metadata into CandidateDirectory values.

Layout of one component directory:

    infra-templates/<component>/config.yml           version: <preferred label>
    infra-templates/<component>/<n>/rancher-compose.yml
        .catalog:
          version: <declared label>
          minimum_rancher_version: <version>
          maximum_rancher_version: <version>
"""

import logging
from pathlib import Path
from typing import List, Optional

import yaml
from semver import Version

from catalog.version_resolver import (
    CandidateDirectory,
    DirectorySelection,
    VersionRange,
    resolve_version_directory,
)

logger = logging.getLogger(__name__)

METADATA_FILE = "rancher-compose.yml"
CONFIG_FILE = "config.yml"


class CatalogMetadataError(Exception):
    """Raised when a component's metadata is missing or unreadable"""
    pass


def _read_yaml(path: Path):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except OSError as e:
        raise CatalogMetadataError(f"Cannot read {path}: {e}")
    except yaml.YAMLError as e:
        raise CatalogMetadataError(f"Invalid YAML in {path}: {e}")


def _as_text(value) -> str:
    return "" if value is None else str(value)


def list_components(templates_dir: Path) -> List[str]:
    """Sorted names of component directories"""
    templates_dir = Path(templates_dir)
    try:
        return sorted(p.name for p in templates_dir.iterdir() if p.is_dir() and not p.name.startswith("."))
    except OSError as e:
        raise CatalogMetadataError(f"Cannot list {templates_dir}: {e}")


def load_candidate(version_dir: Path) -> CandidateDirectory:
    """Load one version directory's .catalog block"""
    data = _read_yaml(version_dir / METADATA_FILE)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise CatalogMetadataError(f"{version_dir / METADATA_FILE} must be a YAML mapping")

    catalog = data.get(".catalog") or {}
    if not isinstance(catalog, dict):
        raise CatalogMetadataError(f".catalog in {version_dir / METADATA_FILE} must be a mapping")

    return CandidateDirectory(
        name=version_dir.name,
        declared_version=_as_text(catalog.get("version")),
        version_range=VersionRange.from_text(
            _as_text(catalog.get("minimum_rancher_version")),
            _as_text(catalog.get("maximum_rancher_version")),
        ),
    )


def load_candidates(component_dir: Path) -> List[CandidateDirectory]:
    """
    Load every version directory of a component.

    Raises:
        CatalogMetadataError: If any version directory lacks readable metadata
    """
    component_dir = Path(component_dir)
    try:
        version_dirs = sorted(p for p in component_dir.iterdir() if p.is_dir() and not p.name.startswith("."))
    except OSError as e:
        raise CatalogMetadataError(f"Cannot list {component_dir}: {e}")
    return [load_candidate(d) for d in version_dirs]


def load_preferred_version(component_dir: Path) -> Optional[str]:
    """Preferred template version from config.yml, None when absent"""
    config_path = Path(component_dir) / CONFIG_FILE
    if not config_path.exists():
        return None

    data = _read_yaml(config_path)
    if data is None:
        return None
    if not isinstance(data, dict):
        raise CatalogMetadataError(f"{config_path} must be a YAML mapping")
    return _as_text(data.get("version")) or None


def resolve_component(version: Version, component_dir: Path) -> DirectorySelection:
    """
    Select the version directory of a component for a server version.

    Raises:
        CatalogMetadataError: If the component's metadata cannot be read
    """
    candidates = load_candidates(component_dir)
    # config.yml is only read when more than one candidate survives
    selection = resolve_version_directory(version, candidates, lambda: load_preferred_version(component_dir))
    logger.debug(f"{Path(component_dir).name}: selected {selection.name or '-'} ({selection.declared_version})")
    return selection
