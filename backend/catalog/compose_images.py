"""
Image extraction from catalog service definitions.

Catalog templates use two docker-compose layouts:
- v1: top-level keys are services
- v2: services live under a 'services' key, flagged by version: '2'
"""

import logging
from pathlib import Path
from typing import List

import yaml

from catalog.template_renderer import TemplateError, render

logger = logging.getLogger(__name__)

COMPOSE_FILE = "docker-compose.yml"
COMPOSE_TEMPLATE_FILE = "docker-compose.yml.tpl"


def detect_compose_version(data) -> str:
    """Return '2' for version 2 documents, '1' otherwise"""
    if isinstance(data, dict) and str(data.get("version", "")) == "2":
        return "2"
    return "1"


def extract_images(compose_yaml: str) -> List[str]:
    """
    Collect image references from a compose document.

    Returns:
        Sorted, de-duplicated images; empty for unparseable documents
    """
    try:
        data = yaml.safe_load(compose_yaml)
    except yaml.YAMLError as e:
        logger.warning(f"Invalid compose YAML: {e}")
        return []

    if not isinstance(data, dict):
        return []

    if detect_compose_version(data) == "2":
        services = data.get("services") or {}
    else:
        services = data

    images = set()
    if not isinstance(services, dict):
        return []
    for name, content in services.items():
        if not isinstance(content, dict) or "image" not in content:
            continue
        image = content["image"]
        if image is None:
            logger.warning(f"Nil image content for service {name}: {content}")
            continue
        images.add(str(image))
    return sorted(images)


def version_directory_images(version_dir: Path) -> List[str]:
    """
    Images referenced by a selected version directory.

    The template file wins over the plain compose file. Read and render
    failures are logged and produce no images.
    """
    version_dir = Path(version_dir)
    template_path = version_dir / COMPOSE_TEMPLATE_FILE
    compose_path = version_dir / COMPOSE_FILE

    try:
        if template_path.exists():
            content = render(template_path.read_text(encoding="utf-8"))
        elif compose_path.exists():
            content = compose_path.read_text(encoding="utf-8")
        else:
            return []
    except (OSError, TemplateError) as e:
        logger.error(f"Failed to read service definition in {version_dir}: {e}")
        return []

    return extract_images(content)
