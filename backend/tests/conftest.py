"""
Shared pytest fixtures for imageset tests.

Fixtures provided:
- fake_registry: in-memory stand-in for RegistryClient
- catalog_tree: factory writing infra-templates components to tmp_path
"""

import asyncio
import pytest
import yaml
from unittest.mock import AsyncMock

import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from registry.registry_client import RegistryError


class FakeRegistry:
    """
    RegistryClient double backed by dicts.

    tags: tag list returned by list_tags()
    digests: tag -> digest; tags missing here fail their lookup
    """

    def __init__(self, tags=None, digests=None):
        self.tags = list(tags or [])
        self.digests = dict(digests or {})
        self.in_flight = 0
        self.max_in_flight = 0
        self.digest_calls = []
        self.list_tags = AsyncMock(side_effect=self._list_tags)

    async def _list_tags(self):
        return list(self.tags)

    async def fetch_digest(self, tag):
        self.digest_calls.append(tag)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if tag not in self.digests:
                raise RegistryError(f"Registry returned 404 for {tag}")
            return self.digests[tag]
        finally:
            self.in_flight -= 1


@pytest.fixture
def fake_registry():
    return FakeRegistry()


@pytest.fixture
def catalog_tree(tmp_path):
    """
    Factory that writes a component under tmp_path/infra-templates.

    Usage:
        catalog_tree("network-services", {
            "0": {"version": "v0.1", "min": "v1.0.0", "max": "v1.9.9",
                  "compose": "...yaml..."},
        }, preferred="v0.1")
    """
    infra_dir = tmp_path / "infra-templates"

    def make(component, versions, preferred=None):
        component_dir = infra_dir / component
        component_dir.mkdir(parents=True, exist_ok=True)
        if preferred is not None:
            (component_dir / "config.yml").write_text(yaml.safe_dump({"name": component, "version": preferred}))
        for name, meta in versions.items():
            version_dir = component_dir / name
            version_dir.mkdir()
            catalog = {"version": meta.get("version", "")}
            if meta.get("min") is not None:
                catalog["minimum_rancher_version"] = meta["min"]
            if meta.get("max") is not None:
                catalog["maximum_rancher_version"] = meta["max"]
            (version_dir / "rancher-compose.yml").write_text(yaml.safe_dump({".catalog": catalog}))
            if "compose" in meta:
                (version_dir / "docker-compose.yml").write_text(meta["compose"])
            if "template" in meta:
                (version_dir / "docker-compose.yml.tpl").write_text(meta["template"])
        return component_dir

    make.infra_dir = infra_dir
    return make
