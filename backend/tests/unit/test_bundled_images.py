"""
Unit tests for bundled image discovery.

Tests verify:
- Cattle version detection from the server Dockerfile
- Image extraction from cattle-global.properties
- Fetch failures degrade to an empty list
"""

import pytest
from unittest.mock import AsyncMock, patch

from catalog.bundled_images import BundledImageFinder, parse_cattle_version, parse_image_properties

DOCKERFILE = """FROM ubuntu:16.04
ENV CATTLE_HOME /var/lib/cattle
ENV CATTLE_CATTLE_VERSION v0.183.38
ENV CATTLE_CATTLE_VERSION v0.0.1
"""

PROPERTIES = """# global settings
api.proxy.allow=true
lb.instance.image=rancher/lb-service-haproxy:v0.7.15
bootstrap.required.image=rancher/agent:v1.2.9
bootstrap.required.image=
agent.instance.image=rancher/agent-instance:v0.8.3
"""


class TestParsing:
    def test_first_cattle_version_wins(self):
        assert parse_cattle_version(DOCKERFILE) == "v0.183.38"

    def test_missing_cattle_version(self):
        assert parse_cattle_version("FROM scratch\nENV OTHER 1\n") == ""

    def test_image_properties(self):
        assert parse_image_properties(PROPERTIES) == [
            "rancher/lb-service-haproxy:v0.7.15",
            "rancher/agent:v1.2.9",
        ]


class TestBundledImageFinder:
    @pytest.fixture
    def finder(self):
        return BundledImageFinder("https://raw.example.com/")

    @pytest.mark.asyncio
    async def test_reads_both_documents(self, finder):
        fetch = AsyncMock(side_effect=[DOCKERFILE, PROPERTIES])
        with patch.object(finder, '_fetch_text', fetch):
            images = await finder.get_bundled_images("v1.6.10")

        assert images == ["rancher/lb-service-haproxy:v0.7.15", "rancher/agent:v1.2.9"]
        urls = [c.args[0] for c in fetch.await_args_list]
        assert urls == [
            "https://raw.example.com/rancher/rancher/v1.6.10/server/Dockerfile",
            "https://raw.example.com/rancher/cattle/v0.183.38/resources/content/cattle-global.properties",
        ]

    @pytest.mark.asyncio
    async def test_missing_dockerfile(self, finder):
        with patch.object(finder, '_fetch_text', AsyncMock(return_value=None)):
            assert await finder.get_bundled_images("v1.6.10") == []

    @pytest.mark.asyncio
    async def test_missing_properties(self, finder):
        with patch.object(finder, '_fetch_text', AsyncMock(side_effect=[DOCKERFILE, None])):
            assert await finder.get_bundled_images("v1.6.10") == []

    @pytest.mark.asyncio
    async def test_dockerfile_without_version(self, finder):
        fetch = AsyncMock(return_value="FROM scratch\n")
        with patch.object(finder, '_fetch_text', fetch):
            assert await finder.get_bundled_images("v2.0.0") == []
        assert fetch.await_count == 1
