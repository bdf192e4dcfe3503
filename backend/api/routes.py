"""
HTTP routes for imageset.

- GET /images/{tag}  images a release depends on
- GET /tags          tag list of the tracked repository
- GET /tags/{tag}    alias tag sharing the same digest (plain text)
- GET /digests       current tag→digest index
- GET /health        sync status
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse

from catalog.image_service import CatalogUnavailableError, ImageSetService, InvalidReleaseVersion
from models.image_models import DigestSnapshot, HealthResponse, ImageSet, TagList
from registry.tag_sync import TagSyncEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["images"])

# Module-level service references, set during application startup
_sync_engine: Optional[TagSyncEngine] = None
_image_service: Optional[ImageSetService] = None
_repository: str = ""


def set_services(sync_engine: TagSyncEngine, image_service: ImageSetService, repository: str) -> None:
    """Set the service references used by the routes."""
    global _sync_engine, _image_service, _repository
    _sync_engine = sync_engine
    _image_service = image_service
    _repository = repository


def get_sync_engine() -> TagSyncEngine:
    if _sync_engine is None:
        raise RuntimeError("Sync engine not initialized for routes")
    return _sync_engine


def get_image_service() -> ImageSetService:
    if _image_service is None:
        raise RuntimeError("Image service not initialized for routes")
    return _image_service


@router.get("/images/{tag}", response_model=ImageSet)
async def get_images(tag: str):
    """Images a deployment of release <tag> depends on"""
    try:
        return await get_image_service().images_for_tag(tag)
    except InvalidReleaseVersion as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CatalogUnavailableError as e:
        logger.error(f"Catalog unavailable for {tag}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/tags", response_model=TagList)
def get_tags():
    return TagList(name=_repository, tags=get_sync_engine().tag_list())


@router.get("/tags/{tag}", response_class=PlainTextResponse)
def get_tag_analog(tag: str):
    return get_sync_engine().find_tag_analog(tag)


@router.get("/digests", response_model=DigestSnapshot)
def get_digests():
    return DigestSnapshot(digests=get_sync_engine().snapshot())


@router.get("/health", response_model=HealthResponse)
def health():
    engine = get_sync_engine()
    return HealthResponse(
        status="ok",
        indexed_tags=len(engine.snapshot()),
        last_refresh=engine.last_refresh,
    )
