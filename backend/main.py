#!/usr/bin/env python3
"""
imageset Backend - release image resolver

Resolves, for a release tag of the tracked repository, the set of container
images a deployment of that release depends on.

Background work:
- The tag sync task rebuilds the tag↔digest index at startup and then every
  IMAGESET_SYNC_INTERVAL_MINUTES. Requests only read the last published
  index; they never trigger or wait for a refresh.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from api import routes as image_routes
from catalog.bundled_images import BundledImageFinder
from catalog.catalog_mirror import CatalogMirror
from catalog.image_service import ImageSetService
from config.settings import AppConfig, HealthCheckFilter, setup_logging
from registry.registry_client import RegistryClient
from registry.tag_sync import TagSyncEngine
from registry.token_manager import TokenManager

# Configure logging
setup_logging(AppConfig.LOG_LEVEL)
logger = logging.getLogger(__name__)


def build_services():
    """Wire the registry, catalog and image services from AppConfig"""
    token_manager = TokenManager(
        auth_url=AppConfig.AUTH_URL,
        service=AppConfig.AUTH_SERVICE,
        repository=AppConfig.REPOSITORY,
        safety_margin=AppConfig.TOKEN_SAFETY_MARGIN_SECONDS,
        timeout=AppConfig.HTTP_TIMEOUT_SECONDS,
    )
    client = RegistryClient(
        registry_url=AppConfig.REGISTRY_URL,
        repository=AppConfig.REPOSITORY,
        token_manager=token_manager,
        include_prerelease=AppConfig.INCLUDE_PRERELEASE,
        prerelease_pattern=AppConfig.PRERELEASE_PATTERN,
        connection_limit=AppConfig.SYNC_BATCH_SIZE,
        timeout=AppConfig.HTTP_TIMEOUT_SECONDS,
    )
    sync_engine = TagSyncEngine(
        client,
        batch_size=AppConfig.SYNC_BATCH_SIZE,
        interval_seconds=AppConfig.SYNC_INTERVAL_MINUTES * 60,
    )
    image_service = ImageSetService(
        sync_engine=sync_engine,
        mirror=CatalogMirror(AppConfig.CATALOG_URL, AppConfig.CATALOG_DIR),
        bundled_images=BundledImageFinder(AppConfig.RAW_CONTENT_URL, AppConfig.HTTP_TIMEOUT_SECONDS),
    )
    return client, sync_engine, image_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle"""
    # Validate configuration early to fail fast on misconfiguration
    AppConfig.validate()

    logger.info("Starting imageset backend...")

    # Reapply health check filter to uvicorn access logger (must be done after uvicorn starts)
    uvicorn_access = logging.getLogger("uvicorn.access")
    uvicorn_access.addFilter(HealthCheckFilter())

    client, sync_engine, image_service = build_services()
    image_routes.set_services(sync_engine, image_service, AppConfig.REPOSITORY)

    def _handle_task_exception(task: asyncio.Task):
        """Handle exceptions from background tasks"""
        try:
            task.result()
        except asyncio.CancelledError:
            pass  # Normal shutdown, don't log
        except Exception as e:
            logger.error(f"Background task failed: {e}", exc_info=True)

    sync_task: Optional[asyncio.Task] = asyncio.create_task(sync_engine.run_periodically())
    sync_task.add_done_callback(_handle_task_exception)
    logger.info("Tag sync task started")

    yield

    logger.info("Shutting down imageset backend...")

    sync_task.cancel()
    try:
        await sync_task
    except asyncio.CancelledError:
        logger.info("Tag sync task cancelled successfully")
    except Exception as e:
        logger.error(f"Error during tag sync task shutdown: {e}")

    try:
        await client.close()
        logger.info("Registry client closed")
    except Exception as e:
        logger.error(f"Error closing registry client: {e}")


app = FastAPI(
    title="imageset API",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(image_routes.router)


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting HTTP server on {AppConfig.HOST}:{AppConfig.PORT}")
    uvicorn.run(app, host=AppConfig.HOST, port=AppConfig.PORT, log_config=None)
