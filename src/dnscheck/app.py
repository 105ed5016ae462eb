"""FastAPI application entry point."""

import asyncio
import contextlib
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI

from dnscheck.api.healthcheck import router as healthcheck_router
from dnscheck.api.routes import get_dependencies, router
from dnscheck.core.config import get_settings
from dnscheck.core.geoip_update import update_loop
from dnscheck.core.store import init_store
from dnscheck.utils.decorators import init_sentry

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logging.getLogger("dnscheck").setLevel(
    logging.DEBUG if get_settings().debug else logging.INFO
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    sentry = init_sentry(settings)
    store = init_store(settings.use_redis, settings.redis_url, settings.result_ttl)

    # Fails fast when no resolvers can be found
    deps = get_dependencies()

    geoip_task = None
    if settings.geoip_enabled:
        geoip_task = asyncio.create_task(update_loop(settings))

    logger.info("DNS Check starting...")
    logger.info(f"Resolver groups: {', '.join(deps.resolver_groups)}")
    logger.info(f"Limit: {settings.limit}, concurrency: {settings.concurrency}")
    logger.info(f"Store: {store.backend.name}")
    logger.info(f"GeoIP: {settings.geoip_db if settings.geoip_enabled else 'disabled'}")
    logger.info(f"Sentry: {'enabled' if sentry else 'disabled'}")

    yield

    logger.info("DNS Check shutting down...")

    if geoip_task is not None:
        geoip_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await geoip_task

    if deps.enricher is not None:
        deps.enricher.close()

    await store.close()


app = FastAPI(
    title="DNS Check",
    description="Bulk DNS lookups with expected-answer verification",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)
app.include_router(healthcheck_router)
