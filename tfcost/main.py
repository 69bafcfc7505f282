"""
Main FastAPI application bootstrap.
Configures logging and includes routers.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tfcost.core.config import config
from tfcost.api.templates import close_pricing_lookup, router as templates_router


logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Validate configuration on startup
try:
    config.validate()
except ValueError as error:
    # Fail fast with a clear message
    raise RuntimeError(f"Configuration error: {error}") from error

logger.info(
    "Templates root=%s, pricing source=%s",
    config.TEMPLATES_ROOT,
    config.PRICING_API_BASE_URL or config.PRICING_CATALOG_PATH or "none",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    logger.info("Shutting down")
    close_pricing_lookup()


app = FastAPI(
    title="Template Cost Estimation",
    description="Cost estimates for infrastructure templates",
    lifespan=lifespan,
)

app.include_router(templates_router)


@app.get("/health")
async def health() -> dict:
    """Liveness check."""
    return {"status": "ok"}
