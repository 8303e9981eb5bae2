"""
crowdfund/main.py
ASGI app: pledge, catalog, profile and feed routes under /api, probes at the root.
"""
import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# crowdfund/.env is only read outside pytest
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(os.path.dirname(os.path.abspath(__file__)), ".env"))

from crowdfund.api import crowdfundings, feeds, health, pledges, profile
from crowdfund.core.config import settings, validate_config
from crowdfund.core.errors import register_error_handlers
from crowdfund.core.logging import configure_logging
from crowdfund.core.middleware.metrics import MetricsMiddleware
from crowdfund.core.middleware.request_id import RequestIdMiddleware
from crowdfund.core.validation import validate_env

logger = logging.getLogger("crowdfund")

configure_logging(settings.ENV)
validate_env()
validate_config(strict=settings.CONFIG_STRICT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.started_at = time.time()
    logger.info(f"crowdfund backend up (env={settings.ENV})")
    yield
    logger.info("crowdfund backend shutting down")


def cors_origins() -> list:
    return [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]


app = FastAPI(title="Crowdfund API", lifespan=lifespan)

# Last added runs first: CORS, then request ids, then metrics
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)

for module in (pledges, crowdfundings, profile, feeds):
    app.include_router(module.router, prefix="/api")
app.include_router(health.router)
app.include_router(health.root_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("crowdfund.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
