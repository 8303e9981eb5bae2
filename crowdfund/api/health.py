"""
Probes and diagnostics.

- GET /healthz: process is up
- GET /readyz: database reachable and the pledge tables exist
- GET /api/health/db: connectivity, latency and missing tables as JSON
- GET /metrics: in-process counters
"""

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from sqlalchemy import inspect

from crowdfund.core.database import check_connection, get_engine
from crowdfund.core.logging import get_request_id, latency_bucket_ms
from crowdfund.core.metrics import METRICS

logger = logging.getLogger("crowdfund")

router = APIRouter(prefix="/api/health", tags=["health"])
root_router = APIRouter(tags=["health"])

# Tables pledge submission reads or writes
REQUIRED_TABLES = [
    "users",
    "packages",
    "package_options",
    "pledges",
    "pledge_options",
    "payment_sources",
]


class DatabaseStatus(BaseModel):
    connected: bool
    latency_ms: Optional[float] = None
    tables_missing: List[str] = []


class HealthReport(BaseModel):
    ok: bool
    db: DatabaseStatus
    computed_at: str


def missing_tables(engine) -> List[str]:
    inspector = inspect(engine)
    return [name for name in REQUIRED_TABLES if not inspector.has_table(name)]


@root_router.get("/healthz")
def healthz():
    return {"status": "ok"}


@root_router.get("/readyz")
def readyz():
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
        missing = missing_tables(engine)
    except Exception as e:
        logger.error(f"[readyz] database unreachable: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})

    if missing:
        detail = f"missing tables: {', '.join(missing)}"
        logger.warning(f"[readyz] {detail}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": detail})
    return {"status": "ok"}


@router.get("/db", response_model=HealthReport)
def health_db(now: Optional[str] = Query(None, description="Fixed computedAt; also hides latency")):
    started = time.perf_counter()
    connected = check_connection()
    latency_ms = (time.perf_counter() - started) * 1000

    status = DatabaseStatus(connected=connected, latency_ms=None if now else latency_ms)
    if connected:
        try:
            status.tables_missing = missing_tables(get_engine())
        except Exception as e:
            logger.warning(f"[health] table inspection failed: {e}")

    logger.info(
        "health.db",
        extra={"request_id": get_request_id(), "ok": connected, "latency_bucket": latency_bucket_ms(status.latency_ms)},
    )
    return HealthReport(
        ok=connected and not status.tables_missing,
        db=status,
        computed_at=now or datetime.now(timezone.utc).isoformat(),
    )


@root_router.get("/metrics")
def metrics():
    return Response(content=METRICS.export_prometheus(), media_type="text/plain; version=0.0.4")
