"""
Wall Cost Rollup API
FastAPI service turning priced wall instances into order / contract cost rows.
"""
import os
import time
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from wallcost.services.catalog_engine import InMemoryCatalog, load_catalog_csv, load_catalog_json
from wallcost.services.logging_config import setup_logging
from wallcost.services.middleware import RequestTimingMiddleware
from wallcost.services.perf_monitor import tracker as perf_tracker

load_dotenv()

_log_level = os.getenv("LOG_LEVEL", "INFO")
_json_logs = os.getenv("LOG_FORMAT", "json").lower() != "text"
setup_logging(level=_log_level, json_output=_json_logs)
logger = logging.getLogger("wallcost-api")

VERSION = "1.0.0"

_PROCESS_START = time.monotonic()


def load_catalog(path: str) -> InMemoryCatalog:
    """
    CATALOG_PATH may point at a JSON catalog or at a directory holding
    items.csv, components.csv and (optionally) dimensions.csv.
    """
    if not path:
        logger.warning("CATALOG_PATH not set, starting with an empty catalog")
        return InMemoryCatalog()
    target = Path(path)
    if target.is_dir():
        dimensions = target / "dimensions.csv"
        return load_catalog_csv(
            str(target / "items.csv"),
            str(target / "components.csv"),
            str(dimensions) if dimensions.exists() else None,
        )
    return load_catalog_json(str(target))


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "catalog", None) is None:
        app.state.catalog = load_catalog(os.getenv("CATALOG_PATH", ""))
    logger.info(f"Catalog ready: {app.state.catalog.summary()}")
    yield


app = FastAPI(
    title="Wall Cost Rollup API",
    version=VERSION,
    description="Order / contract cost rollup for priced wall assemblies",
    lifespan=lifespan,
)
app.add_middleware(RequestTimingMiddleware)

from wallcost.api.rollup_routes import router as rollup_router

app.include_router(rollup_router)


@app.get("/health")
async def health_check():
    catalog = getattr(app.state, "catalog", None)
    return {
        "status": "active",
        "version": VERSION,
        "catalog_loaded": catalog is not None,
        "catalog_items": len(catalog) if catalog is not None else 0,
    }


@app.get("/api/metrics")
async def metrics():
    """Rollup counters from the in-process tracker."""
    return {
        "uptime_seconds": round(time.monotonic() - _PROCESS_START, 1),
        **perf_tracker.get_metrics(),
    }
