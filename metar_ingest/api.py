"""
API module for the METAR ingest project.

This FastAPI app exposes endpoints to:
- Trigger one METAR pipeline run (download, validate, upsert, clean up)
- Query METAR metrics (latest observation per station, flight category counts)
- Check service health

Usage hints:
- All endpoints are versioned under /v1/
- Requires environment variables: DATABASE_URL (required), METAR_* (optional, see .env.example)
- Failures are returned as HTTP errors (502 upstream feed, 422 bad file contents,
  503 database, 500 otherwise) with the run's log output in the detail
- Designed for scheduled triggering from Airflow (see dags/metar_pipeline_dag.py)
"""
import io
import logging
import os
import threading
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, FastAPI, HTTPException, Query
import psycopg
from psycopg import OperationalError
from pydantic import BaseModel

from metar_ingest import db
from metar_ingest.config import PipelineConfig
from metar_ingest.db import get_connection
from metar_ingest.errors import FetchError, HeaderError, MetarPipelineError, RecordError, StoreError
from metar_ingest.metrics import get_flight_category_counts, get_latest_observations
from metar_ingest.pipeline import LOG_FORMAT, MetarPipeline

# Configure logging
logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper(), format=LOG_FORMAT)
logger = logging.getLogger(__name__)

api_v1 = APIRouter()


class RunPipelineRequest(BaseModel):
    download: Optional[bool] = None
    filename: Optional[str] = None


def _status_for(error: Exception) -> int:
    if isinstance(error, FetchError):
        return 502
    if isinstance(error, (HeaderError, RecordError)):
        return 422
    if isinstance(error, (StoreError, OperationalError)):
        return 503
    return 500


@api_v1.post("/run-pipeline")
def run_pipeline(
    req: Optional[RunPipelineRequest] = Body(
        None,
        examples=[
            {"download": True},
            {"download": False, "filename": "data/2024_01_01_0000.csv"},
        ],
    )
) -> Dict[str, Any]:
    """
    Run the METAR pipeline once.
    Settings not given in the body fall back to the environment.
    Captures the pipeline's log output and returns it for Airflow log visibility.

    Request body (optional):
        {
            "download": true,                  # fetch, ingest, delete
            "filename": "data/metars.csv"      # target file (default: timestamped in METAR_DATA_DIR)
        }
    Returns:
        dict: {"status": "ok", "rows": n, "output": ...}
    Raises:
        HTTPException: With {"error": ..., "output": ...} as detail on failure.
    """
    req = req or RunPipelineRequest()
    output = io.StringIO()
    handler = logging.StreamHandler(output)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    # Sync endpoints run in a thread pool; only keep records from this request's thread.
    request_thread = threading.get_ident()
    handler.addFilter(lambda record: record.thread == request_thread)
    package_logger = logging.getLogger("metar_ingest")
    package_logger.addHandler(handler)
    try:
        config = PipelineConfig.from_env(filename=req.filename, download=req.download)
        rows = MetarPipeline(config).run()
        return {"status": "ok", "rows": rows, "output": output.getvalue()}
    except (MetarPipelineError, psycopg.Error, RuntimeError, ValueError) as e:
        logger.error("Pipeline failed: %s", e)
        raise HTTPException(
            status_code=_status_for(e),
            detail={"error": f"Pipeline failed: {e}", "output": output.getvalue()},
        )
    finally:
        package_logger.removeHandler(handler)


@api_v1.get("/metrics/latest-observations")
def latest_observations() -> list[dict]:
    """
    Get the newest stored observation per station.

    Returns:
        list[dict]: station_id, observation_time, temperature, wind, visibility, altimeter,
            flight_category and raw_text per station
    Raises:
        HTTPException: 503 if the database is unreachable.
    """
    try:
        with get_connection(os.environ.get("DATABASE_URL", "")) as conn:
            result = get_latest_observations(conn)
    except OperationalError as e:
        # Database connection error
        raise HTTPException(status_code=503, detail=f"Database not reachable: {e}")
    return result


@api_v1.get("/metrics/flight-categories")
def flight_categories(hours: int = Query(24, ge=1, le=24 * 30)) -> list[dict]:
    """
    Get observation counts per flight category for the last ``hours`` hours.

    Raises:
        HTTPException: 503 if the database is unreachable.
    """
    try:
        with get_connection(os.environ.get("DATABASE_URL", "")) as conn:
            result = get_flight_category_counts(conn, hours)
    except OperationalError as e:
        # Database connection error
        raise HTTPException(status_code=503, detail=f"Database not reachable: {e}")
    return result


@api_v1.get("/health")
def health() -> Dict[str, str]:
    """
    Health check endpoint. Verifies database connectivity.

    Returns:
        dict: {"status": "ok"} if healthy.
    Raises:
        HTTPException: 503 if the database is unreachable.
    """
    try:
        with get_connection(os.environ.get("DATABASE_URL", "")) as conn:
            db.ping(conn)
        return {"status": "ok"}
    except Exception:
        # Any error means the DB is not reachable
        raise HTTPException(status_code=503, detail="Database not reachable")


app = FastAPI(title="METAR ingest")
app.include_router(api_v1, prefix="/v1")
