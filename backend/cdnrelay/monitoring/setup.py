import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.types import ASGIApp

logger = logging.getLogger("cdn-relay")

uploads_total = Counter("cdnrelay_uploads_total", "Upload attempts by outcome", ["outcome"])
upload_duration = Histogram("cdnrelay_upload_duration_seconds", "Duration of a full upload sequence in seconds")
short_name_collisions = Counter("cdnrelay_short_name_collisions_total", "Short-name UNIQUE collisions")
upstream_fetch_failures = Counter("cdnrelay_upstream_fetch_failures_total", "Failed CDN origin fetches")


def report_upload(outcome: str, duration: float | None = None) -> None:
    """Record the outcome of one upload sequence."""
    uploads_total.labels(outcome=outcome).inc()
    if duration is not None:
        upload_duration.observe(duration)


def report_collision() -> None:
    short_name_collisions.inc()


def report_fetch_failure() -> None:
    upstream_fetch_failures.inc()


def setup_monitoring(app: ASGIApp, expose_metrics: bool = True):
    if expose_metrics:
        Instrumentator().instrument(app).expose(app, endpoint="/api/metrics", include_in_schema=False)

    @app.middleware("http")
    async def monitor_requests(request: Request, call_next):
        start_time = time.time()
        response = None
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("Unhandled error: %s %s -> %s", request.method, request.url.path, e)
            response = JSONResponse(status_code=500, content={"status": "error", "message": "Internal server error"})
        finally:
            process_time = time.time() - start_time
            logger.info("method=%s path=%s status=%s duration=%.4fs",
                        request.method, request.url.path,
                        getattr(response, "status_code", "?"), process_time)
        return response
