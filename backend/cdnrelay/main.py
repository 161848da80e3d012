import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cdnrelay.core.cdn_client import CdnClient
from cdnrelay.core.config import Settings, settings as default_settings
from cdnrelay.core.errors import RelayError
from cdnrelay.core.logging_config import setup_logging
from cdnrelay.core.store import FileStore
from cdnrelay.monitoring.setup import setup_monitoring
from cdnrelay.routes import api, serve, uploads
from cdnrelay.services.allocator import ShortNameAllocator
from cdnrelay.services.uploads import UploadOrchestrator

logger = logging.getLogger("cdn-relay")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(app.state.settings.LOG_LEVEL)
    store: FileStore = app.state.store
    try:
        await store.create_all()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    os.makedirs(app.state.settings.UPLOAD_TMP_DIR, exist_ok=True)

    yield

    await app.state.cdn.aclose()
    await store.dispose()
    logger.info("Application shutdown complete")


async def relay_error_handler(request: Request, exc: RelayError):
    logger.error("%s %s -> %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"status": "error", "message": exc.message})


def create_app(settings: Settings | None = None, cdn: CdnClient | None = None) -> FastAPI:
    settings = settings or default_settings

    store = FileStore(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
    cdn = cdn or CdnClient.from_settings(settings)
    allocator = ShortNameAllocator(store, length=settings.SHORT_NAME_LENGTH)
    orchestrator = UploadOrchestrator(
        cdn=cdn,
        allocator=allocator,
        max_file_size=settings.MAX_FILE_SIZE,
        staging_dir=settings.UPLOAD_TMP_DIR,
    )

    app = FastAPI(
        title="CDN Relay",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.cdn = cdn
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "Content-Length", "X-Original-Filename"],
    )
    app.add_exception_handler(RelayError, relay_error_handler)

    app.include_router(uploads)
    app.include_router(serve)
    app.include_router(api)

    setup_monitoring(app, expose_metrics=settings.METRICS_ENABLED)

    @app.get("/health")
    async def health_check():
        try:
            await store.ping()
            db_status = "ok"
        except Exception as e:
            db_status = f"error: {str(e)}"

        return {
            "status": "running",
            "timestamp": datetime.utcnow().isoformat(),
            "database": db_status,
            "cdn": settings.CDN_UPLOAD_URL,
        }

    return app


app = create_app()


def run():
    logger.info("CDN relay starting on http://%s:%s", default_settings.HOST, default_settings.PORT)
    uvicorn.run(
        app,
        host=default_settings.HOST,
        port=default_settings.PORT,
        log_level=default_settings.LOG_LEVEL,
        timeout_keep_alive=60,
    )


if __name__ == "__main__":
    run()
