"""FastAPI server for the collaborative playlist.

This is the main entry point for the API server. It exposes the track
catalog, the playlist mutation endpoints and the server-sent event stream.
"""

import config
import time
from collab_api.models.responses import HealthResponse
from collab_api.routes import playlist_router, stream_router, tracks_router
from collab_api.routes.deps import get_db
from collab_api.seed import seed_database
from collab_api.services.database import DatabaseService
from collab_api.services.event_bus import EventBus
from collab_api.services.mutations import PlaylistService
from contextlib import asynccontextmanager
from core.errors import InvalidRequest, PlaylistError, ServerError
from core.logging import log_api_request, log_error, setup_logging
from eliot import log_message
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pathlib import Path

# Version
__version__ = "1.0.0"


def create_app(
    db_path: str | Path | None = None,
    heartbeat_seconds: float | None = None,
    queue_size: int | None = None,
    seed: bool | None = None,
) -> FastAPI:
    """Build the API application.

    Storage, the event bus and the mutation service are created by the
    lifespan handler and live on ``app.state``; each app gets its own event
    bus and therefore its own sequence counter.

    Args:
        db_path: SQLite file (defaults to ``COLLAB_DB_PATH``)
        heartbeat_seconds: Idle interval between stream pings
        queue_size: Frames buffered per stream subscriber before it is dropped
        seed: Load the demo catalog and playlist on startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        setup_logging(config.LOG_LEVEL, config.LOG_FILE)
        app.state.start_time = time.time()

        path = db_path if db_path is not None else config.DB_PATH
        db = DatabaseService(path)
        should_seed = config.SEED_ON_START if seed is None else seed
        if should_seed:
            seed_database(db)

        app.state.db = db
        app.state.playlist_service = PlaylistService(db)
        app.state.event_bus = EventBus(queue_size or config.SUBSCRIBER_QUEUE_SIZE)
        app.state.heartbeat_seconds = heartbeat_seconds or config.HEARTBEAT_SECONDS

        log_message(message_type="application_ready", message=f"collab playlist API v{__version__} started", database=str(path))

        yield

        # End open streams so the server can shut down
        app.state.event_bus.close()
        log_message(message_type="application_stopped", message="collab playlist API shutting down")

    app = FastAPI(
        title="Collaborative Playlist API",
        description="Shared playlist with realtime event stream",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(tracks_router, prefix="/api")
    app.include_router(playlist_router, prefix="/api")
    app.include_router(stream_router, prefix="/api")

    @app.exception_handler(PlaylistError)
    async def playlist_error_handler(request: Request, exc: PlaylistError):
        if exc.status >= 500:
            log_error(exc, method=request.method, path=request.url.path)
        log_api_request(request.method, request.url.path, status=exc.status, code=exc.code)
        return JSONResponse(status_code=exc.status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        error = InvalidRequest("Invalid request", {"errors": jsonable_encoder(exc.errors())})
        log_api_request(request.method, request.url.path, status=error.status, code=error.code)
        return JSONResponse(status_code=error.status, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        log_error(exc, method=request.method, path=request.url.path)
        error = ServerError("Unexpected error")
        return JSONResponse(status_code=error.status, content=error.to_dict())

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check(request: Request, db: DatabaseService = Depends(get_db)):
        """Health check endpoint."""
        try:
            with db.get_connection() as conn:
                conn.execute("SELECT 1")
            db_status = "connected"
        except Exception as e:
            log_error(e, path="/api/health")
            db_status = "error"

        bus: EventBus = request.app.state.event_bus
        start_time = request.app.state.start_time
        return HealthResponse(
            status="healthy",
            version=__version__,
            database=db_status,
            subscribers=bus.subscriber_count,
            last_event_id=bus.last_event_id,
            uptime_seconds=int(time.time() - start_time),
        )

    return app


app = create_app()


def run():
    """Entry point for running the server."""
    import uvicorn

    uvicorn.run(
        "collab_api.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        reload=config.RELOAD,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
