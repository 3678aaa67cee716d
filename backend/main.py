"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import devices, songs, sync
from config import settings
from database import get_session_local
from logging_config import setup_logging
from services.exceptions import IntegrityError, SyncEngineError
from services.sync_session_service import SyncSessionService

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cancel sync sessions abandoned while the server was down."""
    if settings.SYNC_SWEEP_ON_STARTUP:
        SessionLocal = get_session_local()
        db = SessionLocal()
        try:
            cancelled = SyncSessionService.cancel_stale_sessions(db)
            if cancelled:
                logger.info("Startup sweep cancelled %d stale sync sessions", len(cancelled))
        except Exception:
            logger.warning("Stale session sweep failed on startup", exc_info=True)
        finally:
            db.close()
    yield


app = FastAPI(
    title="Music Sync",
    description="Personal music catalog with device synchronization",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SyncEngineError)
async def sync_engine_error_handler(request: Request, exc: SyncEngineError) -> JSONResponse:
    """Map the sync engine's error taxonomy to HTTP responses."""
    logger.warning(
        "%s in %s %s: %s",
        type(exc).__name__,
        request.method,
        request.url.path,
        exc.message,
    )
    content = {"detail": exc.message, "error": type(exc).__name__}
    if isinstance(exc, IntegrityError):
        content["expected"] = exc.expected
        content["actual"] = exc.actual
    return JSONResponse(status_code=exc.status_code, content=content)


# Include API routers
app.include_router(devices.router)
app.include_router(songs.router)
app.include_router(sync.router)
app.include_router(sync.admin_router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": app.version}
