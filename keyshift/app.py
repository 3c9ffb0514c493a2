# File: keyshift/app.py
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# --- Early Logging Setup ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

from . import __version__
from .api.v1.router import router as api_router
from .api.v1.routes import system
from .config import Settings, settings as default_settings
from .exceptions import KeyshiftError, RangeNotSatisfiable
from .processing import TrackPipeline
from .utils.cache_janitor import CacheJanitor
from .utils.process_runner import ProcessRunner, SubprocessRunner
from .utils.track_registry import TrackRegistry


def _silence_client_disconnects(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    if isinstance(context.get("exception"), (ConnectionResetError, BrokenPipeError)):
        logger.debug(f"Client disconnected: {context.get('exception')}")
        return
    loop.default_exception_handler(context)


# --- Application Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Asynchronous context manager for application lifecycle events."""
    logger.info("[LIFESPAN] Application startup...")
    app.state.settings.CACHE_DIR.mkdir(parents=True, exist_ok=True)
    logger.info(f"Ensured cache directory exists: {app.state.settings.CACHE_DIR}")
    asyncio.get_running_loop().set_exception_handler(_silence_client_disconnects)

    app.state.janitor.start()
    yield  # Application runs here
    # --- Shutdown Logic ---
    logger.info("[LIFESPAN] Application shutdown requested...")
    await app.state.janitor.stop()
    logger.info(f"[LIFESPAN] Shutdown complete. {len(app.state.registry)} cached track(s) left on disk.")


# --- Exception Handling ---
async def keyshift_exception_handler(request: Request, exc: KeyshiftError):
    headers = None
    if isinstance(exc, RangeNotSatisfiable):
        headers = {"Content-Range": f"bytes */{exc.file_size}"}
    log_level = logging.WARNING if exc.status_code >= 500 else logging.INFO
    logger.log(log_level, f"{type(exc).__name__}: {exc.status_code} - {exc.detail} for {request.method} {request.url.path}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP Exception: {exc.status_code} - {exc.detail} for {request.method} {request.url}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled Exception: {type(exc).__name__} - {exc} for {request.method} {request.url}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal server error occurred. Please check the server logs."},
    )


def create_app(
    settings: Optional[Settings] = None,
    runner: Optional[ProcessRunner] = None,
    registry: Optional[TrackRegistry] = None,
) -> FastAPI:
    """
    Build the application and the components it owns: the track registry,
    the prepare pipeline and the cache janitor.
    """
    if settings is None:
        settings = default_settings
    if registry is None:
        registry = TrackRegistry()

    app = FastAPI(
        title="Keyshift API",
        description="Prepare YouTube audio for seekable playback and estimate its musical key.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry
    if runner is None:
        runner = SubprocessRunner()
    pipeline = TrackPipeline(registry, runner, settings)
    app.state.pipeline = pipeline
    app.state.janitor = CacheJanitor(
        registry,
        interval=settings.CLEANUP_INTERVAL_SECONDS,
        max_age=settings.TRACK_TTL_SECONDS,
        tokens=pipeline.tokens,
    )

    app.add_exception_handler(KeyshiftError, keyshift_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # --- CORS Middleware ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Range", "Accept-Ranges", "Content-Length"],
    )

    # --- Routers ---
    app.include_router(api_router, prefix="/api")
    app.include_router(system.router, tags=["System"])
    return app


app = create_app()


# --- Direct Run (for debugging, use uvicorn command generally) ---
if __name__ == "__main__":
    import uvicorn

    logger.info("Running Uvicorn directly for debugging...")
    uvicorn.run(
        "keyshift.app:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        log_level="debug",
    )
