"""
FastAPI backend for the viz3d webapp.

Accepts CSV/JSON uploads, parses them into records, keeps dataset metadata
in a relational registry (with an optional redis cache) and serves
render-ready coordinates to the 3D front-end.
"""

import os
from http import HTTPStatus
from pathlib import Path

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, ORJSONResponse
from fastapi.staticfiles import StaticFiles

from api.app_config import get_settings
from api.shared.errors import IngestionError, StorageUnavailableError
from api.shared.logger import get_logger, setup_logging

setup_logging(get_settings().log_level)
logger = get_logger(__name__)

from api.datasets import router as datasets_router
from api.registry import get_registry
from api.system import log_error
from api.system import router as system_router
from api.upload import router as upload_router
from api.visualize import router as visualize_router

# Create FastAPI app
app = FastAPI(
    title="viz3d API",
    description="Upload tabular data and explore it as a 3D scatter plot",
    version="1.0.0",
    default_response_class=ORJSONResponse,
)


# ============= Exception Handlers =============


def _reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


@app.exception_handler(IngestionError)
async def ingestion_exception_handler(request: Request, exc: IngestionError):
    """Validation and parse failures of an upload."""
    logger.info("%s rejected: %s", request.url.path, exc.details)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StorageUnavailableError)
async def storage_exception_handler(request: Request, exc: StorageUnavailableError):
    log_error(
        endpoint=str(request.url.path),
        message=exc.details,
        level="error",
        details="Registry unavailable",
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Log HTTP exceptions and return JSON response."""
    # Only log 5xx errors (server errors)
    if exc.status_code >= 500:
        log_error(
            endpoint=str(request.url.path),
            message=str(exc.detail),
            level="error",
            details=f"Status code: {exc.status_code}",
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": _reason(exc.status_code), "details": exc.detail},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed requests (missing form fields, bad JSON bodies)."""
    return JSONResponse(
        status_code=422,
        content={"error": "Validation error", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Log unexpected exceptions and return JSON response."""
    log_error(
        endpoint=str(request.url.path),
        message=str(exc),
        level="critical",
        details=f"Unhandled exception: {type(exc).__name__}",
        exc=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": type(exc).__name__},
    )


# The upload page is served by a separate dev server during development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Must be False when using allow_origins=["*"]
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API routes
app.include_router(upload_router, prefix="/api")
app.include_router(datasets_router, prefix="/api")
app.include_router(visualize_router, prefix="/api")
app.include_router(system_router, prefix="/api", tags=["system"])


# ============= Startup Events =============


@app.on_event("startup")
async def startup_event():
    """Prepare storage folders and the registry schema."""
    settings = get_settings()
    logger.info("viz3d backend starting...")
    logger.info("Uploads stored in %s", settings.upload_dir)

    try:
        settings.upload_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error("Cannot create upload directory %s: %s", settings.upload_dir, e)

    try:
        get_registry().init_schema()
    except StorageUnavailableError as e:
        # Uploads still parse without a registry, they just are not listed
        logger.error("Dataset registry unavailable at startup: %s", e.details)

    logger.info("Response cache %s", "enabled" if settings.cache_enabled else "disabled")


# Serve the built front-end if present
dist_path = Path(__file__).parent / "dist"

if (dist_path / "assets").exists():
    app.mount("/assets", StaticFiles(directory=str(dist_path / "assets")), name="assets")


@app.get("/")
async def serve_spa():
    """Serve the main SPA HTML file"""
    index_file = dist_path / "index.html"
    if index_file.exists():
        return FileResponse(str(index_file))
    return {"message": "viz3d API is running", "docs": "/docs"}


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="viz3d backend server")
    parser.add_argument(
        "--port",
        type=int,
        default=get_settings().port,
        help="Port to run the server on (default: 8000 or VIZ3D_PORT env var)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=os.environ.get("VIZ3D_HOST", "127.0.0.1"),
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Enable auto-reload",
    )
    args = parser.parse_args()

    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )
