"""
Dymek - FastAPI Application Entry Point

Citizens report geolocated civic issues (dog waste, illegal parking, chimney
smoke); the city updates their status and the reporter gets a push
notification.

DESIGN PRINCIPLES:
- Geo queries go through geohash cells, then an exact distance check
- A status write never waits for, nor is undone by, notification delivery
- Domain errors carry their HTTP status; routes do not translate them
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dymek.core.exceptions import DymekError
from dymek.core.settings import settings
from dymek.routes import health, markers, reports, users
from dymek.services.registry import get_registry

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Geolocated civic issue reports with status notifications",
    debug=settings.DEBUG,
)


@app.exception_handler(DymekError)
async def domain_exception_handler(request: Request, exc: DymekError):
    """Map the domain error taxonomy to HTTP responses."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.error_code}): {exc.detail}")

    content = {"detail": exc.detail, "error_code": exc.error_code}
    if exc.field:
        content["field"] = exc.field
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Pydantic request validation errors share the VALIDATION_ERROR code."""
    logger.info(f"{request.method} {request.url.path} invalid request: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors(), "error_code": "VALIDATION_ERROR"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them with full traceback."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "error_code": "INTERNAL_ERROR"},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """
    Build the service registry (record stores, push transport) up front so
    configuration problems show at boot rather than on the first request.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    try:
        get_registry()
    except Exception as e:
        logger.warning(f"Service initialization failed: {e}")
        logger.warning("The app will start but database operations may fail.")


@app.on_event("shutdown")
async def shutdown_event():
    """Let in-flight notifications finish before the loop goes away."""
    logger.info(f"Shutting down {settings.APP_NAME}")
    try:
        await get_registry().notifier.drain()
    except Exception as e:
        logger.warning(f"Could not drain pending notifications: {e}")


app.include_router(health.router)
app.include_router(markers.router)
app.include_router(reports.router)
app.include_router(users.router)


@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
        "markers": "/markers?latitude={lat}&longitude={lon}&radius={meters}",
    }
