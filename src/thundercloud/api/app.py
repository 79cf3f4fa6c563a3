"""FastAPI application for thundercloud lookups.

Provides REST API endpoints for:
- Weather and thundercloud analysis at a single coordinate
- Directional reports around a location
- Cache statistics and health checks

Example:
    >>> from thundercloud.api import create_app
    >>> app = create_app()
    >>> # Run with: uvicorn thundercloud.api.app:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import duckdb
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from thundercloud.api.schemas import (
    COORDINATE_BOUNDS,
    CacheStatsResponse,
    DirectionalWeatherResponse,
    ErrorResponse,
    HealthResponse,
    PointWeatherResponse,
)
from thundercloud.config import MonitorConfig
from thundercloud.monitoring.orchestrator import MonitoringOrchestrator, build_orchestrator
from thundercloud.utils.geo import GeoPoint, ProjectionError

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

LATITUDE = Query(
    ...,
    ge=COORDINATE_BOUNDS["lat_min"],
    le=COORDINATE_BOUNDS["lat_max"],
    description="Latitude in decimal degrees",
)
LONGITUDE = Query(
    ...,
    ge=COORDINATE_BOUNDS["lon_min"],
    le=COORDINATE_BOUNDS["lon_max"],
    description="Longitude in decimal degrees",
)


def create_app(
    orchestrator: Optional[MonitoringOrchestrator] = None,
    config: Optional[MonitorConfig] = None,
) -> FastAPI:
    """Create FastAPI application.

    Args:
        orchestrator: Orchestrator to serve requests with. Built from
            ``config`` on first use if not given.
        config: Configuration used when building the orchestrator

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if app.state.orchestrator is not None:
            app.state.orchestrator.close()

    app = FastAPI(
        title="Thundercloud API",
        description="Thundercloud likelihood around a location from Open-Meteo forecasts",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_orchestrator() -> MonitoringOrchestrator:
        if app.state.orchestrator is None:
            app.state.orchestrator = build_orchestrator(app.state.config)
            logger.info("Orchestrator initialized")
        return app.state.orchestrator

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with custom response."""
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=f"HTTP_{exc.status_code}",
                message=str(exc.detail),
            ).model_dump(),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=ErrorResponse(
                error="VALIDATION_ERROR",
                message="Invalid request parameters",
                detail="; ".join(
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in exc.errors()
                ),
            ).model_dump(),
        )

    @app.get("/", tags=["info"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Thundercloud API",
            "version": API_VERSION,
            "docs": "/docs",
        }

    @app.get("/health", response_model=HealthResponse, tags=["info"])
    async def health_check():
        """Health check endpoint."""
        try:
            get_orchestrator().cache.db.count_directional()
            database_ok = True
        except duckdb.Error as e:
            logger.error(f"Health check database query failed: {e}")
            database_ok = False

        return HealthResponse(
            status="healthy" if database_ok else "degraded",
            database_ok=database_ok,
            version=API_VERSION,
        )

    @app.get(
        "/weather/point",
        response_model=PointWeatherResponse,
        responses={422: {"model": ErrorResponse, "description": "Invalid coordinates"}},
        tags=["weather"],
    )
    async def point_weather(latitude: float = LATITUDE, longitude: float = LONGITUDE):
        """Atmospheric sample and thundercloud analysis at one coordinate.

        Served from the cache when fresh, otherwise fetched upstream. If the
        upstream fetch fails, default (zero-risk) values are returned with
        ``source='default'``.
        """
        return get_orchestrator().point_weather(GeoPoint(latitude, longitude))

    @app.get(
        "/weather/directional",
        response_model=DirectionalWeatherResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Location cannot be projected"},
            422: {"model": ErrorResponse, "description": "Invalid coordinates"},
        },
        tags=["weather"],
    )
    async def directional_weather(latitude: float = LATITUDE, longitude: float = LONGITUDE):
        """Representative thundercloud result for each direction around a location."""
        try:
            return get_orchestrator().directional_weather(GeoPoint(latitude, longitude))
        except ProjectionError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @app.get(
        "/cache/stats",
        response_model=CacheStatsResponse,
        responses={500: {"model": ErrorResponse, "description": "Database error"}},
        tags=["cache"],
    )
    async def cache_stats():
        """Cache entry counts and retention settings."""
        try:
            return get_orchestrator().cache.stats()
        except duckdb.Error as e:
            logger.error(f"Cache stats error: {e}")
            raise HTTPException(status_code=500, detail=f"Cache stats failed: {e}")

    return app


# Default app instance for uvicorn
app = create_app()
