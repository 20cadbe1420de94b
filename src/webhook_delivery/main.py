"""
Module: main.py
Description: FastAPI application entry point for the webhook delivery service.

Initializes the FastAPI application with the delivery routes, CORS
middleware, and error handlers, and exposes the API Gateway Lambda handler.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mangum import Mangum

from webhook_delivery.config.settings import settings
from webhook_delivery.handlers.deliveries import router as deliveries_router
from webhook_delivery.utils.logger import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log application startup and shutdown."""
    logger.info(
        "Starting webhook delivery service",
        version=settings.app_version,
        stage=settings.stage,
        region=settings.aws_region,
        storage_backend=settings.storage_backend
    )
    yield
    logger.info("Shutting down webhook delivery service")


app = FastAPI(
    title=settings.app_name,
    description="Signed, retried delivery of outbound webhooks",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(deliveries_router)


@app.get("/health")
async def health_check():
    """Liveness check."""
    return {
        "status": "ok",
        "message": "Webhook delivery service is healthy",
        "version": settings.app_version,
        "environment": settings.stage
    }


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Global HTTP exception handler.

    Logs HTTP exceptions and returns structured error responses.
    """
    logger.warning(
        "HTTP exception occurred",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "details": None}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Global handler for unhandled errors."""
    logger.error(
        "Unhandled exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method
    )

    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc)}
    )


# Lambda handler
handler = Mangum(app, lifespan="off")
