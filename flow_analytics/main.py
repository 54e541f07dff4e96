"""
FastAPI application entry point for the Flow Analytics API.

Configures logging, CORS, the flow routers and the handler that renders
pipeline errors as {error, details, hint?, status}.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from flow_analytics import __version__
from flow_analytics.api import api_router
from flow_analytics.core.config import get_settings
from flow_analytics.core.exceptions import FlowAnalyticsError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup/shutdown hook.

    Nothing is pooled across requests; startup only reports whether the
    upstream key is configured.
    """
    settings = get_settings()
    logger.info(
        f"Flow Analytics API starting (revision={settings.klaviyo_api_revision}, "
        f"max_rows={settings.max_rows})"
    )
    if not settings.klaviyo_api_key:
        logger.warning("KLAVIYO_API_KEY is not set; flow endpoints will answer 400")
    yield
    logger.info("Flow Analytics API shutting down")


app = FastAPI(
    title="Flow Analytics API",
    version=__version__,
    description=(
        "Aggregates email flow performance from the upstream reporting API, "
        "scores flow steps and suggests new steps."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.exception_handler(FlowAnalyticsError)
async def flow_analytics_error_handler(request: Request, exc: FlowAnalyticsError) -> JSONResponse:
    """Render typed pipeline errors with their own status code."""
    if exc.status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.error}: {exc.details}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.error}: {exc.details}")
    return JSONResponse(status_code=exc.status, content=exc.to_dict())


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancers.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    return {
        "name": "Flow Analytics API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "flow_analytics.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
