"""
Skin Analyzer Backend API
Main FastAPI application entry point
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

import uvicorn

from core.config import settings
from core.middleware import RequestIDMiddleware, LoggingMiddleware
from api.router import api_router
from services.storage import staging_area
from utils.error_handlers import register_exception_handlers

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events"""
    # Startup
    logger.info(f"Starting {settings.PROJECT_NAME} API...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    if not settings.api_key_configured:
        logger.error("GEMINI_API_KEY environment variable is not set")
        raise RuntimeError("Missing Gemini API key")
    logger.info("Gemini API key configured")

    staging_area.start_sweeper()
    logger.info(f"Staging directory: {staging_area.upload_dir}")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.PROJECT_NAME} API...")
    await staging_area.stop_sweeper()
    await staging_area.flush_pending()


# Create FastAPI application
app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    description="Dermatological analysis of uploaded skin images",
    version=settings.VERSION,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add custom middleware
app.add_middleware(RequestIDMiddleware)
app.add_middleware(LoggingMiddleware)

register_exception_handlers(app)

app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Welcome payload"""
    return {
        "message": f"Welcome to {settings.PROJECT_NAME} API",
        "version": settings.VERSION,
        "documentation": "/api/status"
    }


def run():
    """Serve the API with uvicorn on the configured host and port"""
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
