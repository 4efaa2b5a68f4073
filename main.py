"""
MENTIS Backend - FastAPI Application

Entry point for the Profesor Mentis guided chat and the organizer dashboard.
Business logic lives in services, repositories and the pure engines under
mentor/ and organizer/.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import get_settings, validate_required_settings
from database import get_db_manager, reset_db_manager
from mentor.api import chat, progress
from mentor.services.progress_sync import reset_progress_writer
from organizer.api import overview
from shared.api import health

# Validate configuration on startup
validate_required_settings()

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("mentis")

# Initialize FastAPI app
app = FastAPI(
    title="MENTIS Backend",
    description="Guided tutoring dialogue (Profesor Mentis) and engagement analytics API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(chat.router)
app.include_router(progress.router)
app.include_router(overview.router)


@app.on_event("startup")
async def startup_event():
    """Validate database connection and make sure tables exist."""
    logger.info("Starting MENTIS Backend...")

    db_manager = get_db_manager()
    is_healthy = db_manager.health_check()

    if not is_healthy:
        logger.warning("Database health check failed on startup")
    else:
        db_manager.create_tables()
        logger.info("Database connection healthy")

    logger.info("Application started successfully")


@app.on_event("shutdown")
async def shutdown_event():
    """Write buffered progress before the process exits."""
    reset_progress_writer()
    reset_db_manager()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True
    )
