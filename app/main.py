"""Main FastAPI application"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api import hook_settings, hooks, projects
from app.config import settings
from app.models.base import init_db
from app.scheduler import scheduler

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting Git Hook service")
    init_db()
    scheduler.start()
    yield
    # Shutdown
    logger.info("Stopping Git Hook service")
    scheduler.stop()


app = FastAPI(
    title="Git Hook Service",
    description="Mirror repositories and track review discussions as tracker issues",
    version="1.0.0",
    lifespan=lifespan,
)

# Include API routers
app.include_router(hooks.router)
app.include_router(hook_settings.router)
app.include_router(projects.router)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "Git Hook"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )
