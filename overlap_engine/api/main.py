"""FastAPI application entry point."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import router, integration
from ..core.presets import base_lineup

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("overlap_engine")

# Create FastAPI app
app = FastAPI(
    title="Overlap Engine",
    description="Volleyball rotation overlap rules and drag constraints",
    version="0.1.0"
)

# CORS middleware for the court editor frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routes
app.include_router(router)


@app.on_event("startup")
async def startup_event():
    """Startup tasks."""
    logger.info("Overlap Engine starting up...")
    try:
        warmed = integration.calculator.warm_up_cache([base_lineup()])
        logger.info(f"Constraint cache warmed with {warmed} entries")
    except Exception as e:
        logger.error(f"Failed to warm constraint cache: {e}")
    logger.info("API documentation available at http://localhost:8000/docs")


@app.on_event("shutdown")
async def shutdown_event():
    """Shutdown tasks."""
    logger.info("Overlap Engine shutting down...")
