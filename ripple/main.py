"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ripple.config import settings
from ripple.routers import analysis, protocols, simulation

logging.basicConfig(level=settings.log_level)

app = FastAPI(
    title=settings.app_name,
    description="Echo transfer simulation and dose-response analysis",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(simulation.router, prefix="/api/simulation", tags=["simulation"])
app.include_router(analysis.router, prefix="/api/analysis", tags=["analysis"])
app.include_router(protocols.router, prefix="/api/protocols", tags=["protocols"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "app": settings.app_name}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
