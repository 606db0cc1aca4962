"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from api.database import close_all_sessions
from api.routes import restaurants, sessions
from settings import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create app
app = FastAPI(
    title="Food Finder API",
    description="Nearby restaurant search, geocoding and walking routes",
    version="0.1.0",
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(restaurants.router, tags=["restaurants"])
if settings.SESSIONS_ENABLED:
    app.include_router(sessions.router, prefix="/sessions", tags=["sessions"])


@app.on_event("shutdown")
def shutdown_event():
    """Stop every open query session so device subscriptions are released."""
    close_all_sessions()


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Food Finder API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
