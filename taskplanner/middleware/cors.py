"""CORS configuration for the desktop/web front end."""
import logging

from fastapi.middleware.cors import CORSMiddleware

from taskplanner.config import ENVIRONMENT, FRONTEND_URL

logger = logging.getLogger(__name__)

# Local front-end dev servers
ALLOWED_ORIGINS = [
    "http://localhost:1420",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "tauri://localhost",
]

if FRONTEND_URL and FRONTEND_URL not in ALLOWED_ORIGINS:
    ALLOWED_ORIGINS.append(FRONTEND_URL)


def add_cors_middleware(app):
    """Add CORS middleware to the FastAPI application."""
    origins = ALLOWED_ORIGINS if ENVIRONMENT != "production" else [FRONTEND_URL]
    logger.info("CORS allowed origins (%s): %s", ENVIRONMENT, origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
