"""
FastAPI application for the map view layer.

Run with: uvicorn markermap.api.main:app --reload
"""
import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables from markermap/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from markermap.api.routes import layout, markers, search
from markermap.api.state import get_store
from markermap.domain.models import DEFAULT_MARKER_TYPE, MARKER_PALETTE

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="HK Marker Map API",
        description="Marker store, place search and cluster layout for the Hong Kong map view",
        version="0.1.0",
    )

    # CORS middleware for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(markers.router, prefix="/markers", tags=["markers"])
    app.include_router(search.router, prefix="/search", tags=["search"])
    app.include_router(layout.router, prefix="/layout", tags=["layout"])

    @app.on_event("startup")
    def startup_event():
        """Load persisted markers before the first request."""
        store = app.dependency_overrides.get(get_store, get_store)()
        logger.info("Marker store ready with %d markers", len(store))

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/palette")
    async def palette():
        """Marker category -> colour table."""
        return {
            "default": int(DEFAULT_MARKER_TYPE),
            "colors": {str(int(t)): color for t, color in MARKER_PALETTE.items()},
        }

    return app


app = create_app()
