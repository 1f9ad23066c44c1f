"""
FastAPI Main Application
Entry point for the PatchPilot pipeline service
"""

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from patchpilot.api.routes import health_router, router
from patchpilot.utils.logger import get_logger

logger = get_logger("main")


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""

    app = FastAPI(
        title="PatchPilot Pipeline API",
        description="Automated bug fixing: clone, analyze, patch, verify, open a PR",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://localhost:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    app.include_router(health_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting PatchPilot pipeline API on http://localhost:8000")

    uvicorn.run(
        "patchpilot.api.main:app",
        host="0.0.0.0",
        port=8000,
        log_level="info"
    )
