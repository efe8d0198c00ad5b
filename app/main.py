from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.core.database import close_db, init_db
from app.core.errors import FeedbackInsightsError
from app.core.errors.middleware import feedback_error_handler
from app.core.errors.registry import error_registry
from app.core.log_middleware import CorrelationMiddleware
from app.core.redaction import redact_config
from app.core.structured_logging import APP_VERSION, setup_logging
from app.routers import feedback, health
from app.services.analysis_service import AnalysisService, build_analysis_service
from app.services.feedback_service import FeedbackService
from app.services.feedback_store import FeedbackStore

# Initialize structured logging before any logger calls
setup_logging(log_dir=settings.log_dir, log_file=settings.log_file, log_level=settings.log_level)

logger = logging.getLogger(__name__)

API_TITLE = "Feedback Insights API"
API_DESCRIPTION = """
## Feedback Insights

Submit free-text product feedback and get an AI analysis back
(summary, sentiment, tags, priority, recommended next action).
Browse stored feedback with text search, sentiment and tag filters.

Runs without an OpenAI key: analysis then comes from a deterministic
offline generator.
"""

TAGS_METADATA = [
    {
        "name": "health",
        "description": "Health check for monitoring, including the current analysis mode.",
    },
    {
        "name": "feedback",
        "description": "Feedback submission, search and retrieval.",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info(
        "Starting %s v%s (analysis mode: %s)",
        API_TITLE, APP_VERSION, app.state.analysis_service.mode,
    )
    logger.debug("Effective settings: %s", redact_config(settings.model_dump()))

    error_registry.load()
    init_db(app.state.feedback_service.store.engine)
    logger.info("Database initialized")

    yield

    logger.info("Shutting down %s...", API_TITLE)
    close_db()


def create_app(
    analysis_service: Optional[AnalysisService] = None,
    feedback_service: Optional[FeedbackService] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Services are built once per application and shared by every request;
    tests may inject their own instances.
    """
    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=APP_VERSION,
        openapi_tags=TAGS_METADATA,
        lifespan=lifespan,
    )

    if feedback_service is not None:
        analysis_service = feedback_service.analysis_service
    analysis_service = analysis_service or build_analysis_service(settings)
    feedback_service = feedback_service or FeedbackService(analysis_service, FeedbackStore())
    app.state.analysis_service = analysis_service
    app.state.feedback_service = feedback_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # request_id + correlation_id in every log line and response
    app.add_middleware(CorrelationMiddleware)

    app.add_exception_handler(FeedbackInsightsError, feedback_error_handler)

    # Catch-all handler so unhandled exceptions return JSON (not bare text)
    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": {"code": "FBK-SYS-001", "message": "Internal server error"}},
        )

    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(feedback.router, prefix="/api", tags=["feedback"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
