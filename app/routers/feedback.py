"""
Feedback Router
===============

- POST /api/feedback        submit feedback; analysis is generated before storing
- GET  /api/feedback        filtered, paginated listing (newest first)
- GET  /api/feedback/{id}   single feedback record
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from app.models.feedback import (
    FeedbackCreate,
    FeedbackListResponse,
    FeedbackRead,
    PaginationInfo,
    Sentiment,
)
from app.services.analysis_service import AnalysisService
from app.services.feedback_service import FeedbackService
from app.config import settings
from app.services.query_composer import FeedbackFilters

logger = logging.getLogger(__name__)

router = APIRouter()


def get_feedback_service(request: Request) -> FeedbackService:
    """FastAPI dependency: the FeedbackService built at startup."""
    return request.app.state.feedback_service


def get_analysis_service(request: Request) -> AnalysisService:
    return request.app.state.analysis_service


@router.post("/feedback", response_model=FeedbackRead)
async def submit_feedback(
    payload: FeedbackCreate,
    service: FeedbackService = Depends(get_feedback_service),
):
    """Analyze and store a piece of feedback."""
    return await service.submit(payload.text, payload.email)


@router.get("/feedback", response_model=FeedbackListResponse)
async def list_feedback(
    search: Optional[str] = Query(None, description="Substring of the text or summary (case-insensitive)"),
    sentiment: Optional[Sentiment] = Query(None),
    tag: Optional[str] = Query(None, description="Exact tag value"),
    page: int = Query(1),
    page_size: int = Query(settings.default_page_size, alias="pageSize"),
    service: FeedbackService = Depends(get_feedback_service),
):
    """List feedback matching all given filters."""
    result = await service.search(
        FeedbackFilters(search=search, sentiment=sentiment, tag=tag),
        page=page,
        page_size=page_size,
    )
    return FeedbackListResponse(
        data=result.rows,
        pagination=PaginationInfo(
            page=result.page,
            page_size=result.page_size,
            total=result.total,
            total_pages=result.total_pages,
        ),
    )


@router.get("/feedback/{feedback_id}", response_model=FeedbackRead)
async def get_feedback(
    feedback_id: int,
    service: FeedbackService = Depends(get_feedback_service),
):
    return await service.get(feedback_id)
