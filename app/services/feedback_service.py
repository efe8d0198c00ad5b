"""
Feedback Service
================

Ingestion and read operations behind the feedback API.

- submit(): analyze text (cache / provider) then persist text + analysis.
- search(): validate pagination, compose page + count statements, execute.
- get():    fetch one feedback record by id.

Blocking store calls run in worker threads via run_sync().
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from app.config import settings
from app.core.async_utils import run_sync
from app.core.errors import FeedbackNotFound, InvalidFeedbackId, StoreError
from app.models.feedback import FeedbackRead
from app.services.analysis_service import AnalysisService
from app.services.feedback_store import FeedbackStore
from app.services.query_composer import (
    FeedbackFilters,
    Pagination,
    QueryComposer,
    total_pages,
)

logger = logging.getLogger(__name__)

STORE_TIMEOUT_S = 30


@dataclass(frozen=True)
class FeedbackPage:
    rows: List[FeedbackRead]
    total: int
    total_pages: int
    page: int
    page_size: int


class FeedbackService:
    def __init__(
        self,
        analysis_service: AnalysisService,
        store: FeedbackStore,
        composer: Optional[QueryComposer] = None,
        max_page_size: Optional[int] = None,
    ):
        self.analysis_service = analysis_service
        self.store = store
        self.composer = composer or QueryComposer(dialect=store.dialect_name)
        self.max_page_size = max_page_size or settings.max_page_size

    async def submit(self, text: str, email: Optional[str] = None) -> FeedbackRead:
        analysis = await self.analysis_service.analyze(text)
        return await self._store_call(self.store.create, text, email, analysis)

    async def search(
        self,
        filters: Optional[FeedbackFilters] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> FeedbackPage:
        """Return one page of feedback matching ``filters``, newest first.

        Raises:
            InvalidPagination: page < 1 or page_size outside [1, max_page_size].
                Raised before any statement reaches the store.
        """
        if page_size is None:
            page_size = settings.default_page_size
        pagination = Pagination.validated(page, page_size, max_page_size=self.max_page_size)
        query = self.composer.compose(filters or FeedbackFilters(), pagination)

        rows, total = await self._store_call(self.store.fetch_page, query)
        logger.debug(
            "feedback_search",
            extra={"filters": sorted(query.params), "total": total, "page": page},
        )
        return FeedbackPage(
            rows=rows,
            total=total,
            total_pages=total_pages(total, pagination.page_size),
            page=pagination.page,
            page_size=pagination.page_size,
        )

    async def get(self, feedback_id: int) -> FeedbackRead:
        if feedback_id < 1:
            raise InvalidFeedbackId(detail=f"id={feedback_id}")
        record = await self._store_call(self.store.get, feedback_id)
        if record is None:
            raise FeedbackNotFound(detail=f"id={feedback_id}", context={"feedback_id": feedback_id})
        return record

    @staticmethod
    async def _store_call(func, *args):
        try:
            return await run_sync(func, *args, timeout=STORE_TIMEOUT_S)
        except TimeoutError as e:
            raise StoreError(detail=str(e)) from e
