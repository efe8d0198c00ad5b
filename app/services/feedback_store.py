"""
Feedback Store
==============

Synchronous accessor for the feedback table. Inserts a feedback row with
its analysis in one transaction and executes statements produced by the
QueryComposer. Database failures are wrapped in StoreError and propagated.
"""

import logging
from typing import Any, List, Mapping, Optional, Tuple

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.core.database import get_engine, get_session_context
from app.core.errors import StoreError
from app.models.feedback import Feedback, FeedbackAnalysis, FeedbackRead
from app.services.query_composer import ComposedQuery

logger = logging.getLogger(__name__)


class FeedbackStore:
    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = get_engine()
        return self._engine

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def create(self, text: str, email: Optional[str], analysis: FeedbackAnalysis) -> FeedbackRead:
        """Persist feedback and its analysis atomically; returns the stored row."""
        try:
            with get_session_context(self.engine) as session:
                record = Feedback(text=text, email=email, analysis=analysis.to_document())
                session.add(record)
                session.commit()
                session.refresh(record)
                logger.info("feedback_created", extra={"feedback.id": record.id})
                return _to_read_model(record)
        except SQLAlchemyError as e:
            raise StoreError(detail=f"insert failed: {e.__class__.__name__}", context={"op": "create"}) from e

    def get(self, feedback_id: int) -> Optional[FeedbackRead]:
        try:
            with get_session_context(self.engine) as session:
                record = session.get(Feedback, feedback_id)
                return _to_read_model(record) if record is not None else None
        except SQLAlchemyError as e:
            raise StoreError(detail=f"lookup failed: {e.__class__.__name__}", context={"op": "get"}) from e

    def fetch_page(self, query: ComposedQuery) -> Tuple[List[FeedbackRead], int]:
        """Execute the page and count statements on one connection."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query.page_statement).mappings().all()
                total = conn.execute(query.count_statement).scalar_one()
        except SQLAlchemyError as e:
            raise StoreError(detail=f"search failed: {e.__class__.__name__}", context={"op": "search"}) from e
        return [_row_to_read_model(row) for row in rows], int(total)


def _to_read_model(record: Feedback) -> FeedbackRead:
    return FeedbackRead(
        id=record.id,
        text=record.text,
        email=record.email,
        created_at=record.created_at,
        analysis=FeedbackAnalysis.model_validate(record.analysis),
    )


def _row_to_read_model(row: Mapping[str, Any]) -> FeedbackRead:
    return FeedbackRead(
        id=row["id"],
        text=row["text"],
        email=row["email"],
        created_at=row["created_at"],
        analysis=FeedbackAnalysis.model_validate(row["analysis"]),
    )
