"""
Pytest configuration for feedback insights tests.
Forces offline analysis and a throwaway SQLite database.
"""

import os
import tempfile

# Must be set before any app imports
_test_data_dir = tempfile.mkdtemp(prefix="feedback_test_")
os.environ["FEEDBACK_ANALYSIS_MODE"] = "offline"
os.environ["FEEDBACK_OPENAI_API_KEY"] = ""
os.environ.setdefault("FEEDBACK_DATA_DIRECTORY", _test_data_dir)
os.environ.setdefault("FEEDBACK_DATABASE_URL", f"sqlite:///{_test_data_dir}/test.db")
os.environ.setdefault("FEEDBACK_LOG_DIR", os.path.join(_test_data_dir, "logs"))

from datetime import datetime, timedelta, timezone

import pytest

from app.core.database import build_engine, init_db
from app.core.errors.registry import error_registry
from app.models.feedback import Feedback
from app.services.analysis_cache import AnalysisCache
from app.services.analysis_providers import OfflineAnalysisProvider
from app.services.analysis_service import AnalysisService
from app.services.feedback_service import FeedbackService
from app.services.feedback_store import FeedbackStore
from sqlmodel import Session

# Load error registry so FeedbackInsightsError maps to the right HTTP status
error_registry.load()


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite database per test."""
    eng = build_engine(f"sqlite:///{tmp_path}/feedback.db")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine):
    return FeedbackStore(engine)


@pytest.fixture
def analysis_service():
    offline = OfflineAnalysisProvider()
    return AnalysisService(provider=offline, cache=AnalysisCache(), fallback=offline)


@pytest.fixture
def feedback_service(analysis_service, store):
    return FeedbackService(analysis_service, store)


@pytest.fixture
def seed_feedback(engine):
    """Insert rows directly with explicit timestamps and analyses.

    Each item: (text, sentiment, tags, summary). Rows are created one minute
    apart in list order, so the last item is the newest.
    """

    def _seed(items):
        base = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        ids = []
        with Session(engine) as session:
            for i, (text, sentiment, tags, summary) in enumerate(items):
                record = Feedback(
                    text=text,
                    email=None,
                    created_at=base + timedelta(minutes=i),
                    analysis={
                        "summary": summary,
                        "sentiment": sentiment,
                        "tags": list(tags),
                        "priority": "P2",
                        "nextAction": "Review with product team",
                    },
                )
                session.add(record)
                session.commit()
                session.refresh(record)
                ids.append(record.id)
        return ids

    return _seed
