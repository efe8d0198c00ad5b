"""
Tests for the analysis cache: fingerprints, get/put/clear, thread safety.
"""

import threading

from app.models.feedback import FeedbackAnalysis
from app.services.analysis_cache import AnalysisCache, fingerprint, normalize_text


def _analysis(summary="Login page is slow"):
    return FeedbackAnalysis(
        summary=summary,
        sentiment="negative",
        tags=["performance"],
        priority="P1",
        next_action="Escalate to engineering",
    )


class TestFingerprint:

    def test_case_and_surrounding_whitespace_ignored(self):
        assert fingerprint("  Great App!\n") == fingerprint("great app!")

    def test_inner_whitespace_is_significant(self):
        assert fingerprint("great  app") != fingerprint("great app")

    def test_different_text_different_key(self):
        assert fingerprint("first feedback") != fingerprint("second feedback")

    def test_empty_text_has_a_key(self):
        assert len(fingerprint("")) == 64
        assert fingerprint("") == fingerprint("   ")

    def test_normalize_casefolds(self):
        assert normalize_text(" STRASSE ") == "strasse"
        assert normalize_text("Straße") == "strasse"


class TestAnalysisCache:

    def test_miss_returns_none(self):
        cache = AnalysisCache()
        assert cache.get("missing") is None

    def test_put_then_get(self):
        cache = AnalysisCache()
        analysis = _analysis()
        cache.put("k", analysis)
        assert cache.get("k") is analysis
        assert "k" in cache
        assert len(cache) == 1

    def test_last_writer_wins(self):
        cache = AnalysisCache()
        cache.put("k", _analysis("first"))
        cache.put("k", _analysis("second"))
        assert cache.get("k").summary == "second"
        assert len(cache) == 1

    def test_clear_is_idempotent(self):
        cache = AnalysisCache()
        cache.put("k", _analysis())
        cache.clear()
        cache.clear()
        assert len(cache) == 0
        assert cache.get("k") is None

    def test_concurrent_writers(self):
        cache = AnalysisCache()
        analysis = _analysis()

        def writer(offset):
            for i in range(200):
                cache.put(f"key-{offset}-{i}", analysis)
                cache.get(f"key-{offset}-{i}")

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(cache) == 8 * 200


def test_stored_analysis_tags_are_immutable():
    analysis = _analysis()
    assert analysis.tags == ("performance",)
    assert analysis.to_document()["tags"] == ["performance"]
