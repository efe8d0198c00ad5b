"""
Analysis Service
================

Turns feedback text into a validated FeedbackAnalysis:

    fingerprint -> cache lookup -> active provider -> validation -> cache

The service owns the only shared mutable state of the analysis path: the
cache and the reference to the active provider. When the online provider
fails once, the service demotes itself to the offline generator for the
rest of the process lifetime and completes the same call offline. There is
no retry or re-probe of the remote model.
"""

import logging
import time
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from app.config import Settings, settings as default_settings
from app.core.errors import AnalysisFailed
from app.models.feedback import FeedbackAnalysis
from app.services.analysis_cache import AnalysisCache, fingerprint
from app.services.analysis_providers import (
    AnalysisProvider,
    OfflineAnalysisProvider,
    OnlineAnalysisProvider,
)

logger = logging.getLogger(__name__)


class AnalysisService:
    """Cache-backed analysis with permanent online -> offline degradation."""

    def __init__(
        self,
        provider: AnalysisProvider,
        cache: Optional[AnalysisCache] = None,
        fallback: Optional[OfflineAnalysisProvider] = None,
    ):
        self._provider = provider
        self.cache = cache if cache is not None else AnalysisCache()
        self.fallback = fallback or OfflineAnalysisProvider()
        self.demotion_reason: Optional[str] = None

    @property
    def provider(self) -> AnalysisProvider:
        return self._provider

    @property
    def mode(self) -> str:
        return self._provider.mode

    def demote(self, reason: str) -> None:
        """Switch to the offline generator for good. Idempotent."""
        if self._provider is self.fallback:
            return
        logger.warning(
            "analysis_provider_demoted",
            extra={"from_mode": self._provider.mode, "to_mode": self.fallback.mode, "reason": reason},
        )
        self.demotion_reason = reason
        # Single reference write; concurrent demotions converge on the same value
        self._provider = self.fallback

    async def analyze(self, text: str) -> FeedbackAnalysis:
        """Return the analysis for ``text``, from cache when possible.

        Raises:
            AnalysisFailed: the provider produced a structurally invalid result.
        """
        key = fingerprint(text)

        cached = self._cache_get(key)
        if cached is not None:
            logger.info("analysis_cache_hit", extra={"cache.key": key[:12]})
            return cached

        start = time.perf_counter()
        provider = self._provider
        document = await self._run_provider(provider, text)
        analysis = self._validate(document, provider_mode=self.mode)

        self._cache_put(key, analysis)
        logger.info(
            "analysis_completed",
            extra={
                "analysis.mode": self.mode,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return analysis

    async def _run_provider(self, provider: AnalysisProvider, text: str) -> Any:
        if provider is self.fallback:
            return await provider.analyze(text)

        try:
            return await provider.analyze(text)
        except Exception as exc:
            # Every remote failure degrades; the caller still gets an analysis
            self.demote(f"{type(exc).__name__}: {exc}")
            return await self.fallback.analyze(text)

    @staticmethod
    def _validate(document: Any, provider_mode: str) -> FeedbackAnalysis:
        if isinstance(document, FeedbackAnalysis):
            return document
        if not isinstance(document, dict):
            raise AnalysisFailed(
                detail=f"provider returned {type(document).__name__}, expected object",
                context={"provider": provider_mode},
            )
        try:
            return FeedbackAnalysis.model_validate(document)
        except PydanticValidationError as e:
            raise AnalysisFailed(
                detail=f"invalid analysis: {e.error_count()} error(s)",
                context={
                    "provider": provider_mode,
                    "fields": sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]}),
                },
            )

    # Cache access is best-effort: a failing cache behaves like a miss

    def _cache_get(self, key: str) -> Optional[FeedbackAnalysis]:
        try:
            return self.cache.get(key)
        except Exception as exc:
            logger.warning("analysis_cache_get_failed", extra={"error": str(exc)})
            return None

    def _cache_put(self, key: str, analysis: FeedbackAnalysis) -> None:
        try:
            self.cache.put(key, analysis)
        except Exception as exc:
            logger.warning("analysis_cache_put_failed", extra={"error": str(exc)})

    def clear_cache(self) -> None:
        """Drop every cached analysis. Safe to call repeatedly."""
        self.cache.clear()
        logger.info("analysis_cache_cleared")

    def status(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "cache_entries": len(self.cache),
            "demotion_reason": self.demotion_reason,
        }


def build_analysis_service(config: Optional[Settings] = None) -> AnalysisService:
    """Construct the process-wide AnalysisService from configuration."""
    config = config or default_settings
    fallback = OfflineAnalysisProvider()

    if config.resolved_analysis_mode() == "offline":
        logger.warning("OpenAI API key not configured or offline mode forced. Running in offline mode.")
        return AnalysisService(provider=fallback, fallback=fallback)

    from app.services.llm_providers.openai import OpenAIProvider

    llm = OpenAIProvider(
        api_key=config.openai_api_key,
        model=config.llm_model,
        timeout_s=config.llm_timeout_s,
    )
    logger.info("Analysis running in online mode", extra={"llm.model": llm.model_name})
    online = OnlineAnalysisProvider(
        llm,
        temperature=config.llm_temperature,
        max_tokens=config.llm_max_tokens,
    )
    return AnalysisService(provider=online, fallback=fallback)
