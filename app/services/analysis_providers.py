"""
Analysis Providers
==================

Two interchangeable ways of producing a FeedbackAnalysis document:

- OfflineAnalysisProvider: deterministic local generator keyed on a hash of
  the input text. No network access; used when no remote model is
  configured and after the remote model has failed.
- OnlineAnalysisProvider: asks a remote chat-completion model (via a
  BaseLLMProvider) for the analysis and parses its reply strictly as JSON.

Providers return plain dicts in the stored document shape; the
AnalysisService owns final validation.
"""

import hashlib
import json
import logging
import random
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from app.config import settings
from app.core.redaction import scrub_pii
from app.models.feedback import PRIORITIES, SENTIMENTS, FeedbackAnalysis
from app.prompts.feedback_analysis import (
    FEEDBACK_ANALYSIS_SYSTEM_PROMPT,
    build_feedback_analysis_prompt,
)
from app.services.llm_providers.base import BaseLLMProvider, LLMProviderError

logger = logging.getLogger(__name__)


class AnalysisProvider(ABC):
    """Produces an analysis document for one piece of feedback text."""

    mode: str = "unknown"

    @abstractmethod
    async def analyze(self, text: str) -> Dict[str, Any]:
        pass


class OfflineAnalysisProvider(AnalysisProvider):
    """Deterministic mock analysis derived from an MD5 hash of the text.

    Every field, including the tag sample, is a pure function of the exact
    input text: the tag shuffle is seeded from the same hash.
    """

    mode = "offline"

    TAG_VOCABULARY = (
        "usability", "performance", "bug", "feature", "ui",
        "api", "mobile", "desktop", "security", "integration",
    )
    NEXT_ACTIONS = (
        "Review with product team",
        "Schedule user interview",
        "Add to sprint backlog",
        "Escalate to engineering",
        "Collect more data",
    )

    @staticmethod
    def text_hash(text: str) -> int:
        """First 32 bits of the MD5 digest of ``text`` as an integer."""
        return int(hashlib.md5(text.encode("utf-8")).hexdigest()[:8], 16)

    async def analyze(self, text: str) -> Dict[str, Any]:
        return self.generate(text)

    def generate(self, text: str) -> Dict[str, Any]:
        h = self.text_hash(text)

        sentiment = SENTIMENTS[h % len(SENTIMENTS)]
        priority = PRIORITIES[h % len(PRIORITIES)]

        vocabulary = list(self.TAG_VOCABULARY)
        random.Random(h).shuffle(vocabulary)
        tags = vocabulary[: 3 + (h % 3)]

        summaries = (
            f"User feedback regarding {sentiment} experience with the product",
            f"Feedback about {tags[0]} and {tags[1]} aspects",
            f"User has concerns about {priority} priority issues",
        )

        return {
            "summary": summaries[h % len(summaries)],
            "sentiment": sentiment,
            "tags": tags,
            "priority": priority,
            "nextAction": self.NEXT_ACTIONS[h % len(self.NEXT_ACTIONS)],
        }


_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class OnlineAnalysisProvider(AnalysisProvider):
    """Remote analysis through a chat-completion model.

    Any failure (transport, timeout, unparseable or invalid JSON) is raised
    as LLMProviderError; the caller decides how to degrade.
    """

    mode = "online"

    def __init__(
        self,
        llm: BaseLLMProvider,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self.llm = llm
        self.temperature = settings.llm_temperature if temperature is None else temperature
        self.max_tokens = max_tokens or settings.llm_max_tokens

    async def analyze(self, text: str) -> Dict[str, Any]:
        raw = await self.llm.generate(
            build_feedback_analysis_prompt(text),
            system_prompt=FEEDBACK_ANALYSIS_SYSTEM_PROMPT,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        document = self.parse_reply(raw)

        try:
            analysis = FeedbackAnalysis.model_validate(document)
        except PydanticValidationError as e:
            raise LLMProviderError(
                f"Model reply failed analysis validation: {e.error_count()} error(s)",
                provider="openai",
                original_error=e,
            )

        # Model output may still echo contact details
        return analysis.model_copy(
            update={
                "summary": scrub_pii(analysis.summary),
                "next_action": scrub_pii(analysis.next_action),
            }
        ).to_document()

    @staticmethod
    def parse_reply(raw: str) -> Dict[str, Any]:
        """Parse the model reply as a single JSON object."""
        content = raw.strip()
        fenced = _FENCE_RE.match(content)
        if fenced:
            content = fenced.group(1)

        try:
            document = json.loads(content)
        except json.JSONDecodeError as e:
            raise LLMProviderError(
                f"Model reply is not valid JSON: {e.msg}",
                provider="openai",
                original_error=e,
            )

        if not isinstance(document, dict):
            raise LLMProviderError(
                f"Model reply is JSON {type(document).__name__}, expected object",
                provider="openai",
            )
        return document
