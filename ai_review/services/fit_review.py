# ai_review/services/fit_review.py
"""
Fit-review analyzer: prompt -> scoring model -> strict validation -> new
review row -> lifecycle events.

Every failure (HTTP error, malformed JSON, out-of-range score or enum) publishes
ai_review.failed and is re-raised so the consumer requeues the message.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from ai_review.models.events import AI_REVIEW_COMPLETED, AI_REVIEW_FAILED, AI_REVIEW_STARTED
from ai_review.models.review import AnalysisInput, FitReviewCreate, FitReviewInDB, FitReviewResult
from ai_review.repositories import reviews
from ai_review.services import queue
from ai_review.services.ai_client import ChatCompletionClient
from ai_review.services.prompts import FIT_REVIEW_SYSTEM_PROMPT, build_fit_review_prompt

logger = logging.getLogger(__name__)

Publisher = Callable[[str, Dict[str, Any]], Awaitable[Any]]


class FitReviewAnalyzer:
    def __init__(self, ai_client: ChatCompletionClient, publish: Optional[Publisher] = None):
        self._ai = ai_client
        self._publish = publish or queue.publish_event

    async def analyze(self, data: AnalysisInput, auto_transition: bool = False) -> FitReviewInDB:
        ids = {
            "application_id": data.application_id,
            "candidate_id": data.candidate_id,
            "job_id": data.job_id,
        }
        await self._publish(AI_REVIEW_STARTED, dict(ids))

        started = time.monotonic()
        try:
            raw = await self._ai.complete_json(FIT_REVIEW_SYSTEM_PROMPT, build_fit_review_prompt(data))
            result = FitReviewResult.model_validate(raw)
            processing_ms = int((time.monotonic() - started) * 1000)
            review = await reviews.create_review(
                FitReviewCreate(
                    **result.model_dump(),
                    application_id=data.application_id,
                    model_version=self._ai.model,
                    processing_time_ms=processing_ms,
                    analyzed_at=datetime.now(timezone.utc),
                )
            )
        except Exception as exc:
            logger.exception("AI review failed for application %s", data.application_id)
            await self._publish(AI_REVIEW_FAILED, {**ids, "error": str(exc)})
            raise

        logger.info(
            "AI review %s for application %s: score=%s recommendation=%s (%sms)",
            review.id, data.application_id, review.fit_score, review.recommendation, review.processing_time_ms,
        )
        await self._publish(
            AI_REVIEW_COMPLETED,
            {
                **ids,
                "review_id": review.id,
                "fit_score": review.fit_score,
                "recommendation": review.recommendation,
                "auto_transition": auto_transition,
            },
        )
        return review
