# ai_review/services/resume_extraction.py
"""
Resume extraction analyzer. Best-effort enrichment of an already processed
resume document: failures are reported through resume.metadata.extracted with
structured_data_available=False and never raised to the caller.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from ai_review.models.events import RESUME_METADATA_EXTRACTED
from ai_review.models.resume import ResumeStructuredData
from ai_review.repositories import documents
from ai_review.services import queue
from ai_review.services.ai_client import ChatCompletionClient
from ai_review.services.prompts import RESUME_EXTRACTION_SYSTEM_PROMPT, build_resume_extraction_prompt

logger = logging.getLogger(__name__)

Publisher = Callable[[str, Dict[str, Any]], Awaitable[Any]]


class ResumeExtractionAnalyzer:
    def __init__(self, ai_client: ChatCompletionClient, publish: Optional[Publisher] = None):
        self._ai = ai_client
        self._publish = publish or queue.publish_event

    async def extract(self, text: str, document_id: str) -> ResumeStructuredData:
        raw = await self._ai.complete_json(RESUME_EXTRACTION_SYSTEM_PROMPT, build_resume_extraction_prompt(text))
        return ResumeStructuredData.from_model_output(raw, document_id, datetime.now(timezone.utc))

    async def process_document(self, document: Dict[str, Any], text: str) -> Optional[ResumeStructuredData]:
        document_id = document["id"]
        linkage = {
            "document_id": document_id,
            "entity_type": document.get("entity_type"),
            "entity_id": document.get("entity_id"),
        }
        try:
            data = await self.extract(text, document_id)
            if not await documents.save_structured_data(document_id, data):
                raise RuntimeError(f"Document {document_id} disappeared before structured data was saved")
        except Exception as exc:
            logger.exception("Resume extraction failed for document %s", document_id)
            await self._publish(
                RESUME_METADATA_EXTRACTED,
                {**linkage, "structured_data_available": False, "error": str(exc)},
            )
            return None

        logger.info(
            "Extracted resume metadata for document %s: %d skills, %d experience, %d education",
            document_id, len(data.skills), len(data.experience), len(data.education),
        )
        await self._publish(
            RESUME_METADATA_EXTRACTED,
            {
                **linkage,
                "structured_data_available": True,
                "skills_count": len(data.skills),
                "experience_count": len(data.experience),
                "education_count": len(data.education),
                "extracted_at": data.extracted_at.isoformat(),
            },
        )
        return data
