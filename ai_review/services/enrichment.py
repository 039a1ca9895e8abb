# ai_review/services/enrichment.py
"""
Enrichment resolver: turns a minimal event reference into a complete
AnalysisInput by fetching the application (job, candidate, requirements,
documents, pre-screen answers) from the ATS service.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from ai_review.core.config import Settings
from ai_review.models.review import AnalysisInput, JobRequirementItem, PreScreenAnswer

logger = logging.getLogger(__name__)

DOCUMENT_SEPARATOR = "\n\n=== NEXT DOCUMENT ===\n\n"
APPLICATION_INCLUDES = "job,candidate,job_requirements,documents,pre_screen_answers"


def _is_complete(partial: AnalysisInput) -> bool:
    return bool(partial.job_title and partial.job_description and partial.required_skills)


def _answer_text(answer: Any) -> str:
    if isinstance(answer, dict):
        answer = answer.get("value", answer.get("answer"))
    if isinstance(answer, bool):
        return "Yes" if answer else "No"
    if isinstance(answer, list):
        return ", ".join(str(a) for a in answer)
    return "" if answer is None else str(answer)


def _question_text(row: Dict[str, Any]) -> str:
    question = row.get("question")
    if isinstance(question, dict):
        return question.get("question") or question.get("text") or ""
    return question or row.get("question_text") or ""


def collect_resume_text(application_id: str, documents: List[Dict[str, Any]]) -> str:
    """Join extracted_text of every document, in order; documents without text are logged and skipped."""
    texts = []
    for doc in documents:
        text = (doc.get("metadata") or {}).get("extracted_text")
        if isinstance(text, str) and text.strip():
            texts.append(text.strip())
        else:
            logger.warning(
                "Application %s: document %s has no extracted text yet",
                application_id, doc.get("id"),
            )
    return DOCUMENT_SEPARATOR.join(texts)


def build_analysis_input(partial: AnalysisInput, application: Dict[str, Any]) -> AnalysisInput:
    job = application.get("job") or {}
    candidate = application.get("candidate") or {}
    requirement_rows = sorted(
        application.get("job_requirements") or [],
        key=lambda r: r.get("sort_order") or 0,
    )
    documents = application.get("documents") or []

    requirements = [
        JobRequirementItem(
            description=r["description"],
            requirement_type="preferred" if r.get("requirement_type") == "preferred" else "mandatory",
        )
        for r in requirement_rows
        if r.get("description")
    ]
    required_skills = [r.description for r in requirements if r.requirement_type == "mandatory"]
    preferred_skills = [r.description for r in requirements if r.requirement_type == "preferred"]

    answers = []
    for row in application.get("pre_screen_answers") or []:
        question = _question_text(row)
        if question:
            answers.append(PreScreenAnswer(question=question, answer=_answer_text(row.get("answer"))))

    resume_text = partial.resume_text or collect_resume_text(partial.application_id, documents)
    if not resume_text:
        logger.warning(
            "Application %s: no resume text available from %d document(s)",
            partial.application_id, len(documents),
        )

    return AnalysisInput(
        application_id=partial.application_id,
        candidate_id=partial.candidate_id or application.get("candidate_id") or candidate.get("id"),
        job_id=partial.job_id or application.get("job_id") or job.get("id"),
        resume_text=resume_text,
        document_count=len(documents),
        job_title=partial.job_title or job.get("title"),
        job_description=partial.job_description
        or job.get("description")
        or job.get("recruiter_description")
        or job.get("candidate_description"),
        required_skills=partial.required_skills or required_skills,
        preferred_skills=partial.preferred_skills or preferred_skills,
        required_years=partial.required_years if partial.required_years is not None else job.get("required_years"),
        candidate_location=partial.candidate_location or candidate.get("location"),
        job_location=partial.job_location or job.get("location"),
        job_requirements=partial.job_requirements or requirements,
        pre_screen_answers=partial.pre_screen_answers or answers,
    )


class EnrichmentResolver:
    def __init__(self, config: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._base_url = config.ATS_SERVICE_URL.rstrip("/")
        self._service_key = config.INTERNAL_SERVICE_KEY
        self._timeout = config.ATS_TIMEOUT_SEC
        self._transport = transport

    async def fetch_application(self, application_id: str) -> Dict[str, Any]:
        headers = {"x-internal-service-key": self._service_key or ""}
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.get(
                f"{self._base_url}/applications/{application_id}",
                params={"include": APPLICATION_INCLUDES},
                headers=headers,
            )
            resp.raise_for_status()
            body = resp.json()
        # v2 endpoints wrap the record in {"data": ...}
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            return body["data"]
        return body

    async def enrich(self, partial: AnalysisInput) -> AnalysisInput:
        if _is_complete(partial):
            return partial
        logger.info("Enriching application %s", partial.application_id)
        application = await self.fetch_application(partial.application_id)
        return build_analysis_input(partial, application)
