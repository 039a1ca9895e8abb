# tests/test_enrichment.py
import httpx
import pytest

from ai_review.models.review import AnalysisInput
from ai_review.services.enrichment import DOCUMENT_SEPARATOR, EnrichmentResolver

APPLICATION = {
    "id": "A1",
    "candidate_id": "C1",
    "job_id": "J1",
    "job": {"id": "J1", "title": "Backend Engineer", "description": "Build APIs", "location": "Remote"},
    "candidate": {"id": "C1", "location": "Berlin"},
    "job_requirements": [
        {"requirement_type": "preferred", "description": "Kubernetes", "sort_order": 2},
        {"requirement_type": "mandatory", "description": "Python", "sort_order": 1},
    ],
    "documents": [
        {"id": "D1", "metadata": {"extracted_text": "First resume text"}},
        {"id": "D2", "metadata": {}},
        {"id": "D3", "metadata": {"extracted_text": "Second document text"}},
    ],
    "pre_screen_answers": [
        {"question": {"question": "Are you authorized to work?"}, "answer": True},
        {"question": "Preferred languages?", "answer": ["Python", "Go"]},
    ],
}


def _resolver(test_settings, handler):
    return EnrichmentResolver(test_settings, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_complete_input_skips_network(test_settings):
    def handler(request):
        raise AssertionError("no request expected")

    partial = AnalysisInput(application_id="A1", job_title="T", job_description="D", required_skills=["Python"])
    result = await _resolver(test_settings, handler).enrich(partial)
    assert result is partial


@pytest.mark.asyncio
async def test_enrich_fetches_application_with_includes(test_settings):
    seen = {}

    def handler(request):
        seen["url"] = request.url
        seen["key"] = request.headers.get("x-internal-service-key")
        return httpx.Response(200, json={"data": APPLICATION})

    result = await _resolver(test_settings, handler).enrich(
        AnalysisInput(application_id="A1", candidate_id="C1", job_id="J1")
    )

    assert seen["url"].path == "/api/v2/applications/A1"
    assert seen["url"].params["include"] == "job,candidate,job_requirements,documents,pre_screen_answers"
    assert seen["key"] == "internal-secret"
    assert result.job_title == "Backend Engineer"
    assert result.required_skills == ["Python"]
    assert result.preferred_skills == ["Kubernetes"]
    assert [r.description for r in result.job_requirements] == ["Python", "Kubernetes"]
    assert result.candidate_location == "Berlin"
    assert result.job_location == "Remote"
    assert result.document_count == 3
    assert result.pre_screen_answers[0].question == "Are you authorized to work?"
    assert result.pre_screen_answers[0].answer == "Yes"
    assert result.pre_screen_answers[1].answer == "Python, Go"


@pytest.mark.asyncio
async def test_resume_text_joins_every_document_in_order(test_settings):
    def handler(request):
        return httpx.Response(200, json=APPLICATION)

    result = await _resolver(test_settings, handler).enrich(AnalysisInput(application_id="A1"))

    assert result.resume_text == "First resume text" + DOCUMENT_SEPARATOR + "Second document text"
    assert "=== NEXT DOCUMENT ===" in result.resume_text
    assert result.resume_text.index("First") < result.resume_text.index("Second")


@pytest.mark.asyncio
async def test_documents_without_text_leave_resume_empty_and_keep_count(test_settings):
    app = dict(APPLICATION, documents=[{"id": "D1", "metadata": {}}, {"id": "D2"}])

    def handler(request):
        return httpx.Response(200, json={"data": app})

    result = await _resolver(test_settings, handler).enrich(AnalysisInput(application_id="A1"))

    assert result.resume_text == ""
    assert result.document_count == 2


@pytest.mark.asyncio
async def test_upstream_error_raises(test_settings):
    def handler(request):
        return httpx.Response(503, json={"error": "unavailable"})

    with pytest.raises(httpx.HTTPStatusError):
        await _resolver(test_settings, handler).enrich(AnalysisInput(application_id="A1"))
