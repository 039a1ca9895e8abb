# ai_review/services/prompts.py
"""
Prompt builders for the two AI flows.

Both prompts are plain deterministic strings: the same AnalysisInput (or the
same resume text) always produces the same prompt.
"""
from typing import List

from ai_review.models.review import AnalysisInput

FIT_REVIEW_RESUME_LIMIT = 4000
EXTRACTION_TEXT_LIMIT = 6000

FIT_REVIEW_SYSTEM_PROMPT = (
    "You are an expert technical recruiter evaluating how well a candidate fits a job. "
    "Be objective and evidence-based, judge only what the provided material supports, "
    "and always respond with a single valid JSON object."
)

RESUME_EXTRACTION_SYSTEM_PROMPT = (
    "You extract structured career data from resumes. "
    "Never output personal contact information: no names, email addresses, phone numbers "
    "or physical addresses. Always respond with a single valid JSON object."
)


def _bullets(items: List[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def _or_not_specified(value) -> str:
    if value is None or value == "" or value == []:
        return "Not specified"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)


def _resume_section(data: AnalysisInput) -> str:
    if data.resume_text:
        return data.resume_text[:FIT_REVIEW_RESUME_LIMIT]
    if data.document_count > 0:
        return (
            f"The candidate has uploaded {data.document_count} document(s), but text extraction "
            "is still pending. Base the assessment on the remaining information and lower your "
            "confidence_level accordingly."
        )
    return (
        "No resume was provided. Base the assessment on the remaining information and lower "
        "your confidence_level accordingly."
    )


def _qualifications_section(data: AnalysisInput) -> str:
    if not data.job_requirements:
        return ""
    required = [r.description for r in data.job_requirements if r.requirement_type == "mandatory"]
    preferred = [r.description for r in data.job_requirements if r.requirement_type == "preferred"]
    parts = []
    if required:
        parts.append("Required Qualifications:\n" + _bullets(required))
    if preferred:
        parts.append("Preferred Qualifications:\n" + _bullets(preferred))
    return "\n\n".join(parts) + "\n\n"


def _pre_screen_section(data: AnalysisInput) -> str:
    if not data.pre_screen_answers:
        return ""
    lines = [f"Q: {a.question}\nA: {a.answer or 'No answer'}" for a in data.pre_screen_answers]
    return "Candidate Pre-Screen Responses:\n" + "\n\n".join(lines) + "\n\n"


def build_fit_review_prompt(data: AnalysisInput) -> str:
    required_years = "Not specified" if data.required_years is None else f"{data.required_years:g} years"
    return (
        "Analyze the candidate's fit for the job below.\n\n"
        f"Job Title: {_or_not_specified(data.job_title)}\n"
        f"Job Description:\n{_or_not_specified(data.job_description)}\n\n"
        f"Required Skills: {_or_not_specified(data.required_skills)}\n"
        f"Preferred Skills: {_or_not_specified(data.preferred_skills)}\n"
        f"Required Experience: {required_years}\n"
        f"Job Location: {_or_not_specified(data.job_location)}\n"
        f"Candidate Location: {_or_not_specified(data.candidate_location)}\n\n"
        f"{_qualifications_section(data)}"
        f"{_pre_screen_section(data)}"
        f"Candidate Resume:\n{_resume_section(data)}\n\n"
        "Return ONLY a JSON object with exactly these fields:\n"
        "{\n"
        '  "fit_score": <integer 0-100>,\n'
        '  "recommendation": "strong_fit" | "good_fit" | "fair_fit" | "poor_fit",\n'
        '  "overall_summary": "<2-3 sentence summary>",\n'
        '  "confidence_level": <integer 0-100>,\n'
        '  "strengths": ["<strength>", ...],\n'
        '  "concerns": ["<concern>", ...],\n'
        '  "matched_skills": ["<skill>", ...],\n'
        '  "missing_skills": ["<skill>", ...],\n'
        '  "skills_match_percentage": <integer 0-100>,\n'
        '  "required_years": <number or null>,\n'
        '  "candidate_years": <number or null>,\n'
        '  "meets_experience_requirement": <true | false | null>,\n'
        '  "location_compatibility": "perfect" | "good" | "challenging" | "mismatch"\n'
        "}\n\n"
        "Scoring guidance:\n"
        "- 90-100: strong_fit (meets or exceeds all key requirements)\n"
        "- 70-89: good_fit (meets most requirements, minor gaps)\n"
        "- 50-69: fair_fit (meets some requirements, notable gaps)\n"
        "- 0-49: poor_fit (significant gaps in key requirements)\n"
    )


def build_resume_extraction_prompt(text: str) -> str:
    return (
        "Extract a structured career profile from the resume text below.\n\n"
        "IMPORTANT: Do NOT include the candidate's name, email address, phone number or "
        "physical address anywhere in the output.\n\n"
        f"Resume Text:\n{text[:EXTRACTION_TEXT_LIMIT]}\n\n"
        "Return ONLY a JSON object with these fields:\n"
        "{\n"
        '  "professional_summary": "<2-3 sentence summary of the career, no personal details>",\n'
        '  "experience": [{"title": "", "company": "", "location": "", "start_date": "YYYY-MM", '
        '"end_date": "YYYY-MM or empty if current", "is_current": false, "description": "", '
        '"highlights": [""]}],\n'
        '  "education": [{"degree": "", "field_of_study": "", "institution": "", '
        '"start_date": "YYYY-MM", "end_date": "YYYY-MM", "gpa": ""}],\n'
        '  "skills": [{"name": "", "category": "technical" | "soft" | "tool" | "language" | "domain", '
        '"proficiency": "beginner" | "intermediate" | "advanced" | "expert", "years_used": <number or null>}],\n'
        '  "certifications": [{"name": "", "issuer": "", "date_obtained": "YYYY-MM", "expiry_date": ""}],\n'
        '  "total_years_experience": <number or null>,\n'
        '  "highest_degree": "high_school" | "associate" | "bachelor" | "master" | "doctorate" | null\n'
        "}\n\n"
        "Rules:\n"
        "- List experience and education most recent first.\n"
        "- Use YYYY-MM for dates; leave a field empty when the resume does not state it.\n"
        "- Only include information present in the resume; do not guess.\n"
        "- Again: never output names, emails, phone numbers or addresses.\n"
    )
