# ai_review/repositories/reviews.py
"""
Review store. Fit reviews are append-only: every analysis inserts a new row
and nothing here updates or deletes one. "Current" review for an application
is the most recent by analyzed_at.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

from ai_review.db.mongo import get_db
from ai_review.models.review import FitReviewCreate, FitReviewInDB, JobReviewStats, RECOMMENDATIONS

REVIEWS_COLLECTION = "ai_reviews"
APPLICATIONS_COLLECTION = "applications"

def _now():
    return datetime.now(timezone.utc)

async def create_review(obj: FitReviewCreate) -> FitReviewInDB:
    db = get_db()
    payload = obj.model_dump()
    payload["_id"] = str(uuid.uuid4())
    payload["created_at"] = _now()
    await db[REVIEWS_COLLECTION].insert_one(payload)
    return FitReviewInDB.from_document(payload)

async def get_review(review_id: str) -> Optional[FitReviewInDB]:
    db = get_db()
    doc = await db[REVIEWS_COLLECTION].find_one({"_id": review_id})
    return FitReviewInDB.from_document(doc) if doc else None

async def find_reviews_by_application(application_id: str, limit: int = 50) -> List[FitReviewInDB]:
    db = get_db()
    cur = db[REVIEWS_COLLECTION].find({"application_id": application_id}).sort("analyzed_at", -1).limit(limit)
    return [FitReviewInDB.from_document(d) async for d in cur]

async def find_latest_by_application(application_id: str) -> Optional[FitReviewInDB]:
    rows = await find_reviews_by_application(application_id, limit=1)
    return rows[0] if rows else None

def _build_filter(
    application_id: Optional[str] = None,
    application_ids: Optional[List[str]] = None,
    recommendation: Optional[str] = None,
    min_score: Optional[int] = None,
    max_score: Optional[int] = None,
) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if application_id:
        query["application_id"] = application_id
    elif application_ids is not None:
        query["application_id"] = {"$in": list(application_ids)}
    if recommendation:
        query["recommendation"] = recommendation
    score: Dict[str, int] = {}
    if min_score is not None:
        score["$gte"] = min_score
    if max_score is not None:
        score["$lte"] = max_score
    if score:
        query["fit_score"] = score
    return query

async def list_reviews(
    application_id: Optional[str] = None,
    application_ids: Optional[List[str]] = None,
    recommendation: Optional[str] = None,
    min_score: Optional[int] = None,
    max_score: Optional[int] = None,
    limit: int = 20,
    skip: int = 0,
) -> List[FitReviewInDB]:
    db = get_db()
    query = _build_filter(application_id, application_ids, recommendation, min_score, max_score)
    cur = db[REVIEWS_COLLECTION].find(query).sort("analyzed_at", -1).skip(skip).limit(limit)
    out = []
    async for d in cur:
        out.append(FitReviewInDB.from_document(d))
    return out

async def get_job_review_stats(job_id: str) -> JobReviewStats:
    """
    Aggregate over every review (history included) of the job's applications.
    """
    db = get_db()
    app_cur = db[APPLICATIONS_COLLECTION].find({"job_id": job_id}, {"_id": 1})
    application_ids = [str(a["_id"]) async for a in app_cur]
    stats = JobReviewStats(job_id=job_id)
    if not application_ids:
        return stats

    cur = db[REVIEWS_COLLECTION].find({"application_id": {"$in": application_ids}})
    scores: List[float] = []
    matches: List[float] = []
    async for d in cur:
        scores.append(d.get("fit_score") or 0)
        matches.append(d.get("skills_match_percentage") or 0)
        rec = d.get("recommendation")
        if rec in RECOMMENDATIONS:
            stats.recommendation_breakdown[rec] += 1

    stats.total_reviews = len(scores)
    if scores:
        stats.average_fit_score = round(sum(scores) / len(scores), 1)
        stats.average_skills_match = round(sum(matches) / len(matches), 1)
    return stats
