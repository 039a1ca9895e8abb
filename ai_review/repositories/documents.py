# ai_review/repositories/documents.py
"""
Extraction store: structured resume data lives on the existing document
record under metadata.structured_data. Writes are a dotted $set so the other
metadata keys (extracted_text, page counts, ...) are left alone.
"""
from typing import Any, Dict, Optional

from ai_review.db.mongo import get_db
from ai_review.models.resume import ResumeStructuredData

DOCUMENTS_COLLECTION = "documents"
STRUCTURED_DATA_FIELD = "structured_data"

def _to_id(doc):
    if not doc:
        return None
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc["_id"])
        del doc["_id"]
    return doc

async def get_document(document_id: str) -> Optional[Dict[str, Any]]:
    db = get_db()
    doc = await db[DOCUMENTS_COLLECTION].find_one({"_id": document_id})
    return _to_id(doc)

def get_extracted_text(document: Dict[str, Any]) -> str:
    text = (document.get("metadata") or {}).get("extracted_text")
    return text if isinstance(text, str) else ""

def has_structured_data(document: Dict[str, Any]) -> bool:
    return bool((document.get("metadata") or {}).get(STRUCTURED_DATA_FIELD))

async def save_structured_data(document_id: str, data: ResumeStructuredData) -> bool:
    db = get_db()
    res = await db[DOCUMENTS_COLLECTION].update_one(
        {"_id": document_id},
        {"$set": {f"metadata.{STRUCTURED_DATA_FIELD}": data.model_dump(mode="json")}},
    )
    return res.matched_count > 0
