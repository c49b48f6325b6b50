"""Read-only access to per-subject reference text.

Each subject (a country) has one record whose ``sections`` payload holds text
previously extracted from source reports, grouped by section name:

    {"sections": [{"name": "GHG Inventory",
                   "documents": [{"doc_type": "BTR", "extracted_text": "..."}]}]}

The payload is written by a separate ingestion pipeline; this module never
writes. References are advisory: lookup problems are logged and produce an
empty list rather than failing an edit.
"""

from typing import Any

from docpatch.core.config import get_settings
from docpatch.core.logging import get_logger
from docpatch.db.supabase_client import get_supabase, reference_store_configured

logger = get_logger(__name__)


def extract_section_references(payload: Any, section_name: str) -> list[str]:
    """
    Pull ``"<doc_type>: <text>"`` entries for one section out of a record payload.

    Args:
        payload: The record's ``sections`` column (any shape; malformed parts are skipped)
        section_name: Section to collect

    Returns:
        Reference strings in stored order
    """
    if not isinstance(payload, dict):
        return []
    sections = payload.get("sections")
    if not isinstance(sections, list):
        return []

    references: list[str] = []
    for section in sections:
        if not isinstance(section, dict) or section.get("name") != section_name:
            continue
        for document in section.get("documents") or []:
            if not isinstance(document, dict):
                continue
            text = (document.get("extracted_text") or "").strip()
            if not text:
                continue
            doc_type = document.get("doc_type") or "Other"
            references.append(f"{doc_type}: {text}")
    return references


def get_subject_record(subject: str) -> dict[str, Any] | None:
    """
    Fetch a subject's record by case-insensitive name.

    Returns:
        The record dict, or None if there is no match

    Raises:
        Exception: If the database query fails
    """
    settings = get_settings()
    supabase = get_supabase()
    response = (
        supabase.table(settings.REFERENCE_TABLE)
        .select("id, name, sections")
        .ilike("name", subject.strip())
        .limit(1)
        .execute()
    )
    if not response.data:
        return None
    return response.data[0]


def get_subject_references(subject: str | None, section_name: str) -> list[str]:
    """
    Reference text for one section of one subject.

    Returns an empty list when no subject is given, the store is not
    configured, the subject is unknown, or the lookup fails.
    """
    if not subject or not subject.strip() or not reference_store_configured():
        return []

    try:
        record = get_subject_record(subject)
    except Exception as e:
        logger.warning(f"Reference lookup failed for {subject} / {section_name}: {e}")
        return []

    if record is None:
        logger.info(f"No reference record for subject: {subject}")
        return []

    references = extract_section_references(record.get("sections"), section_name)
    logger.debug(f"Loaded {len(references)} reference(s) for {subject} / {section_name}")
    return references
