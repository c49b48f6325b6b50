"""API endpoints for editing and inspecting document sections."""

from fastapi import APIRouter, HTTPException

from docpatch.core.config import get_settings
from docpatch.core.errors import InvalidSectionName
from docpatch.core.logging import get_logger
from docpatch.core.schemas_edit import (
    EditDocumentRequest,
    EditDocumentResponse,
    LocateSectionsRequest,
    LocateSectionsResponse,
)
from docpatch.core.section_locator import locate_many
from docpatch.core.section_registry import PIF_SECTIONS
from docpatch.services.document_editor import edit_document, validate_edit_request

logger = get_logger(__name__)

router = APIRouter()


@router.post("/edit", response_model=EditDocumentResponse, response_model_exclude_unset=True)
async def edit_document_sections(request: EditDocumentRequest) -> EditDocumentResponse:
    """
    Rewrite the requested sections of a document.

    Sections that cannot be located or edited are left untouched and listed in
    ``failed_sections``; the rest of the document is returned unchanged.
    """
    settings = get_settings()
    logger.info(f"Edit request for {len(request.sections)} section(s)")

    try:
        validate_edit_request(request.sections, request.edit_instructions)
    except ValueError as e:
        # Includes InvalidSectionName: rejected before any generation call
        raise HTTPException(status_code=400, detail=str(e)) from e

    try:
        result = await edit_document(
            request.document,
            request.sections,
            request.edit_instructions,
            subject=request.subject,
            settings=settings,
        )
    except Exception as e:
        logger.error(f"Edit request failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to edit document: {e}") from e

    return EditDocumentResponse(
        document=result.document,
        title=result.title or settings.DEFAULT_DOCUMENT_TITLE,
        successful_sections=result.successful_sections,
        failed_sections=result.failed_sections,
    )


@router.post("/sections/locate", response_model=LocateSectionsResponse)
async def locate_document_sections(request: LocateSectionsRequest) -> LocateSectionsResponse:
    """Resolve section ranges without calling the generation service."""
    names = request.sections or PIF_SECTIONS.names

    try:
        PIF_SECTIONS.require(names)
    except InvalidSectionName as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    ranges, missing = locate_many(request.document, names)
    return LocateSectionsResponse(ranges=ranges, missing=missing)
