"""API endpoints describing the known section registry."""

from fastapi import APIRouter

from docpatch.core.schemas_edit import SectionInfo
from docpatch.core.section_registry import PIF_SECTIONS

router = APIRouter()


@router.get("/sections", response_model=list[SectionInfo])
async def list_sections() -> list[SectionInfo]:
    """List every section that can be requested for editing."""
    return [
        SectionInfo(
            name=section.name,
            patterns=list(section.patterns),
            expected_level=section.expected_level,
        )
        for section in PIF_SECTIONS
    ]
