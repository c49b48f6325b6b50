"""API router for v1 endpoints."""

from fastapi import APIRouter

from docpatch.api import documents, sections

router = APIRouter()

# Section registry listing
router.include_router(sections.router, tags=["sections"])

# Document edit and locate routes
router.include_router(documents.router, prefix="/documents", tags=["documents"])
