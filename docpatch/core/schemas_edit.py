"""Pydantic models for section edit requests, results, and patches."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from docpatch.core.schemas_document import BlockNode, Document


class SectionRange(BaseModel):
    """Half-open ``[start, end)`` range of top-level node indices."""

    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)

    @model_validator(mode="after")
    def _check_non_empty(self) -> SectionRange:
        if self.end <= self.start:
            raise ValueError(f"Section range must be non-empty, got [{self.start}, {self.end})")
        return self

    def __len__(self) -> int:
        return self.end - self.start


class Replacement(BaseModel):
    """Nodes to splice over ``[start, end)`` of a document's content."""

    start: int
    end: int
    nodes: list[BlockNode]


class SectionEditResult(BaseModel):
    """Outcome of one section edit job.

    ``nodes`` is the edited range on success, the untouched original range
    when the job degraded, and ``None`` when the section could not be located.
    """

    section_name: str
    success: bool
    nodes: list[BlockNode] | None = None
    error: str | None = None


# =============================================================================
# API payloads
# =============================================================================


class EditDocumentRequest(BaseModel):
    """Request to rewrite named sections of a document."""

    document: Document
    sections: list[str] = Field(default_factory=list)
    edit_instructions: str = ""
    subject: str | None = None  # e.g. country name; fills [Country] placeholders


class EditDocumentResponse(BaseModel):
    document: Document
    title: str
    successful_sections: list[str]
    failed_sections: list[str]


class LocateSectionsRequest(BaseModel):
    document: Document
    sections: list[str] = Field(default_factory=list)


class LocateSectionsResponse(BaseModel):
    ranges: dict[str, SectionRange]
    missing: list[str]


class SectionInfo(BaseModel):
    name: str
    patterns: list[str]
    expected_level: int | None = None
