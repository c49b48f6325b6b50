"""Edit named sections of a document through the generation service.

Coordinates the full pipeline: validate → snapshot → locate → batch edit →
splice. Only request validation is fatal; every per-section problem is
contained to its section and reported in ``failed_sections``.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial

from docpatch.chains.edit_section import EditJob, edit_section
from docpatch.core.batch_scheduler import ScheduledJob, process
from docpatch.core.boundary_cache import BoundaryCache, resolve_range
from docpatch.core.config import Settings, get_settings
from docpatch.core.errors import SectionNotFound
from docpatch.core.llm import GenerationClient, get_generation_client
from docpatch.core.logging import get_logger
from docpatch.core.patch_apply import apply_replacements, build_replacement
from docpatch.core.retry_policy import RetryPolicy, Sleep
from docpatch.core.schemas_document import Document
from docpatch.core.schemas_edit import SectionEditResult, SectionRange
from docpatch.core.section_registry import PIF_SECTIONS, SectionRegistry
from docpatch.db.references import get_subject_references

logger = get_logger(__name__)

ReferenceLookup = Callable[[str | None, str], list[str]]


@dataclass
class EditDocumentResult:
    """Result of a document edit request."""

    document: Document
    successful_sections: list[str] = field(default_factory=list)
    failed_sections: list[str] = field(default_factory=list)
    results: list[SectionEditResult] = field(default_factory=list)

    @property
    def title(self) -> str | None:
        return self.document.title


def validate_edit_request(
    section_names: list[str],
    edit_instructions: str,
    registry: SectionRegistry = PIF_SECTIONS,
) -> list[str]:
    """
    Pre-flight checks run before any generation call.

    Returns:
        Requested names with duplicates removed, first occurrence kept

    Raises:
        ValueError: If no sections are requested or instructions are blank
        InvalidSectionName: If any name is missing from the registry
    """
    if not section_names:
        raise ValueError("At least one section must be specified for editing")
    if not edit_instructions or not edit_instructions.strip():
        raise ValueError("Edit instructions are required")

    names = list(dict.fromkeys(section_names))
    registry.require(names)
    return names


async def edit_document(
    document: Document,
    section_names: list[str],
    edit_instructions: str,
    *,
    subject: str | None = None,
    client: GenerationClient | None = None,
    cache: BoundaryCache | None = None,
    registry: SectionRegistry = PIF_SECTIONS,
    settings: Settings | None = None,
    reference_lookup: ReferenceLookup = get_subject_references,
    sleep: Sleep = asyncio.sleep,
) -> EditDocumentResult:
    """
    Rewrite the named sections of a document.

    Args:
        document: Source document (never modified)
        section_names: Registry names of the sections to edit
        edit_instructions: What to change, applied to every requested section
        subject: Optional subject (country) used for references and placeholders
        client: Generation client (defaults to the configured provider)
        cache: Precomputed boundaries, used only when verified against the document
        registry: Known sections
        settings: Settings override
        reference_lookup: Reference text source, ``(subject, section) -> [text]``
        sleep: Awaitable sleep, injectable for tests

    Returns:
        EditDocumentResult with the new document and per-section outcomes

    Raises:
        ValueError: If the request is empty or instructions are blank
        InvalidSectionName: If any requested name is unknown
    """
    names = validate_edit_request(section_names, edit_instructions, registry)
    settings = settings or get_settings()
    client = client or get_generation_client(settings)
    policy = RetryPolicy.from_settings(settings)
    instructions = edit_instructions.strip()

    logger.info(f"Starting edit of {len(names)} section(s): {', '.join(names)}")

    # Every job reads this snapshot; nothing writes to it until the final splice
    snapshot = document.model_copy(deep=True)

    ranges: dict[str, SectionRange] = {}
    outcomes: dict[str, SectionEditResult] = {}
    scheduled: list[ScheduledJob] = []

    for name in names:
        try:
            ranges[name] = resolve_range(snapshot, name, cache, registry)
        except SectionNotFound as e:
            outcomes[name] = SectionEditResult(
                section_name=name, success=False, nodes=None, error=str(e)
            )

    # Reference lookups are blocking database calls; run them off the event loop
    references: dict[str, list[str]] = {name: [] for name in ranges}
    if subject:
        fetched = await asyncio.gather(
            *(asyncio.to_thread(reference_lookup, subject, name) for name in ranges)
        )
        references = dict(zip(ranges, fetched))

    for name, section_range in ranges.items():
        job = EditJob(
            section_name=name,
            instructions=instructions,
            source_range=section_range,
            source_nodes=snapshot.content[section_range.start : section_range.end],
            subject=subject,
            references=references[name],
        )
        scheduled.append(
            ScheduledJob(
                section_name=name,
                run=partial(edit_section, job, client, policy, sleep),
            )
        )

    batch_results = await process(
        scheduled,
        batch_size=settings.EDIT_BATCH_SIZE,
        pause_seconds=settings.EDIT_BATCH_PAUSE_SECONDS,
        sleep=sleep,
    )
    for result in batch_results:
        outcomes[result.section_name] = result

    replacements = [
        build_replacement(ranges[name], outcome.nodes)
        for name, outcome in outcomes.items()
        if outcome.success and outcome.nodes
    ]
    edited = apply_replacements(snapshot, replacements)

    results = [outcomes[name] for name in names]
    successful = [r.section_name for r in results if r.success]
    failed = [r.section_name for r in results if not r.success]

    logger.info(
        f"Document edit complete: {len(successful)} succeeded, {len(failed)} failed"
        + (f" ({', '.join(failed)})" if failed else "")
    )

    return EditDocumentResult(
        document=edited,
        successful_sections=successful,
        failed_sections=failed,
        results=results,
    )
