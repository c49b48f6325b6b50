"""Section edit chain: rewrite one document section with the generation client.

The section's nodes go to the model as JSON together with the edit
instructions; the reply goes through the recovery pipeline under the retry
policy. Whatever happens, the chain returns a ``SectionEditResult`` and never
raises for generation or parsing problems.

Usage:
    from docpatch.chains.edit_section import EditJob, edit_section

    result = await edit_section(job, client)
"""

import asyncio
import re
from dataclasses import dataclass, field

from docpatch.core.llm import GenerationClient
from docpatch.core.logging import get_logger
from docpatch.core.response_recovery import serialize_nodes
from docpatch.core.retry_policy import RetryPolicy, Sleep, run_with_retry
from docpatch.core.schemas_document import BlockNode, map_text_leaves
from docpatch.core.schemas_edit import SectionEditResult, SectionRange

logger = get_logger(__name__)

_PLACEHOLDER_RE = re.compile(r"\[Country\]|\{Country\}")

# Max characters of reference text per section in a prompt
MAX_REFERENCE_CHARS = 20_000

# ruff: noqa: E501
EDIT_PROMPT = """Here's the current "{section_name}" section JSON that needs to be edited:

{section_json}

Edit Instructions:
{instructions}
{reference_block}
Your job is to edit the "{section_name}" section according to the instructions above.

CRITICAL REQUIREMENTS:
- Keep ALL content that isn't mentioned in the edit instructions - do NOT remove or change anything unless explicitly requested
- Only modify what's specifically mentioned in the edit instructions
- Preserve ALL formatting, structure, tables, headings, and JSON structure exactly as provided
- Keep the section's first node: the heading that opens the section
- Maintain all table structures (tableRow, tableHeader, tableCell, colspan, rowspan, etc.) unless specifically asked to change them
- Keep all "STANDARD TEXT TO BE INCLUDED" sections exactly as-is unless mentioned in edits
- Do NOT remove any nodes unless explicitly requested
- If adding content, maintain the same formatting style as existing content
- If editing tables, preserve the table structure and only modify cell content
- Allowed node types: heading, paragraph, table, tableRow, tableCell, tableHeader, bulletList, orderedList, listItem, text
- Allowed marks: bold, italic, underline

CRITICAL: Return ONLY the edited ProseMirror JSON array. The response must be VALID JSON that can be parsed directly.

IMPORTANT JSON VALIDITY REQUIREMENTS:
- All strings must use double quotes (")
- Escape all double quotes inside strings with backslash (\\")
- Escape all backslashes with double backslash (\\\\)
- Escape newlines in strings as \\n
- No trailing commas
- All property names must be in double quotes
- Ensure proper closing brackets and braces

Do not wrap in markdown code blocks. Do not add explanations. Return the complete JSON array starting with "[" and ending with "]"."""

REFERENCE_BLOCK = """
Reference material extracted from official reports for {subject}. Prefer it over general knowledge when the instructions ask for facts:

{references}
"""


@dataclass
class EditJob:
    """One section's edit request, resolved against the document snapshot."""

    section_name: str
    instructions: str
    source_range: SectionRange
    source_nodes: list[BlockNode]
    subject: str | None = None
    references: list[str] = field(default_factory=list)


def build_edit_prompt(job: EditJob) -> str:
    """Render the edit prompt for a job."""
    reference_block = ""
    if job.references:
        joined = "\n\n".join(job.references)
        if len(joined) > MAX_REFERENCE_CHARS:
            joined = joined[:MAX_REFERENCE_CHARS] + "\n[... reference material truncated ...]"
        reference_block = REFERENCE_BLOCK.format(
            subject=job.subject or "this subject",
            references=joined,
        )

    return EDIT_PROMPT.format(
        section_name=job.section_name,
        section_json=serialize_nodes(job.source_nodes),
        instructions=job.instructions,
        reference_block=reference_block,
    )


def fill_placeholders(nodes: list[BlockNode], subject: str) -> list[BlockNode]:
    """Replace ``[Country]`` / ``{Country}`` in every text leaf with ``subject``."""
    def _fill(text: str) -> str:
        return _PLACEHOLDER_RE.sub(lambda _match: subject, text)

    return [map_text_leaves(node, _fill) for node in nodes]


async def edit_section(
    job: EditJob,
    client: GenerationClient,
    policy: RetryPolicy | None = None,
    sleep: Sleep = asyncio.sleep,
) -> SectionEditResult:
    """
    Edit one section.

    Args:
        job: Resolved edit job
        client: Generation client
        policy: Retry policy override
        sleep: Awaitable sleep, injectable for tests

    Returns:
        SectionEditResult with the edited nodes on success, or the original
        nodes and ``success=False`` when the job degraded
    """
    prompt = build_edit_prompt(job)
    logger.info(
        f"Editing section {job.section_name} "
        f"([{job.source_range.start}, {job.source_range.end}), prompt {len(prompt)} chars)"
    )

    outcome = await run_with_retry(
        lambda: client.generate(prompt),
        job.source_nodes,
        policy,
        label=job.section_name,
        sleep=sleep,
    )

    nodes = outcome.nodes
    if outcome.success and job.subject:
        nodes = fill_placeholders(nodes, job.subject)

    if outcome.success:
        logger.info(
            f"Section {job.section_name} edited in {outcome.attempts} attempt(s): "
            f"{len(job.source_nodes)} -> {len(nodes)} nodes"
        )

    return SectionEditResult(
        section_name=job.section_name,
        success=outcome.success,
        nodes=nodes,
        error=outcome.error,
    )
