"""Safe application of section replacements to a document.

Replacements are spliced highest ``start`` first, so the indices of every
not-yet-applied, lower replacement still point at the original nodes.

Overlapping ranges are not validated. When two ranges overlap, the one
applied later (the lower ``start``) wins for the overlapping span.
"""

from docpatch.core.logging import get_logger
from docpatch.core.schemas_document import BlockNode, Document
from docpatch.core.schemas_edit import Replacement, SectionRange

logger = get_logger(__name__)


def _check_bounds(replacement: Replacement, length: int) -> None:
    if replacement.start < 0 or replacement.end > length or replacement.end <= replacement.start:
        raise ValueError(
            f"Replacement range [{replacement.start}, {replacement.end}) "
            f"is invalid for a document of {length} nodes"
        )


def build_replacement(section_range: SectionRange, nodes: list[BlockNode]) -> Replacement:
    """Pair a located range with the nodes that should take its place."""
    return Replacement(start=section_range.start, end=section_range.end, nodes=nodes)


def apply_replacements(document: Document, replacements: list[Replacement]) -> Document:
    """
    Splice replacements into a copy of the document.

    Args:
        document: Base document (not modified)
        replacements: Ranges against the base document's content with their new nodes

    Returns:
        New Document with every replacement applied

    Raises:
        ValueError: If any range falls outside the base document or is empty
    """
    length = len(document.content)
    for replacement in replacements:
        _check_bounds(replacement, length)

    content = list(document.content)
    for replacement in sorted(replacements, key=lambda r: r.start, reverse=True):
        content[replacement.start : replacement.end] = replacement.nodes
        logger.debug(
            f"Spliced {len(replacement.nodes)} node(s) over "
            f"[{replacement.start}, {replacement.end})"
        )

    logger.info(
        f"Applied {len(replacements)} replacement(s): {length} -> {len(content)} nodes"
    )
    return document.model_copy(update={"content": content})
