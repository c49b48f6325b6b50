"""Locate named sections inside a document's top-level content.

A section starts at the heading whose text matches one of the section's
patterns and runs up to (not including) the next heading at the same or a
higher level, or to the end of the document.

Matching rules:
- Heading text is the concatenation of its text leaves, lower-cased and stripped.
- An exact match beats a substring match anywhere in the document.
- Within either class the first heading in document order wins; later
  duplicates with identical text are ignored.
"""

from docpatch.core.errors import SectionNotFound
from docpatch.core.logging import get_logger
from docpatch.core.schemas_document import BlockNode, Document, HeadingNode, node_text
from docpatch.core.schemas_edit import SectionRange
from docpatch.core.section_registry import PIF_SECTIONS, SectionPattern, SectionRegistry

logger = get_logger(__name__)


def heading_text(node: HeadingNode) -> str:
    """Normalized text used for pattern matching."""
    return node_text(node).strip().lower()


def list_headings(document: Document) -> list[tuple[int, int, str]]:
    """Return ``(index, level, text)`` for every top-level heading."""
    return [
        (i, node.level, node_text(node).strip())
        for i, node in enumerate(document.content)
        if isinstance(node, HeadingNode)
    ]


def _find_start(content: list[BlockNode], section: SectionPattern) -> int | None:
    patterns = [p for p in section.lowered if p]
    substring_hit: int | None = None

    for i, node in enumerate(content):
        if not isinstance(node, HeadingNode):
            continue
        if section.expected_level is not None and node.level != section.expected_level:
            continue

        text = heading_text(node)
        if any(text == p for p in patterns):
            return i
        if substring_hit is None and any(p in text for p in patterns):
            substring_hit = i

    return substring_hit


def _find_end(content: list[BlockNode], start: int, section: SectionPattern) -> int:
    level = content[start].level

    for i in range(start + 1, len(content)):
        node = content[i]
        if isinstance(node, HeadingNode):
            if node.level <= level:
                return i
        elif section.end_markers:
            text = node_text(node)
            if any(marker.search(text) for marker in section.end_markers):
                return i

    return len(content)


def locate(
    document: Document,
    section_name: str,
    registry: SectionRegistry = PIF_SECTIONS,
) -> SectionRange:
    """
    Find the top-level index range of a named section.

    Args:
        document: Document to scan (not modified)
        section_name: Registry key of the section
        registry: Section patterns to match against

    Returns:
        SectionRange with end > start

    Raises:
        SectionNotFound: If the name is unknown or no heading matches
    """
    section = registry.get(section_name)
    if section is None:
        logger.warning(f"No heading patterns registered for section: {section_name}")
        raise SectionNotFound(section_name)

    content = document.content
    start = _find_start(content, section)
    if start is None:
        logger.warning(f"Could not find section heading for: {section_name}")
        raise SectionNotFound(section_name)

    end = _find_end(content, start, section)
    logger.debug(f"Located section {section_name} at [{start}, {end})")
    return SectionRange(start=start, end=end)


def locate_many(
    document: Document,
    section_names: list[str],
    registry: SectionRegistry = PIF_SECTIONS,
) -> tuple[dict[str, SectionRange], list[str]]:
    """
    Locate several sections at once.

    Returns:
        Tuple of (ranges by section name, names that could not be located)
    """
    ranges: dict[str, SectionRange] = {}
    missing: list[str] = []
    for name in section_names:
        try:
            ranges[name] = locate(document, name, registry)
        except SectionNotFound:
            missing.append(name)
    return ranges, missing
