"""Precomputed section boundaries for a known template instance.

The cache is only consulted when the live document carries the same heading
skeleton as the template it was built from. Any mismatch falls back to the
dynamic locator; a stale table is never trusted.
"""

import hashlib
import json
from dataclasses import dataclass, field

from docpatch.core.errors import SectionNotFound
from docpatch.core.logging import get_logger
from docpatch.core.schemas_document import Document
from docpatch.core.schemas_edit import SectionRange
from docpatch.core.section_locator import list_headings, locate
from docpatch.core.section_registry import PIF_SECTIONS, SectionRegistry

logger = get_logger(__name__)


def template_fingerprint(document: Document) -> str:
    """
    Hash the inputs that determine section ranges.

    Covers the node count and every top-level heading's index, level and text.
    Body edits that leave the heading skeleton alone keep the fingerprint.
    """
    skeleton = {
        "node_count": len(document.content),
        "headings": list_headings(document),
    }
    payload = json.dumps(skeleton, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class BoundaryCache:
    """Section ranges keyed by name, valid for one template fingerprint."""

    fingerprint: str
    entries: dict[str, SectionRange] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        document: Document,
        section_names: list[str] | None = None,
        registry: SectionRegistry = PIF_SECTIONS,
    ) -> "BoundaryCache":
        """
        Precompute ranges for a template using the dynamic locator.

        Sections that cannot be located are left out of the table.
        """
        names = section_names if section_names is not None else registry.names
        entries: dict[str, SectionRange] = {}
        for name in names:
            try:
                entries[name] = locate(document, name, registry)
            except SectionNotFound as e:
                logger.info(f"Boundary cache skipping {name}: {e}")

        cache = cls(fingerprint=template_fingerprint(document), entries=entries)
        logger.info(
            f"Built boundary cache with {len(entries)}/{len(names)} sections",
            extra={"extra_data": {"fingerprint": cache.fingerprint[:12]}},
        )
        return cache

    def matches(self, document: Document) -> bool:
        return template_fingerprint(document) == self.fingerprint

    def lookup(self, document: Document, section_name: str) -> SectionRange | None:
        """Return the cached range only if it is verified against ``document``."""
        entry = self.entries.get(section_name)
        if entry is None:
            return None
        if not self.matches(document):
            logger.warning(
                f"Boundary cache fingerprint mismatch for {section_name}; "
                "falling back to heading scan"
            )
            return None
        if entry.end > len(document.content):
            logger.warning(f"Cached range for {section_name} exceeds document length")
            return None
        return entry


def resolve_range(
    document: Document,
    section_name: str,
    cache: BoundaryCache | None = None,
    registry: SectionRegistry = PIF_SECTIONS,
) -> SectionRange:
    """
    Two-tier lookup: verified cache entry first, dynamic locator otherwise.

    Raises:
        SectionNotFound: If the locator cannot find the section
    """
    if cache is not None:
        cached = cache.lookup(document, section_name)
        if cached is not None:
            logger.debug(f"Boundary cache hit for {section_name}: [{cached.start}, {cached.end})")
            return cached
    return locate(document, section_name, registry)
