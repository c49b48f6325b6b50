"""Known sections of the Project Information Form template.

Each section is identified by the heading text that opens it. Patterns are
matched case-insensitively against the heading's concatenated text, exact
match preferred over substring containment.
"""

import re
from dataclasses import dataclass, field

from docpatch.core.errors import InvalidSectionName


@dataclass(frozen=True)
class SectionPattern:
    """How to find one named section inside a document."""

    name: str
    patterns: tuple[str, ...]
    expected_level: int | None = None  # restrict candidates to this heading level
    end_markers: tuple[re.Pattern[str], ...] = field(default=())  # non-heading nodes that close the section

    @property
    def lowered(self) -> tuple[str, ...]:
        return tuple(p.strip().lower() for p in self.patterns)


class SectionRegistry:
    """Closed, validated set of section patterns."""

    def __init__(self, sections: list[SectionPattern]):
        self._sections: dict[str, SectionPattern] = {}
        for section in sections:
            if section.name in self._sections:
                raise ValueError(f"Duplicate section name in registry: {section.name}")
            self._sections[section.name] = section
        self.validate()

    def validate(self) -> None:
        """
        Check every entry is usable by the locator.

        Raises:
            ValueError: If an entry has no usable pattern or a bad level
        """
        for section in self._sections.values():
            if not section.name.strip():
                raise ValueError("Section name must not be blank")
            if not any(p.strip() for p in section.patterns):
                raise ValueError(f"Section {section.name!r} has no heading patterns")
            if section.expected_level is not None and not 1 <= section.expected_level <= 6:
                raise ValueError(
                    f"Section {section.name!r} expected_level must be 1-6, "
                    f"got {section.expected_level}"
                )

    def get(self, name: str) -> SectionPattern | None:
        return self._sections.get(name)

    def require(self, names: list[str]) -> None:
        """
        Fail fast if any requested name is unknown.

        Raises:
            InvalidSectionName: Listing every unknown name, in request order
        """
        unknown = [n for n in names if n not in self._sections]
        if unknown:
            raise InvalidSectionName(unknown)

    @property
    def names(self) -> list[str]:
        return list(self._sections)

    def __contains__(self, name: object) -> bool:
        return name in self._sections

    def __iter__(self):
        return iter(self._sections.values())

    def __len__(self) -> int:
        return len(self._sections)


# Heading patterns for the GEF8 PIF template
PIF_SECTIONS = SectionRegistry(
    [
        SectionPattern("GHG Inventory", ("GHG Inventory Module",)),
        SectionPattern(
            "Climate Transparency",
            ("Climate Transparency in",),
            # The baseline block follows this section without a heading of its own
            end_markers=(re.compile(r"new\s+section\s*:?\s*baseline", re.IGNORECASE),),
        ),
        SectionPattern("Adaptation and Vulnerability", ("Adaptation and Vulnerability Module",)),
        SectionPattern("NDC Tracking", ("NDC Tracking Module",)),
        SectionPattern(
            "Institutional Framework for Climate Action",
            ("Institutional Framework for Climate Action",),
        ),
        SectionPattern("National Policy Framework", ("National Policy Framework",)),
        SectionPattern("Support Needed and Received", ("Support Needed and Received Module",)),
        SectionPattern("Key Barriers", ("Key barriers",)),
        SectionPattern("Other Baseline Initiatives", ("Other baseline initiatives",)),
        SectionPattern("Official Reporting to the UNFCCC", ("Official reporting to the UNFCCC",)),
    ]
)
