"""Error taxonomy for section editing.

Per-section errors (``SectionNotFound``, ``GenerationError`` subclasses) are
contained to the section that raised them. ``InvalidSectionName`` is the only
request-fatal error and is raised before any generation call is issued.
"""


class SectionNotFound(Exception):
    """Raised when no heading in a document matches a section's patterns."""

    def __init__(self, section_name: str):
        super().__init__(f"Section not found in document: {section_name}")
        self.section_name = section_name


class InvalidSectionName(ValueError):
    """Raised when requested section names are absent from the registry."""

    def __init__(self, names: list[str]):
        super().__init__(f"Invalid sections: {', '.join(names)}")
        self.names = names


class GenerationError(Exception):
    """Base class for generation client failures."""

    retryable: bool = True


class RateLimited(GenerationError):
    """The generation service rejected the call for rate or quota reasons."""


class GenerationTimeout(GenerationError):
    """The generation call did not complete in time."""


class TransientGenerationError(GenerationError):
    """Connection drop, 5xx, or other failure worth retrying."""


class FatalGenerationError(GenerationError):
    """Authentication, bad request, or other failure that retrying cannot fix."""

    retryable = False
