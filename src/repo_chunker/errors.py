"""Exception hierarchy for the chunking pipeline."""

from __future__ import annotations


class ChunkerError(Exception):
    """Base class for errors raised by repo_chunker."""


class InvalidBudgetError(ChunkerError, ValueError):
    """The chunk budget cannot be planned with (overlap >= max)."""

    def __init__(self, max_tokens: int, overlap_tokens: int) -> None:
        super().__init__(
            f"overlap_tokens ({overlap_tokens}) must be less than max_tokens ({max_tokens})"
        )
        self.max_tokens = max_tokens
        self.overlap_tokens = overlap_tokens


class EmptyInputError(ChunkerError):
    """No processable file was left after scanning and filtering."""


class UnreadableFileError(ChunkerError, OSError):
    """A file could not be read; reported per file, never fatal."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class OutputError(ChunkerError):
    """Chunks could not be written to the output directory."""


class TemplateError(ChunkerError):
    """A custom output template is invalid or failed to render."""

    def __init__(self, template: str, reason: str) -> None:
        super().__init__(f"Template {template}: {reason}")
        self.template = template
        self.reason = reason
