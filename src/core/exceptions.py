"""Exception hierarchy for DTR format detection and review."""


class DtrError(Exception):
    """Base exception for the DTR intake core."""


class ValidationError(DtrError):
    """Raised when caller-supplied input is structurally invalid."""


class NotFoundError(DtrError):
    """Raised when a referenced format or intake record does not exist."""


class PatternCompileError(DtrError):
    """A stored or operator-supplied pattern failed to compile.

    Args:
        pattern: The pattern text that failed.
        reason: The underlying regex error message.
        format_id: Id of the owning format, when there is one.
    """

    def __init__(self, pattern: str, reason: str, format_id: int | None = None) -> None:
        self.pattern = pattern
        self.reason = reason
        self.format_id = format_id
        owner = f"format {format_id}" if format_id is not None else "pattern"
        super().__init__(f"Could not compile {owner}: {reason}")


class CollaboratorError(DtrError):
    """An external collaborator (OCR, image enhancement) failed or timed out."""
