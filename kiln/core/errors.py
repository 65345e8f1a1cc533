"""Pipeline exceptions for error handling."""

from typing import Optional


class CompileError(Exception):
    """Raised when inline source cannot be transformed.

    This exception is raised by the source transformer on malformed syntax:
    - Unbalanced or mismatched markup tags
    - Unterminated strings, template literals, comments or expressions
    - No component binding that the transformed body could return

    The pipeline converts it into a failed result; it never crosses the
    public boundary.

    Attributes:
        message: Description of the failure
        line: 1-based line of the offending position (optional)
        column: 1-based column of the offending position (optional)
    """

    def __init__(
        self, message: str, line: Optional[int] = None, column: Optional[int] = None
    ) -> None:
        """Initialize CompileError exception.

        Args:
            message: Error message describing the failure
            line: Line number where the failure was detected (optional)
            column: Column number where the failure was detected (optional)
        """
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.message} ({self.line}:{self.column})"

    @classmethod
    def at(cls, message: str, source: str, pos: int) -> "CompileError":
        """Build an error located at a character offset of ``source``."""
        pos = max(0, min(pos, len(source)))
        line = source.count("\n", 0, pos) + 1
        column = pos - (source.rfind("\n", 0, pos) + 1) + 1
        return cls(message, line=line, column=column)


class PreparationError(Exception):
    """Raised when a loadable module resource cannot be created.

    Attributes:
        message: Description of the failure
        reference: The module reference involved, if one was allocated
    """

    def __init__(self, message: str, reference: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.reference = reference


class ManifestError(Exception):
    """Raised when a component library manifest cannot be read.

    Attributes:
        message: Description of the failure
        path: Manifest file involved
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message if path is None else f"{path}: {message}")
        self.message = message
        self.path = path
