"""Exceptions raised while expanding ``#include`` directives.

Every error aborts the expansion of the whole file it occurred in. Nothing
here is retried: each one points at a structural problem with the input
(a missing header, a malformed directive, a header libclang rejects, or a
source range that can no longer be read).
"""


class ExpansionError(Exception):
    """Base class for all expansion failures."""


class HeaderNotFoundError(ExpansionError):
    """No candidate path exists for a header reference.

    :param header_name: The reference as written between the delimiters.
    :param searched: Directories that were searched, in order.
    """

    def __init__(self, header_name: str, searched: tuple[str, ...] = ()) -> None:
        self.header_name = header_name
        self.searched = searched
        message = f"Cannot find file path for header '{header_name}'"
        if searched:
            message += f" (searched: {', '.join(searched)})"
        super().__init__(message)


class MalformedIncludeError(ExpansionError):
    """An ``#include`` line has no opening or no closing delimiter."""

    def __init__(self, line: str) -> None:
        self.line = line
        super().__init__(f"Malformed #include directive: {line.strip()!r}")


class ParseError(ExpansionError):
    """libclang could not parse a header."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Parse error in {path}: {reason}")


class SourceRangeReadError(ExpansionError):
    """The bytes behind a cursor extent could not be read back."""

    def __init__(self, path: str, start: int, end: int, reason: str) -> None:
        self.path = path
        self.start = start
        self.end = end
        super().__init__(f"Cannot read {path}[{start}:{end}]: {reason}")


class FrontendUnavailableError(ExpansionError):
    """The libclang shared library could not be loaded."""


class PreprocessError(ExpansionError):
    """The C preprocessor pass over the expanded text failed."""
