"""Header expansion and cursor translation.

This module expands each ``#include`` directive of a D source file into the
declarations of the header it names. Every top-level cursor of the parsed
header is either dropped, translated here, or handed to a declarator.

The only cursors translated here are macro definitions: their text is copied
back verbatim as ``#define`` lines so that a later C preprocessor pass over
the expanded file applies them again. libclang never reports ``#undef``, so
the second definition of a name seen during a run gets a synthesized
``#undef`` in front of it.

Run state
---------
Which macros have been defined and which declarations have been emitted is
tracked by an :class:`ExpansionContext`. One context covers one run: every
include of one outer file shares it, so a header pulled in by several other
headers is only emitted once. Separate runs never share a context.

Example
-------
::

    from incexpand.translation import HeaderExpander

    expander = HeaderExpander(include_dirs=["./include"])
    print(expander.expand_file("app.dpp"))
"""

import enum
import os
import sys
from collections.abc import (
    Iterable,
)
from dataclasses import (
    dataclass,
    field,
)

import clang.cindex
from clang.cindex import (
    CursorKind,
)

from incexpand.converter import (
    is_anonymous_spelling,
)
from incexpand.d_types import (
    D_NATIVE_ALIASES,
)
from incexpand.declarator import (
    DDeclarator,
    Declarator,
)
from incexpand.errors import (
    HeaderNotFoundError,
    MalformedIncludeError,
    SourceRangeReadError,
)
from incexpand.frontend import (
    ClangFrontend,
    SourceRange,
    is_predefined,
    source_range,
)

INCLUDE_PREFIX = "#include "

# Wraps every expanded header
LINKAGE_BEGIN = "extern(C) {\n"
LINKAGE_END = "}\n"

# Needed by declarations of C long/unsigned long
D_PREAMBLE = "import core.stdc.config: c_long, c_ulong;\n"

# Searched, in order, when a header is not found relative to the working directory
SYSTEM_INCLUDE_DIRS: tuple[str, ...] = ("/usr/include",)

# Typedefs of D builtin type names that system headers declare
FORBIDDEN_SPELLINGS: tuple[str, ...] = D_NATIVE_ALIASES

# Identifiers reserved for the implementation
RESERVED_PREFIX = "__"

# Macros starting with this (include guards, compiler macros) are not re-emitted
BUILTIN_MACRO_PREFIX = "_"


def _debug_print(msg: str) -> None:
    """Print debug message to stderr."""
    print(f"[incexpand] {msg}", file=sys.stderr)


# =============================================================================
# Translation results
# =============================================================================


class TranslationState(enum.Enum):
    IGNORE = "ignore"
    DELEGATE = "delegate"
    VALUE = "value"


@dataclass(frozen=True)
class Translation:
    """Outcome of translating one cursor.

    Either ignored, delegated to the declarator, or a translated ``value``.
    """

    value: str = ""
    state: TranslationState = TranslationState.VALUE

    def __post_init__(self) -> None:
        if self.value and self.state != TranslationState.VALUE:
            raise ValueError(f"{self.state.value} translations carry no value")

    @property
    def ignore(self) -> bool:
        return self.state == TranslationState.IGNORE

    @property
    def delegate(self) -> bool:
        return self.state == TranslationState.DELEGATE

    @property
    def valid(self) -> bool:
        return self.state == TranslationState.VALUE


IGNORED = Translation(state=TranslationState.IGNORE)
DELEGATED = Translation(state=TranslationState.DELEGATE)


class CursorAction(enum.Enum):
    """What to do with a cursor."""

    IGNORE = "ignore"
    MACRO = "macro"
    DELEGATE = "delegate"


# =============================================================================
# Run state
# =============================================================================


@dataclass
class ExpansionContext:
    """Deduplication state for one expansion run.

    All maps are insert-only for the lifetime of the context.

    :param defined_macros: Macro names defined so far.
    :param translated: Text of translations produced by this module so far.
    :param emitted: Text rendered by the declarator so far.
    """

    defined_macros: dict[str, bool] = field(default_factory=dict)
    translated: dict[str, bool] = field(default_factory=dict)
    emitted: dict[str, bool] = field(default_factory=dict)

    def mark_defined(self, name: str) -> bool:
        """Record a macro definition.

        :returns: True if ``name`` had already been defined in this run.
        """
        already_defined = name in self.defined_macros
        self.defined_macros[name] = True
        return already_defined

    def should_emit_translation(self, text: str) -> bool:
        """Check a translation of our own; True only the first time ``text`` is seen."""
        return _first_sighting(self.translated, text)

    def should_emit_declaration(self, text: str) -> bool:
        """Check declarator output; True only the first time ``text`` is seen."""
        return _first_sighting(self.emitted, text)


def _first_sighting(seen: dict[str, bool], text: str) -> bool:
    if text in seen:
        return False
    seen[text] = True
    return True


# =============================================================================
# Include directives
# =============================================================================


def _find_any(text: str, chars: str, start: int = 0) -> int:
    """Index of the first character of ``text[start:]`` in ``chars``, or -1."""
    for i in range(start, len(text)):
        if text[i] in chars:
            return i
    return -1


def get_header_name(line: str) -> str:
    """Extract the header reference from an ``#include`` line.

    ``#include "foo.h"`` and ``#include <foo.h>`` both give ``foo.h``.
    Leading whitespace and anything after the closing delimiter are ignored.

    :param line: One line of the outer source.
    :returns: The header reference, or ``""`` if the line is not an include.
    :raises MalformedIncludeError: If a delimiter is missing.
    """
    stripped = line.lstrip()
    if not stripped.startswith(INCLUDE_PREFIX):
        return ""

    opening = _find_any(stripped, '"<')
    if opening == -1:
        raise MalformedIncludeError(line)
    closing = _find_any(stripped, '">', opening + 1)
    if closing == -1:
        raise MalformedIncludeError(line)

    return stripped[opening + 1 : closing]


def resolve_header(
    header_name: str,
    include_dirs: Iterable[str] = (),
    system_include_dirs: Iterable[str] = SYSTEM_INCLUDE_DIRS,
) -> str:
    """Transform a header reference into a file path.

    e.g. ``stdio.h`` into ``/usr/include/stdio.h``. A reference naming a file
    relative to the working directory is returned unchanged; otherwise the
    include directories are searched before the system ones and the first
    existing candidate wins.

    :raises HeaderNotFoundError: If no candidate exists.
    """
    if os.path.isfile(header_name):
        return header_name

    searched = tuple(include_dirs) + tuple(system_include_dirs)
    for directory in searched:
        candidate = os.path.abspath(os.path.join(directory, header_name))
        if os.path.isfile(candidate):
            return candidate

    raise HeaderNotFoundError(header_name, searched)


# =============================================================================
# Cursor classification and macro reconstruction
# =============================================================================


def read_source_range(extent: SourceRange) -> str:
    """Read back the exact text of a source range.

    The bytes are not transcoded: they decode with ``surrogateescape`` so
    that encoding the result the same way gives back the original bytes.

    :raises SourceRangeReadError: If the file cannot be read or is shorter
        than the range.
    """
    length = extent.length
    if length < 0:
        raise SourceRangeReadError(extent.path, extent.start_offset, extent.end_offset, "range ends before it starts")

    try:
        with open(extent.path, "rb") as f:
            f.seek(extent.start_offset)
            data = f.read(length)
    except OSError as e:
        raise SourceRangeReadError(extent.path, extent.start_offset, extent.end_offset, str(e)) from e

    if len(data) != length:
        raise SourceRangeReadError(
            extent.path, extent.start_offset, extent.end_offset, f"only {len(data)} bytes available"
        )

    return data.decode("utf-8", errors="surrogateescape")


def skip_cursor(cursor: "clang.cindex.Cursor") -> bool:
    """Check the rules that drop a cursor whatever its kind."""
    spelling = cursor.spelling

    if spelling in FORBIDDEN_SPELLINGS:
        return True
    if is_predefined(cursor):
        return True
    # Anonymous structs, unions and enums
    if is_anonymous_spelling(spelling):
        return True
    if spelling.startswith(RESERVED_PREFIX):
        return True

    return False


def classify(cursor: "clang.cindex.Cursor") -> CursorAction:
    """Decide whether a cursor is ignored, rebuilt as a macro, or delegated."""
    if skip_cursor(cursor):
        return CursorAction.IGNORE
    if cursor.kind == CursorKind.MACRO_DEFINITION:
        return CursorAction.MACRO
    return CursorAction.DELEGATE


def reconstruct_macro(cursor: "clang.cindex.Cursor", context: ExpansionContext) -> Translation:
    """Copy a macro definition from its header as a ``#define`` line.

    A name defined earlier in the run can only be seen again after an
    ``#undef``, so one is emitted before the new definition.
    """
    extent = source_range(cursor)
    spelling = cursor.spelling

    # Built-in macro
    if not extent.path or not os.path.exists(extent.path) or spelling.startswith(BUILTIN_MACRO_PREFIX):
        return IGNORED

    text = read_source_range(extent)

    maybe_undef = f"#undef {spelling}\n" if context.mark_defined(spelling) else ""
    return Translation(f"{maybe_undef}#define {text}\n")


def translate_ourselves(cursor: "clang.cindex.Cursor", context: ExpansionContext) -> Translation:
    """Translate a cursor without the declarator, if this module knows how.

    Returns :data:`DELEGATED` for every kind it does not handle, and
    :data:`IGNORED` for a translation already produced in this run.
    """
    action = classify(cursor)
    if action == CursorAction.IGNORE:
        return IGNORED
    if action == CursorAction.DELEGATE:
        return DELEGATED

    translation = reconstruct_macro(cursor, context)
    if translation.valid and not context.should_emit_translation(translation.value):
        return IGNORED
    return translation


# =============================================================================
# Driver
# =============================================================================


class HeaderExpander:
    """Expands ``#include`` lines into ``extern(C)`` blocks of declarations.

    :param declarator: Renders delegated cursors. Defaults to :class:`DDeclarator`.
    :param frontend: Parses headers and walks their cursors. Defaults to
        :class:`~incexpand.frontend.ClangFrontend`.
    :param include_dirs: Directories searched for headers before the system
        ones. Also passed to clang as ``-I`` options.
    :param extra_args: Additional clang arguments (``-D``, ``-std=`` ...).
    :param system_include_dirs: Fallback header search directories.
    :param context: Run state. A new one is created if not given.
    :param debug: Print progress to stderr.
    """

    def __init__(
        self,
        declarator: Declarator | None = None,
        frontend: ClangFrontend | None = None,
        include_dirs: Iterable[str] = (),
        extra_args: Iterable[str] = (),
        system_include_dirs: Iterable[str] = SYSTEM_INCLUDE_DIRS,
        context: ExpansionContext | None = None,
        debug: bool = False,
    ) -> None:
        self.declarator = declarator if declarator is not None else DDeclarator()
        self.frontend = frontend if frontend is not None else ClangFrontend()
        self.include_dirs = tuple(include_dirs)
        self.extra_args = list(extra_args)
        self.system_include_dirs = tuple(system_include_dirs)
        self.context = context if context is not None else ExpansionContext()
        self.debug = debug
        # header reference -> path; resolution is pure within a run
        self._resolved: dict[str, str] = {}

    @property
    def clang_args(self) -> list[str]:
        return [f"-I{directory}" for directory in self.include_dirs] + self.extra_args

    def resolve(self, header_name: str) -> str:
        """Resolve a header reference, caching the result."""
        if header_name not in self._resolved:
            self._resolved[header_name] = resolve_header(header_name, self.include_dirs, self.system_include_dirs)
        return self._resolved[header_name]

    def maybe_expand(self, line: str) -> str:
        """Expand ``line`` if it is an ``#include`` directive, otherwise return it unchanged."""
        header_name = get_header_name(line)
        if header_name == "":
            return line
        return self.expand_header(header_name)

    def expand_header(self, header_name: str) -> str:
        """Expand one header into an ``extern(C)`` block."""
        path = self.resolve(header_name)
        if self.debug:
            _debug_print(f"Expanding {header_name} ({path})")

        tu = self.frontend.parse(path, self.clang_args)

        parts = [LINKAGE_BEGIN]
        for cursor, parent in self.frontend.walk(tu):
            parts.append(self.translate(tu, cursor, parent))
        parts.append(LINKAGE_END)

        if self.debug:
            _debug_print(f"Expanded {header_name}: {sum(1 for part in parts[1:-1] if part)} declarations")

        return "".join(parts)

    def translate(
        self,
        tu: "clang.cindex.TranslationUnit",
        cursor: "clang.cindex.Cursor",
        parent: "clang.cindex.Cursor",
    ) -> str:
        """Translate one cursor to text, ``""`` if nothing should be emitted."""
        if skip_cursor(cursor):
            return ""

        translation = translate_ourselves(cursor, self.context)

        if translation.ignore:
            return ""
        if translation.delegate:
            return self._declare(tu, cursor, parent)

        return translation.value

    def _declare(
        self,
        tu: "clang.cindex.TranslationUnit",
        cursor: "clang.cindex.Cursor",
        parent: "clang.cindex.Cursor",
    ) -> str:
        """Translate through the declarator, dropping repeated output."""
        text = self.declarator.declare(tu, cursor, parent)
        if not text or not self.context.should_emit_declaration(text):
            return ""
        return text

    def expand_lines(self, lines: Iterable[str]) -> str:
        """Expand every include of a sequence of lines (with their line endings).

        The result is built completely before it is returned, so an error in
        any header means no output at all.
        """
        parts: list[str] = []
        preamble_written = False
        for line in lines:
            header_name = get_header_name(line)
            if header_name == "":
                parts.append(line)
                continue
            if not preamble_written:
                parts.append(D_PREAMBLE)
                preamble_written = True
            parts.append(self.expand_header(header_name))
        return "".join(parts)

    def expand_text(self, text: str) -> str:
        """Expand every include of a source text."""
        return self.expand_lines(text.splitlines(keepends=True))

    def expand_file(self, path: str) -> str:
        """Expand every include of a source file."""
        if self.debug:
            _debug_print(f"Reading: {path}")
        with open(path, encoding="utf-8", errors="surrogateescape") as f:
            return self.expand_text(f.read())
