"""libclang front end.

Wraps :mod:`clang.cindex` with the handful of operations the expansion
engine needs: parsing a header into a translation unit, walking its
top-level cursors in document order, and reading cursor extents as plain
:class:`SourceRange` values.

Requirements
------------
* System libclang library must be loadable (the ``libclang`` wheel bundles
  one; otherwise LLVM must be installed)

Example
-------
::

    from incexpand.frontend import ClangFrontend

    frontend = ClangFrontend()
    tu = frontend.parse("/usr/include/zlib.h", extra_args=["-DZ_SOLO"])
    for cursor, parent in frontend.walk(tu):
        print(cursor.kind, cursor.spelling)
"""

import glob
import os
import subprocess
import sys
from collections.abc import (
    Iterator,
)
from dataclasses import (
    dataclass,
)

import clang.cindex

from incexpand.errors import (
    FrontendUnavailableError,
    ParseError,
)

# Typedefs clang injects into every translation unit
BUILTIN_TYPEDEF_NAMES = frozenset(
    {
        "__int128_t",
        "__uint128_t",
        "__NSConstantString",
        "__builtin_ms_va_list",
        "__builtin_va_list",
        "__va_list_tag",
    }
)

# Pseudo file names clang reports for predefines and -D options
_PSEUDO_FILES = ("<built-in>", "<command line>", "<scratch space>")


@dataclass(frozen=True)
class SourceRange:
    """Byte range of a cursor in its originating file.

    :param path: File the range points into, or ``""`` when the cursor has
        no backing file (built-ins and predefined macros).
    :param start_offset: Absolute byte offset of the first byte.
    :param end_offset: Absolute byte offset one past the last byte.
    """

    path: str
    start_offset: int
    end_offset: int

    @property
    def length(self) -> int:
        """Number of bytes in the range; negative if it ends before it starts."""
        return self.end_offset - self.start_offset


def source_range(cursor: "clang.cindex.Cursor") -> SourceRange:
    """Get the extent of a cursor as a :class:`SourceRange`."""
    extent = cursor.extent
    start_file = extent.start.file
    path = start_file.name if start_file is not None else ""
    if path in _PSEUDO_FILES:
        path = ""
    return SourceRange(path=path, start_offset=extent.start.offset, end_offset=extent.end.offset)


def is_predefined(cursor: "clang.cindex.Cursor") -> bool:
    """Check if a cursor comes from clang's built-ins rather than user source."""
    if cursor.spelling in BUILTIN_TYPEDEF_NAMES:
        return True
    location_file = cursor.location.file
    return location_file is None or location_file.name in _PSEUDO_FILES


def _get_libclang_search_paths() -> list[str]:
    """Get platform-specific paths to search for libclang.

    Returns a list of candidate paths where libclang might be installed,
    ordered by preference (most common/preferred locations first).
    """
    paths: list[str] = []

    if sys.platform == "darwin":
        # Homebrew on Apple Silicon, then Intel
        paths.append("/opt/homebrew/opt/llvm/lib/libclang.dylib")
        paths.extend(sorted(glob.glob("/opt/homebrew/Cellar/llvm/*/lib/libclang.dylib"), reverse=True))
        paths.append("/usr/local/opt/llvm/lib/libclang.dylib")
        paths.extend(sorted(glob.glob("/usr/local/Cellar/llvm/*/lib/libclang.dylib"), reverse=True))
        paths.append("/Library/Developer/CommandLineTools/usr/lib/libclang.dylib")

    elif sys.platform == "linux":
        # Debian/Ubuntu versioned LLVM packages (sorted newest first)
        paths.extend(sorted(glob.glob("/usr/lib/llvm-*/lib/libclang.so*"), reverse=True))
        paths.append("/usr/lib64/libclang.so")
        paths.append("/usr/lib/libclang.so")
        paths.append("/usr/local/lib/libclang.so")

    elif sys.platform == "win32":
        paths.append(r"C:\Program Files\LLVM\bin\libclang.dll")

    return paths


# Module-level flag to track if we've already attempted configuration
_libclang_configured: bool = False


def _configure_libclang() -> bool:
    """Configure clang.cindex to find libclang library.

    Attempts default loading first (respects LD_LIBRARY_PATH and the library
    bundled with the ``libclang`` wheel), then searches common locations.

    :returns: True if libclang is available and configured, False otherwise.
    """
    global _libclang_configured  # pylint: disable=global-statement

    if _libclang_configured:
        try:
            clang.cindex.Config().get_cindex_library()
            return True
        except clang.cindex.LibclangError:
            return False

    _libclang_configured = True

    try:
        clang.cindex.Config().get_cindex_library()
        return True
    except clang.cindex.LibclangError:
        pass

    for path in _get_libclang_search_paths():
        if os.path.isfile(path):
            clang.cindex.Config.set_library_file(path)
            try:
                clang.cindex.Config().get_cindex_library()
                return True
            except clang.cindex.LibclangError:
                return False

    return False


def is_libclang_available() -> bool:
    """Check if the libclang shared library can be loaded."""
    return _configure_libclang()


# Cache for system include directories (computed once per process)
_system_include_cache: dict[bool, list[str]] = {}


def get_system_include_dirs(cplus: bool = False) -> list[str]:
    """Get system include directories by querying the system clang compiler.

    This runs ``clang -v -x c -E /dev/null`` (or ``-x c++`` for C++) and
    parses the include paths from its output. The result is cached for
    subsequent calls.

    :param cplus: If True, query for C++ includes.
    :returns: List of ``-isystem<path>`` arguments. Empty if clang is not
        installed or detection fails.
    """
    if cplus in _system_include_cache:
        return _system_include_cache[cplus]

    result_cache: list[str] = []

    try:
        null_file = "NUL" if sys.platform == "win32" else "/dev/null"
        lang = "c++" if cplus else "c"
        result = subprocess.run(
            ["clang", "-v", "-x", lang, "-E", null_file],
            capture_output=True,
            text=True,
            timeout=10,
        )
        in_includes = False
        for line in result.stderr.splitlines():
            if "#include <...> search starts here:" in line:
                in_includes = True
                continue
            if in_includes:
                if line.startswith("End of search list"):
                    break
                path = line.strip()
                if path and not path.endswith("(framework directory)"):
                    result_cache.append(f"-isystem{path}")
    except (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired):
        pass

    _system_include_cache[cplus] = result_cache
    return result_cache


def _inclusion_points(tu: "clang.cindex.TranslationUnit") -> dict[str, tuple[str, int]]:
    """Map each included file to the file and offset of its first ``#include``."""
    points: dict[str, tuple[str, int]] = {}
    for inclusion in tu.get_includes():
        included = inclusion.include.name
        if included not in points:
            points[included] = (inclusion.source.name, inclusion.location.offset)
    return points


def _document_position(
    cursor: "clang.cindex.Cursor",
    main_file: str,
    inclusion_points: dict[str, tuple[str, int]],
) -> tuple[int, ...]:
    """Sort key placing a cursor where it appears in the preprocessed text.

    A cursor at offset ``o`` of a header that the main file includes at
    offset ``i`` gets the key ``(i, o)``, so it sorts after everything before
    the ``#include`` line and before everything after it.
    """
    start = cursor.extent.start
    if start.file is None:
        return (-1,)

    key: tuple[int, ...] = (start.offset,)
    name = start.file.name
    visited: set[str] = set()
    while name != main_file and name in inclusion_points and name not in visited:
        visited.add(name)
        name, offset = inclusion_points[name]
        key = (offset,) + key
    return key


class ClangFrontend:
    """Parses headers with libclang and walks the result.

    :param use_default_includes: If True (default), add the include
        directories reported by the system clang compiler to every parse.

    Example
    -------
    ::

        frontend = ClangFrontend()
        tu = frontend.parse("foo.h", extra_args=["-I./include"])
    """

    def __init__(self, use_default_includes: bool = True) -> None:
        self.use_default_includes = use_default_includes
        self._index: clang.cindex.Index | None = None

    def _get_index(self) -> "clang.cindex.Index":
        """Get or create the clang index."""
        if self._index is None:
            if not is_libclang_available():
                raise FrontendUnavailableError(
                    "libclang is not available.\n"
                    "Install with: pip install libclang (or install LLVM/Clang, e.g. apt install libclang-dev)"
                )
            self._index = clang.cindex.Index.create()
        return self._index

    def parse(self, path: str, extra_args: list[str] | None = None) -> "clang.cindex.TranslationUnit":
        """Parse a header file with a detailed preprocessing record.

        The preprocessing record is what makes macro definitions show up as
        cursors.

        :param path: Header to parse.
        :param extra_args: Additional compiler arguments (``-I``, ``-D``, ``-std=`` ...).
        :returns: The parsed translation unit.
        :raises ParseError: If libclang fails to load the file or reports an error.
        """
        args: list[str] = list(extra_args or [])
        is_cplus = any(arg == "c++" or arg.startswith("-std=c++") for arg in args)
        if self.use_default_includes:
            args.extend(get_system_include_dirs(cplus=is_cplus))

        index = self._get_index()
        try:
            tu = index.parse(
                path,
                args=args,
                options=clang.cindex.TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD,
            )
        except clang.cindex.TranslationUnitLoadError as e:
            raise ParseError(path, str(e) or "translation unit could not be loaded") from e

        for diag in tu.diagnostics:
            if diag.severity >= clang.cindex.Diagnostic.Error:
                raise ParseError(path, diag.spelling)

        return tu

    def walk(
        self, tu: "clang.cindex.TranslationUnit"
    ) -> Iterator[tuple["clang.cindex.Cursor", "clang.cindex.Cursor"]]:
        """Yield ``(cursor, parent)`` for every top-level cursor in document order.

        libclang reports preprocessing cursors (macro definitions, inclusion
        directives) separately from declarations, so the children are sorted
        by their position in the preprocessed text. Built-ins come first.
        """
        root = tu.cursor
        inclusion_points = _inclusion_points(tu)
        children = sorted(
            root.get_children(),
            key=lambda child: _document_position(child, tu.spelling, inclusion_points),
        )
        for child in children:
            yield child, root
