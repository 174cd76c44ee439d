"""Shared pytest fixtures for incexpand tests.

Most tests drive the expansion engine with stand-in cursors: plain objects
carrying only the attributes the engine reads from a ``clang.cindex.Cursor``
(``kind``, ``spelling``, ``extent`` and ``location``). The contract tests in
``test_frontend_contract.py`` check that real libclang cursors agree with them.
"""

from types import (
    SimpleNamespace,
)

import pytest
from clang.cindex import (
    CursorKind,
)

from incexpand.frontend import (
    is_libclang_available,
)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "libclang: test needs the libclang shared library")


def require_libclang() -> None:
    """Fail the current test if the libclang shared library cannot be loaded."""
    if not is_libclang_available():
        pytest.fail("libclang not available - use pytest -m 'not libclang' to exclude")


@pytest.fixture(autouse=True)
def _libclang_marker(request: pytest.FixtureRequest) -> None:
    """Tests marked ``libclang`` fail when libclang is missing.

    Exclude them with:
        pytest -m "not libclang"
    """
    if request.node.get_closest_marker("libclang") is not None:
        require_libclang()


def make_cursor(
    kind: CursorKind,
    spelling: str,
    path: str = "",
    start: int = 0,
    end: int = 0,
) -> SimpleNamespace:
    """Build a stand-in cursor. An empty ``path`` means no backing file."""
    file = SimpleNamespace(name=path) if path else None
    return SimpleNamespace(
        kind=kind,
        spelling=spelling,
        extent=SimpleNamespace(
            start=SimpleNamespace(file=file, offset=start),
            end=SimpleNamespace(file=file, offset=end),
        ),
        location=SimpleNamespace(file=file, offset=start),
    )


def macro_cursor(path: str, name: str, occurrence: int = 1) -> SimpleNamespace:
    """Stand-in for the ``occurrence``-th definition of macro ``name`` in ``path``.

    Like libclang, the extent starts at the macro name and ends after the
    last token of the definition.
    """
    with open(path, "rb") as f:
        data = f.read()

    directive = f"#define {name}".encode()
    position = -1
    for _ in range(occurrence):
        position = data.index(directive, position + 1)

    start = position + len(b"#define ")
    end = data.index(b"\n", start)
    return make_cursor(CursorKind.MACRO_DEFINITION, name, path, start, end)


class FakeTranslationUnit:
    """Stand-in translation unit holding its top-level cursors."""

    def __init__(self, spelling: str, cursors: list[SimpleNamespace]) -> None:
        self.spelling = spelling
        self.cursors = cursors
        self.cursor = make_cursor(CursorKind.TRANSLATION_UNIT, spelling, spelling)


class FakeFrontend:
    """Front end returning prepared cursors for each header path.

    :param cursors_by_path: Header path -> cursors, in document order.
    """

    def __init__(self, cursors_by_path: dict[str, list[SimpleNamespace]]) -> None:
        self.cursors_by_path = cursors_by_path
        self.parsed: list[tuple[str, list[str]]] = []

    def parse(self, path: str, extra_args: list[str] | None = None) -> FakeTranslationUnit:
        self.parsed.append((path, list(extra_args or [])))
        return FakeTranslationUnit(path, self.cursors_by_path[path])

    def walk(self, tu: FakeTranslationUnit):
        for cursor in tu.cursors:
            yield cursor, tu.cursor


class RecordingDeclarator:
    """Declarator rendering every cursor as ``decl <spelling>;``.

    :param rendered: Spelling -> text overrides.
    """

    def __init__(self, rendered: dict[str, str] | None = None) -> None:
        self.rendered = rendered or {}
        self.calls: list[tuple[object, object, object]] = []

    def declare(self, tu, cursor, parent) -> str:
        self.calls.append((tu, cursor, parent))
        return self.rendered.get(cursor.spelling, f"decl {cursor.spelling};\n")


@pytest.fixture
def header_file(tmp_path):
    """Factory writing a header into ``tmp_path`` and returning its path."""

    def _write(name: str, text: str) -> str:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(text.encode("utf-8") if isinstance(text, str) else text)
        return str(path)

    return _write


@pytest.fixture
def declarator() -> RecordingDeclarator:
    return RecordingDeclarator()
