"""Tests for copying macro definitions back out of their headers."""

import pytest
from clang.cindex import (
    CursorKind,
)
from conftest import (
    macro_cursor,
    make_cursor,
)

from incexpand.errors import (
    SourceRangeReadError,
)
from incexpand.frontend import (
    SourceRange,
)
from incexpand.translation import (
    IGNORED,
    ExpansionContext,
    Translation,
    TranslationState,
    read_source_range,
    reconstruct_macro,
    translate_ourselves,
)


class TestReadSourceRange:
    """Tests for read_source_range()."""

    def test_exact_bytes(self, header_file) -> None:
        path = header_file("a.h", "#define FOO 1\nint x;\n")
        assert read_source_range(SourceRange(path, 8, 13)) == "FOO 1"

    def test_empty_range(self, header_file) -> None:
        path = header_file("a.h", "int x;\n")
        assert read_source_range(SourceRange(path, 3, 3)) == ""

    def test_non_utf8_bytes_survive(self, header_file) -> None:
        """Bytes that are not valid UTF-8 come back unchanged when re-encoded."""
        raw = b"#define NAME \"caf\xe9\"\n"
        path = header_file("latin1.h", raw)
        text = read_source_range(SourceRange(path, 8, len(raw) - 1))
        assert text.encode("utf-8", errors="surrogateescape") == raw[8:-1]

    def test_range_past_end_of_file(self, header_file) -> None:
        path = header_file("a.h", "#define FOO 1\n")
        with pytest.raises(SourceRangeReadError) as exc_info:
            read_source_range(SourceRange(path, 8, 100))
        assert exc_info.value.path == path
        assert (exc_info.value.start, exc_info.value.end) == (8, 100)

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(SourceRangeReadError):
            read_source_range(SourceRange(str(tmp_path / "gone.h"), 0, 1))

    def test_inverted_range(self, header_file) -> None:
        path = header_file("a.h", "#define FOO 1\n")
        extent = SourceRange(path, 5, 2)
        assert extent.length == -3
        with pytest.raises(SourceRangeReadError) as exc_info:
            read_source_range(extent)
        assert (exc_info.value.start, exc_info.value.end) == (5, 2)
        assert "ends before it starts" in str(exc_info.value)


class TestReconstructMacro:
    """Tests for reconstruct_macro()."""

    def test_simple_definition(self, header_file) -> None:
        path = header_file("a.h", "#define FOO 1\n")
        translation = reconstruct_macro(macro_cursor(path, "FOO"), ExpansionContext())
        assert translation == Translation("#define FOO 1\n")

    def test_body_is_byte_exact(self, header_file) -> None:
        """Whitespace, comments and function-like parameters are kept as written."""
        source = "#define MAX(a,  b)   ((a) > (b) ? (a) : (b)) /* max */\n"
        path = header_file("a.h", source)
        translation = reconstruct_macro(macro_cursor(path, "MAX"), ExpansionContext())
        assert translation.value == "#define MAX(a,  b)   ((a) > (b) ? (a) : (b)) /* max */\n"

    def test_second_definition_gets_undef(self, header_file) -> None:
        path = header_file("a.h", "#define FOO 1\n#undef FOO\n#define FOO 2\n")
        context = ExpansionContext()

        first = reconstruct_macro(macro_cursor(path, "FOO", 1), context)
        second = reconstruct_macro(macro_cursor(path, "FOO", 2), context)

        assert first.value == "#define FOO 1\n"
        assert second.value == "#undef FOO\n#define FOO 2\n"

    def test_single_definition_has_no_undef(self, header_file) -> None:
        path = header_file("a.h", "#define FOO 1\n#define BAR 2\n")
        context = ExpansionContext()
        reconstruct_macro(macro_cursor(path, "FOO"), context)
        translation = reconstruct_macro(macro_cursor(path, "BAR"), context)
        assert "#undef" not in translation.value

    def test_records_name(self, header_file) -> None:
        path = header_file("a.h", "#define FOO 1\n")
        context = ExpansionContext()
        reconstruct_macro(macro_cursor(path, "FOO"), context)
        assert context.defined_macros == {"FOO": True}

    def test_underscore_prefix_is_builtin(self, header_file) -> None:
        path = header_file("a.h", "#ifndef _A_H\n#define _A_H\n#endif\n")
        context = ExpansionContext()
        assert reconstruct_macro(macro_cursor(path, "_A_H"), context) is IGNORED
        assert context.defined_macros == {}

    def test_no_backing_file(self) -> None:
        cursor = make_cursor(CursorKind.MACRO_DEFINITION, "FOO")
        assert reconstruct_macro(cursor, ExpansionContext()).ignore

    def test_backing_file_deleted(self, header_file, tmp_path) -> None:
        path = header_file("a.h", "#define FOO 1\n")
        cursor = macro_cursor(path, "FOO")
        (tmp_path / "a.h").unlink()
        assert reconstruct_macro(cursor, ExpansionContext()).ignore

    def test_truncated_file_raises(self, header_file, tmp_path) -> None:
        path = header_file("a.h", "#define FOO 12345\n")
        cursor = macro_cursor(path, "FOO")
        (tmp_path / "a.h").write_text("#define")
        with pytest.raises(SourceRangeReadError):
            reconstruct_macro(cursor, ExpansionContext())


class TestTranslateOurselves:
    """Tests for translate_ourselves()."""

    def test_macro(self, header_file) -> None:
        path = header_file("a.h", "#define FOO 1\n")
        translation = translate_ourselves(macro_cursor(path, "FOO"), ExpansionContext())
        assert translation.valid
        assert translation.value == "#define FOO 1\n"

    def test_declarations_are_delegated(self) -> None:
        cursor = make_cursor(CursorKind.FUNCTION_DECL, "puts", "/tmp/a.h")
        assert translate_ourselves(cursor, ExpansionContext()).delegate

    def test_skipped(self) -> None:
        cursor = make_cursor(CursorKind.TYPEDEF_DECL, "ulong", "/tmp/a.h")
        assert translate_ourselves(cursor, ExpansionContext()).ignore

    def test_repeated_translation_is_ignored(self, header_file, monkeypatch) -> None:
        """Identical translated text is only produced once per run."""
        path = header_file("a.h", "#define FOO 1\n")
        cursor = macro_cursor(path, "FOO")
        context = ExpansionContext()
        assert translate_ourselves(cursor, context).valid

        # Force the same text a second time
        monkeypatch.setattr(context, "mark_defined", lambda name: False)
        assert translate_ourselves(cursor, context).ignore


class TestTranslation:
    """Tests for the Translation result type."""

    def test_states(self) -> None:
        assert Translation("x").valid
        assert Translation(state=TranslationState.IGNORE).ignore
        assert Translation(state=TranslationState.DELEGATE).delegate

    def test_only_values_carry_text(self) -> None:
        with pytest.raises(ValueError):
            Translation("x", TranslationState.DELEGATE)
