"""Tests for per-run deduplication state."""

from clang.cindex import (
    CursorKind,
)
from conftest import (
    FakeFrontend,
    RecordingDeclarator,
    make_cursor,
)

from incexpand.translation import (
    ExpansionContext,
    HeaderExpander,
)


class TestExpansionContext:
    """Tests for ExpansionContext."""

    def test_first_sighting_only(self) -> None:
        context = ExpansionContext()
        assert context.should_emit_declaration("int x;\n") is True
        assert context.should_emit_declaration("int x;\n") is False
        assert context.should_emit_declaration("int y;\n") is True

    def test_maps_are_independent(self) -> None:
        """A declaration and a translation with the same text are tracked separately."""
        context = ExpansionContext()
        assert context.should_emit_translation("same\n")
        assert context.should_emit_declaration("same\n")
        assert context.translated == {"same\n": True}
        assert context.emitted == {"same\n": True}

    def test_mark_defined(self) -> None:
        context = ExpansionContext()
        assert context.mark_defined("FOO") is False
        assert context.mark_defined("FOO") is True
        assert context.mark_defined("BAR") is False
        assert list(context.defined_macros) == ["FOO", "BAR"]

    def test_contexts_share_nothing(self) -> None:
        first = ExpansionContext()
        second = ExpansionContext()
        first.should_emit_declaration("int x;\n")
        first.mark_defined("FOO")
        assert second.should_emit_declaration("int x;\n")
        assert second.mark_defined("FOO") is False


class TestDeclarationDedup:
    """Declarator output repeated within one run."""

    def test_identical_text_emitted_once(self, header_file) -> None:
        """Two distinct cursors rendering the same text only append once."""
        header = header_file("a.h", "")
        cursors = [
            make_cursor(CursorKind.FUNCTION_DECL, "first", header, 0, 10),
            make_cursor(CursorKind.FUNCTION_DECL, "second", header, 20, 30),
        ]
        declarator = RecordingDeclarator({"first": "int f();\n", "second": "int f();\n"})
        expander = HeaderExpander(declarator=declarator, frontend=FakeFrontend({header: cursors}))

        assert expander.expand_header(header) == "extern(C) {\nint f();\n}\n"
        # Both cursors still reached the declarator
        assert [call[1].spelling for call in declarator.calls] == ["first", "second"]

    def test_empty_rendering_is_not_recorded(self, header_file) -> None:
        header = header_file("a.h", "")
        cursors = [make_cursor(CursorKind.INCLUSION_DIRECTIVE, "stdio.h", header)]
        context = ExpansionContext()
        expander = HeaderExpander(
            declarator=RecordingDeclarator({"stdio.h": ""}),
            frontend=FakeFrontend({header: cursors}),
            context=context,
        )

        assert expander.expand_header(header) == "extern(C) {\n}\n"
        assert context.emitted == {}

    def test_shared_context_across_expanders(self, header_file) -> None:
        header = header_file("a.h", "")
        cursors = [make_cursor(CursorKind.VAR_DECL, "errno_", header)]
        context = ExpansionContext()
        frontend = FakeFrontend({header: cursors})

        first = HeaderExpander(declarator=RecordingDeclarator(), frontend=frontend, context=context)
        second = HeaderExpander(declarator=RecordingDeclarator(), frontend=frontend, context=context)

        assert "decl errno_;" in first.expand_header(header)
        assert "decl errno_;" not in second.expand_header(header)
