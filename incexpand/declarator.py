"""Declaration translators.

A declarator renders one cursor as a declaration in the target language.
The expansion engine hands every cursor it does not handle itself to a
declarator and only gates the result for duplicates, so any object with a
matching ``declare`` method can be plugged in.
"""

from typing import (
    Protocol,
)

import clang.cindex

from incexpand.converter import (
    CursorConverter,
)
from incexpand.d_writer import (
    DWriter,
)


class Declarator(Protocol):  # pylint: disable=too-few-public-methods
    """Protocol for declaration translators."""

    # pylint: disable=unnecessary-ellipsis

    def declare(
        self,
        tu: "clang.cindex.TranslationUnit",
        cursor: "clang.cindex.Cursor",
        parent: "clang.cindex.Cursor",
    ) -> str:
        """Render ``cursor`` as a declaration.

        :param tu: Translation unit that owns the cursor.
        :param cursor: Top-level cursor to render.
        :param parent: The cursor's parent, as supplied by the traversal.
        :returns: Rendered text, or ``""`` if the cursor has no rendering.
        """
        ...


class DDeclarator:
    """Renders C declarations as D, through the IR.

    Example
    -------
    ::

        declarator = DDeclarator()
        text = declarator.declare(tu, cursor, tu.cursor)
    """

    def __init__(self) -> None:
        self._converter = CursorConverter()
        self._writer = DWriter()

    def declare(
        self,
        tu: "clang.cindex.TranslationUnit",
        cursor: "clang.cindex.Cursor",
        parent: "clang.cindex.Cursor",
    ) -> str:
        decl = self._converter.convert(cursor)
        if decl is None:
            return ""
        return self._writer.write(decl)
