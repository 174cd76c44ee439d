"""Convert top-level libclang cursors to IR declarations.

Unlike a whole-header converter, :class:`CursorConverter` looks at one
cursor at a time: the expansion engine decides which cursors reach it and
deduplicates whatever comes out.
"""

import clang.cindex
from clang.cindex import (
    CursorKind,
    StorageClass,
    TypeKind,
)

from incexpand.ir import (
    Array,
    CType,
    Declaration,
    Enum,
    EnumValue,
    Field,
    Function,
    FunctionPointer,
    Parameter,
    Pointer,
    Struct,
    Typedef,
    TypeExpr,
    Variable,
)

_ARRAY_KINDS = (TypeKind.CONSTANTARRAY, TypeKind.INCOMPLETEARRAY, TypeKind.VARIABLEARRAY)


def is_anonymous_spelling(spelling: str) -> bool:
    """Check for the spellings libclang gives unnamed structs, unions and enums.

    Older libclang reports an empty spelling; newer releases synthesize one
    such as ``struct (unnamed at foo.h:3:9)`` or ``(anonymous union at ...)``.
    """
    return not spelling or "(unnamed" in spelling or "(anonymous" in spelling


class CursorConverter:
    """Converts a single libclang cursor to an IR declaration.

    Handles C constructs: structs, unions, enums, typedefs, functions and
    global variables. Every other cursor kind converts to None.

    Example
    -------
    ::

        converter = CursorConverter()
        for cursor in tu.cursor.get_children():
            decl = converter.convert(cursor)
    """

    def convert(self, cursor: "clang.cindex.Cursor") -> Declaration | None:
        """Convert a top-level cursor, or return None if it has no IR form."""
        kind = cursor.kind

        if kind == CursorKind.STRUCT_DECL:
            return self._convert_struct(cursor, is_union=False)
        if kind == CursorKind.UNION_DECL:
            return self._convert_struct(cursor, is_union=True)
        if kind == CursorKind.ENUM_DECL:
            return self._convert_enum(cursor)
        if kind == CursorKind.FUNCTION_DECL:
            return self._convert_function(cursor)
        if kind == CursorKind.TYPEDEF_DECL:
            return self._convert_typedef(cursor)
        if kind == CursorKind.VAR_DECL:
            return self._convert_variable(cursor)
        return None

    def _convert_struct(
        self, cursor: "clang.cindex.Cursor", is_union: bool, name: str | None = None
    ) -> Struct | None:
        """Convert a struct/union declaration.

        Forward declarations are skipped when the record is defined in the
        same translation unit, so only the definition is emitted.

        :param name: Name to use instead of the cursor's own, for anonymous
            records named by a typedef.
        """
        is_definition = cursor.is_definition()
        if not is_definition and cursor.get_definition() is not None:
            return None

        fields: list[Field] = []
        if is_definition:
            for child in cursor.get_children():
                if child.kind == CursorKind.FIELD_DECL:
                    field = self._convert_field(child)
                    if field:
                        fields.append(field)

        return Struct(
            name=name or cursor.spelling,
            fields=fields,
            is_union=is_union,
            is_definition=is_definition,
        )

    def _convert_enum(self, cursor: "clang.cindex.Cursor", name: str | None = None) -> Enum | None:
        """Convert an enum definition. Forward declarations are skipped."""
        if not cursor.is_definition():
            return None

        values: list[EnumValue] = []
        for child in cursor.get_children():
            if child.kind == CursorKind.ENUM_CONSTANT_DECL:
                values.append(EnumValue(name=child.spelling, value=child.enum_value))

        return Enum(name=name or cursor.spelling, values=values)

    def _convert_function(self, cursor: "clang.cindex.Cursor") -> Function | None:
        """Convert a function declaration."""
        # Internal linkage: nothing to bind against
        if cursor.storage_class == StorageClass.STATIC:
            return None

        return_type = self._convert_type(cursor.result_type)
        if not return_type:
            return None

        parameters: list[Parameter] = []
        for arg in cursor.get_arguments():
            param_type = self._convert_type(arg.type)
            if param_type is None:
                return None
            parameters.append(Parameter(name=arg.spelling or None, type=param_type))

        is_variadic = cursor.type.kind == TypeKind.FUNCTIONPROTO and cursor.type.is_function_variadic()

        return Function(
            name=cursor.spelling,
            return_type=return_type,
            parameters=parameters,
            is_variadic=is_variadic,
        )

    def _convert_typedef(self, cursor: "clang.cindex.Cursor") -> Declaration | None:
        """Convert a typedef declaration.

        ``typedef struct { ... } name;`` and ``typedef enum { ... } name;``
        become a struct/enum called ``name``, since the anonymous record
        itself is never emitted.
        """
        name = cursor.spelling
        underlying = cursor.underlying_typedef_type

        # Compiler builtin types cannot be spelled in D
        if underlying.spelling.startswith("__builtin_"):
            return None

        named = underlying.get_named_type() if underlying.kind == TypeKind.ELABORATED else underlying
        if named.kind in (TypeKind.RECORD, TypeKind.ENUM):
            decl = named.get_declaration()
            if is_anonymous_spelling(decl.spelling) and decl.is_definition():
                if decl.kind == CursorKind.ENUM_DECL:
                    return self._convert_enum(decl, name=name)
                return self._convert_struct(decl, is_union=decl.kind == CursorKind.UNION_DECL, name=name)

        underlying_type = self._convert_type(underlying)
        if not underlying_type:
            return None

        return Typedef(name=name, underlying_type=underlying_type)

    def _convert_variable(self, cursor: "clang.cindex.Cursor") -> Variable | None:
        """Convert a global variable declaration."""
        if cursor.storage_class == StorageClass.STATIC:
            return None

        var_type = self._convert_type(cursor.type)
        if not var_type:
            return None

        return Variable(name=cursor.spelling, type=var_type)

    def _convert_field(self, cursor: "clang.cindex.Cursor") -> Field | None:
        """Convert a field cursor to IR Field."""
        name = cursor.spelling
        if not name:
            return None

        field_type = self._convert_type(cursor.type)
        if not field_type:
            return None

        return Field(name=name, type=field_type)

    # pylint: disable=too-many-return-statements
    def _convert_type(self, clang_type: "clang.cindex.Type") -> TypeExpr | None:
        """Convert a libclang Type to our IR type expression."""
        kind = clang_type.kind

        qualifiers: list[str] = []
        if clang_type.is_const_qualified():
            qualifiers.append("const")
        if clang_type.is_volatile_qualified():
            qualifiers.append("volatile")

        if kind == TypeKind.POINTER:
            pointee = clang_type.get_pointee()
            if pointee.kind in (TypeKind.FUNCTIONPROTO, TypeKind.FUNCTIONNOPROTO):
                func_type = self._convert_function_type(pointee)
                if func_type:
                    return Pointer(pointee=func_type, qualifiers=qualifiers)
                return None

            pointee_type = self._convert_type(pointee)
            if pointee_type:
                return Pointer(pointee=pointee_type, qualifiers=qualifiers)
            return None

        if kind in _ARRAY_KINDS:
            element_type = self._convert_type(clang_type.element_type)
            if not element_type:
                return None
            # Only constant arrays have a known size
            size = clang_type.element_count if kind == TypeKind.CONSTANTARRAY else None
            return Array(element_type=element_type, size=size)

        if kind in (TypeKind.FUNCTIONPROTO, TypeKind.FUNCTIONNOPROTO):
            return self._convert_function_type(clang_type)

        if kind == TypeKind.ELABORATED:
            named = self._convert_type(clang_type.get_named_type())
            if isinstance(named, CType) and qualifiers:
                named.qualifiers = qualifiers
            return named

        if kind == TypeKind.RECORD:
            decl = clang_type.get_declaration()
            tag = "union" if decl.kind == CursorKind.UNION_DECL else "struct"
            name = decl.spelling if not is_anonymous_spelling(decl.spelling) else "(unnamed)"
            return CType(name=f"{tag} {name}", qualifiers=qualifiers)

        if kind == TypeKind.ENUM:
            decl = clang_type.get_declaration()
            name = decl.spelling if not is_anonymous_spelling(decl.spelling) else "(unnamed)"
            return CType(name=f"enum {name}", qualifiers=qualifiers)

        if kind == TypeKind.TYPEDEF:
            decl = clang_type.get_declaration()
            return CType(name=decl.spelling, qualifiers=qualifiers)

        # Builtin types: strip the qualifiers from the spelling
        base_type = clang_type.spelling
        for qual in qualifiers:
            base_type = base_type.replace(qual, "").strip()

        return CType(name=base_type, qualifiers=qualifiers)

    def _convert_function_type(self, clang_type: "clang.cindex.Type") -> FunctionPointer | None:
        """Convert a function type to FunctionPointer."""
        result_type = self._convert_type(clang_type.get_result())
        if not result_type:
            return None

        parameters: list[Parameter] = []
        is_variadic = False
        if clang_type.kind == TypeKind.FUNCTIONPROTO:
            is_variadic = clang_type.is_function_variadic()
            for arg_type in clang_type.argument_types():
                param_type = self._convert_type(arg_type)
                if param_type is None:
                    return None
                parameters.append(Parameter(name=None, type=param_type))

        return FunctionPointer(
            return_type=result_type,
            parameters=parameters,
            is_variadic=is_variadic,
        )
