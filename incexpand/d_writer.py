"""IR to D declaration writer.

This module renders the incexpand IR as D declarations suitable for an
``extern(C)`` block.

Features
--------
* Keyword escaping - D keywords get a ``_`` suffix
* Builtin type mapping - C ``long`` becomes ``c_long`` and so on (see
  :mod:`incexpand.d_types`)
* C enum access - enum members are also aliased at module scope so C-style
  unqualified references keep working

Example
-------
::

    from incexpand.d_writer import write_declaration
    from incexpand.ir import CType, Function, Parameter

    text = write_declaration(Function("abs", CType("int"), [Parameter("x", CType("int"))]))
    # "int abs(int x);\\n"
"""

from incexpand.d_types import (
    escape_identifier,
    to_d_type_name,
)
from incexpand.ir import (
    Array,
    CType,
    Declaration,
    Enum,
    Function,
    FunctionPointer,
    Parameter,
    Pointer,
    Struct,
    Typedef,
    TypeExpr,
    Variable,
)


class DWriter:
    """Writes IR declarations as D source.

    Attributes
    ----------
    INDENT : str
        Indentation string (4 spaces).
    """

    INDENT = "    "

    def write(self, decl: Declaration) -> str:
        """Render one declaration, newline-terminated, or ``""`` if it has no D form."""
        lines = self._write_declaration(decl)
        return "".join(f"{line}\n" for line in lines)

    def _write_declaration(self, decl: Declaration) -> list[str]:
        """Write a single declaration."""
        if isinstance(decl, Struct):
            return self._write_struct(decl)
        if isinstance(decl, Enum):
            return self._write_enum(decl)
        if isinstance(decl, Function):
            return self._write_function(decl)
        if isinstance(decl, Typedef):
            return self._write_typedef(decl)
        if isinstance(decl, Variable):
            return self._write_variable(decl)
        return []

    def _write_struct(self, struct: Struct) -> list[str]:
        """Write a struct or union declaration."""
        kind = "union" if struct.is_union else "struct"
        name = escape_identifier(struct.name)

        # Opaque type
        if not struct.is_definition:
            return [f"{kind} {name};"]

        lines = [f"{kind} {name}", "{"]
        for field in struct.fields:
            # Nested anonymous aggregates have no name to refer to
            if self._is_unnamed_type(field.type):
                continue
            field_name = escape_identifier(field.name)
            lines.append(f"{self.INDENT}{self._format_declarator(field.type, field_name)};")
        lines.append("}")
        return lines

    def _write_enum(self, enum: Enum) -> list[str]:
        """Write an enum declaration followed by module-scope member aliases."""
        name = escape_identifier(enum.name)
        lines = [f"enum {name}", "{"]
        for val in enum.values:
            val_name = escape_identifier(val.name)
            if val.value is not None:
                lines.append(f"{self.INDENT}{val_name} = {val.value},")
            else:
                lines.append(f"{self.INDENT}{val_name},")
        lines.append("}")

        for val in enum.values:
            val_name = escape_identifier(val.name)
            lines.append(f"enum {val_name} = {name}.{val_name};")
        return lines

    def _write_function(self, func: Function) -> list[str]:
        """Write a function declaration."""
        return_type = self._format_type(func.return_type)
        name = escape_identifier(func.name)
        params = self._format_params(func.parameters, func.is_variadic)
        return [f"{return_type} {name}({params});"]

    def _write_typedef(self, typedef: Typedef) -> list[str]:
        """Write a typedef as a D alias."""
        name = escape_identifier(typedef.name)
        underlying = self._format_type(typedef.underlying_type)

        # typedef struct foo foo; - D already knows foo by its bare name
        if underlying == name:
            return []

        return [f"alias {name} = {underlying};"]

    def _write_variable(self, var: Variable) -> list[str]:
        """Write a global variable declaration."""
        name = escape_identifier(var.name)
        return [f"extern __gshared {self._format_declarator(var.type, name)};"]

    def _format_declarator(self, type_expr: TypeExpr, name: str) -> str:
        """Format ``type name`` for fields and variables."""
        # Flexible array members become zero-length static arrays
        if isinstance(type_expr, Array) and type_expr.size is None:
            return f"{self._format_type(type_expr.element_type)}[0] {name}"
        return f"{self._format_type(type_expr)} {name}"

    def _format_type(self, type_expr: TypeExpr) -> str:
        """Format a type expression as D string."""
        if isinstance(type_expr, CType):
            return self._format_ctype(type_expr)
        if isinstance(type_expr, Pointer):
            return self._format_pointer(type_expr)
        if isinstance(type_expr, Array):
            return self._format_array(type_expr)
        if isinstance(type_expr, FunctionPointer):
            return self._format_function_type(type_expr)
        return "void"

    def _format_ctype(self, ctype: CType) -> str:
        """Format a CType. ``volatile`` has no D equivalent and is dropped."""
        name = to_d_type_name(ctype.name)
        if "const" in ctype.qualifiers:
            return f"const({name})"
        return name

    def _format_pointer(self, ptr: Pointer) -> str:
        """Format a Pointer type.

        A pointer to a function type is a D function pointer:
        ``void (*)(int)`` becomes ``void function(int)``.
        """
        if isinstance(ptr.pointee, FunctionPointer):
            return self._format_function_type(ptr.pointee)

        result = f"{self._format_type(ptr.pointee)}*"
        if "const" in ptr.qualifiers:
            result = f"const({result})"
        return result

    def _format_array(self, arr: Array) -> str:
        """Format an Array type.

        D reads static array dimensions right to left, so C ``int a[2][3]``
        (``Array(Array(int, 3), 2)``) becomes ``int[3][2]``.
        """
        element = self._format_type(arr.element_type)
        if arr.size is None:
            return f"{element}*"
        return f"{element}[{arr.size}]"

    def _format_function_type(self, fp: FunctionPointer) -> str:
        """Format a function type as a D function pointer type."""
        return_type = self._format_type(fp.return_type)
        params = self._format_params(fp.parameters, fp.is_variadic)
        return f"{return_type} function({params})"

    def _format_params(self, params: list[Parameter], is_variadic: bool) -> str:
        """Format function parameters."""
        parts = []
        for param in params:
            # Array parameters decay to pointers in C
            param_type = param.type
            if isinstance(param_type, Array):
                param_type = Pointer(pointee=param_type.element_type)
            formatted = self._format_type(param_type)
            if param.name:
                formatted = f"{formatted} {escape_identifier(param.name)}"
            parts.append(formatted)

        if is_variadic:
            parts.append("...")

        return ", ".join(parts)

    def _is_unnamed_type(self, typ: TypeExpr) -> bool:
        """Check if a type refers to an anonymous struct, union or enum."""
        return isinstance(typ, CType) and "(unnamed)" in typ.name


def write_declaration(decl: Declaration) -> str:
    """Render an IR declaration as D source.

    Convenience function that creates a :class:`DWriter` and calls
    :meth:`~DWriter.write`.

    :param decl: Declaration in IR format.
    :returns: D source, newline-terminated, or ``""``.
    """
    return DWriter().write(decl)
