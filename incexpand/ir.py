"""Intermediate Representation (IR) for C declarations.

The converter produces one IR declaration per libclang cursor it
understands; the D writer consumes it to render the equivalent D
declaration.

Type Hierarchy
--------------
Type expressions form a recursive structure:

* :class:`CType` - Base C type (``int``, ``unsigned long``, ``struct foo``)
* :class:`Pointer` - Pointer to another type (``int*``, ``char**``)
* :class:`Array` - Fixed or flexible array (``int[10]``, ``char[]``)
* :class:`FunctionPointer` - Function type (behind a pointer, a callback)

Declaration Types
-----------------
* :class:`Enum` - Enumeration with named constants
* :class:`Struct` - Struct or union with fields
* :class:`Function` - Function declaration
* :class:`Typedef` - Type alias
* :class:`Variable` - Global variable

Example
-------
::

    from incexpand.ir import CType, Function, Parameter, Pointer

    strlen_fn = Function("strlen", CType("size_t"), [
        Parameter("s", Pointer(CType("char", ["const"])))
    ])
"""

from __future__ import (
    annotations,
)

from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Optional,
    Union,
)

# =============================================================================
# Type Representations
# =============================================================================


@dataclass
class CType:
    """A base C type with optional qualifiers.

    :param name: The base type name (e.g., ``"int"``, ``"unsigned long"``,
        ``"struct foo"``).
    :param qualifiers: Type qualifiers (e.g., ``["const"]``).
    """

    name: str
    qualifiers: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        if self.qualifiers:
            return f"{' '.join(self.qualifiers)} {self.name}"
        return self.name


@dataclass
class Pointer:
    """Pointer to another type.

    :param pointee: The type being pointed to.
    :param qualifiers: Qualifiers on the pointer itself (``int* const``).
    """

    pointee: Union[CType, Pointer, Array, FunctionPointer]
    qualifiers: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        quals = f"{' '.join(self.qualifiers)} " if self.qualifiers else ""
        return f"{quals}{self.pointee}*"


@dataclass
class Array:
    """Fixed-size or flexible array type.

    :param element_type: The type of array elements.
    :param size: Number of elements, or None for flexible/incomplete arrays.
    """

    element_type: Union[CType, Pointer, Array, FunctionPointer]
    size: Optional[int] = None

    def __str__(self) -> str:
        size_str = str(self.size) if self.size is not None else ""
        return f"{self.element_type}[{size_str}]"


@dataclass
class Parameter:
    """Function parameter, named or anonymous."""

    name: Optional[str]
    type: Union[CType, Pointer, Array, FunctionPointer]

    def __str__(self) -> str:
        if self.name:
            return f"{self.type} {self.name}"
        return str(self.type)


@dataclass
class FunctionPointer:
    """Function type.

    A bare ``FunctionPointer`` is the function type itself; a callback is
    ``Pointer(FunctionPointer(...))``, which D spells ``R function(...)``.

    :param return_type: The function's return type.
    :param parameters: List of function parameters.
    :param is_variadic: True if the parameter list ends with ``...``.
    """

    return_type: Union[CType, Pointer, Array, FunctionPointer]
    parameters: list[Parameter] = field(default_factory=list)
    is_variadic: bool = False

    def __str__(self) -> str:
        params = ", ".join(str(p) for p in self.parameters)
        if self.is_variadic:
            params = f"{params}, ..." if params else "..."
        return f"{self.return_type} (*)({params})"


# Type alias for any type expression
TypeExpr = Union[CType, Pointer, Array, FunctionPointer]


# =============================================================================
# Declarations
# =============================================================================


@dataclass
class Field:
    """Struct or union member."""

    name: str
    type: TypeExpr

    def __str__(self) -> str:
        return f"{self.type} {self.name}"


@dataclass
class EnumValue:
    """Single enumeration constant with its evaluated value."""

    name: str
    value: Optional[int] = None

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.name} = {self.value}"
        return self.name


@dataclass
class Enum:
    """Enumeration declaration.

    :param name: The enum tag name, or the typedef name for
        ``typedef enum { ... } name;``.
    :param values: List of enumeration constants.
    """

    name: str
    values: list[EnumValue] = field(default_factory=list)

    def __str__(self) -> str:
        return f"enum {self.name}"


@dataclass
class Struct:
    """Struct or union declaration.

    A struct with no fields and ``is_definition`` False is a forward
    declaration (an opaque type).

    :param name: The tag name, or the typedef name for
        ``typedef struct { ... } name;``.
    :param fields: List of member fields.
    :param is_union: True for unions, False for structs.
    :param is_definition: False for forward declarations.
    """

    name: str
    fields: list[Field] = field(default_factory=list)
    is_union: bool = False
    is_definition: bool = True

    def __str__(self) -> str:
        kind = "union" if self.is_union else "struct"
        return f"{kind} {self.name}"


@dataclass
class Function:
    """Function declaration (prototype only)."""

    name: str
    return_type: TypeExpr
    parameters: list[Parameter] = field(default_factory=list)
    is_variadic: bool = False

    def __str__(self) -> str:
        params = ", ".join(str(p) for p in self.parameters)
        if self.is_variadic:
            params = f"{params}, ..." if params else "..."
        return f"{self.return_type} {self.name}({params})"


@dataclass
class Typedef:
    """Type alias declaration."""

    name: str
    underlying_type: TypeExpr

    def __str__(self) -> str:
        return f"typedef {self.underlying_type} {self.name}"


@dataclass
class Variable:
    """Global (extern) variable declaration."""

    name: str
    type: TypeExpr

    def __str__(self) -> str:
        return f"{self.type} {self.name}"


# Type alias for any declaration
Declaration = Union[Enum, Struct, Function, Typedef, Variable]
