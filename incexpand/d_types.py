"""
D type registries for rendering C declarations.

Two registries are provided:
1. C_TO_D_TYPES - Maps C builtin type spellings to their D equivalents
2. D_KEYWORDS - Identifiers reserved in D that C code may use freely
"""

from __future__ import annotations

# =============================================================================
# C -> D builtin types
# =============================================================================
# C ``long`` changes size between platforms, so it maps to the aliases from
# core.stdc.config rather than a fixed-width D type.

C_LONG_ALIASES: tuple[str, ...] = ("c_long", "c_ulong")

# C typedef names that are also D builtin types of the same width. System
# headers declare them (sys/types.h); references keep the D builtin.
D_NATIVE_ALIASES: tuple[str, ...] = ("ulong", "ushort", "uint")

C_TO_D_TYPES: dict[str, str] = {
    "void": "void",
    "_Bool": "bool",
    "bool": "bool",
    "char": "char",
    "signed char": "byte",
    "unsigned char": "ubyte",
    "short": "short",
    "short int": "short",
    "signed short": "short",
    "unsigned short": "ushort",
    "unsigned short int": "ushort",
    "int": "int",
    "signed": "int",
    "signed int": "int",
    "unsigned": "uint",
    "unsigned int": "uint",
    "long": "c_long",
    "long int": "c_long",
    "signed long": "c_long",
    "unsigned long": "c_ulong",
    "unsigned long int": "c_ulong",
    "long long": "long",
    "long long int": "long",
    "signed long long": "long",
    "unsigned long long": "ulong",
    "unsigned long long int": "ulong",
    "float": "float",
    "double": "double",
    "long double": "real",
    "__int128": "cent",
    "unsigned __int128": "ucent",
    "wchar_t": "wchar_t",
}

# =============================================================================
# D keywords
# =============================================================================
# C identifiers that collide with these get a trailing underscore.

D_KEYWORDS: frozenset[str] = frozenset(
    {
        "abstract",
        "alias",
        "align",
        "asm",
        "assert",
        "auto",
        "body",
        "bool",
        "break",
        "byte",
        "case",
        "cast",
        "catch",
        "cdouble",
        "cent",
        "cfloat",
        "char",
        "class",
        "const",
        "continue",
        "creal",
        "dchar",
        "debug",
        "default",
        "delegate",
        "delete",
        "deprecated",
        "do",
        "double",
        "else",
        "enum",
        "export",
        "extern",
        "false",
        "final",
        "finally",
        "float",
        "for",
        "foreach",
        "foreach_reverse",
        "function",
        "goto",
        "idouble",
        "if",
        "ifloat",
        "immutable",
        "import",
        "in",
        "inout",
        "int",
        "interface",
        "invariant",
        "ireal",
        "is",
        "lazy",
        "long",
        "macro",
        "mixin",
        "module",
        "new",
        "nothrow",
        "null",
        "out",
        "override",
        "package",
        "pragma",
        "private",
        "protected",
        "public",
        "pure",
        "real",
        "ref",
        "return",
        "scope",
        "shared",
        "short",
        "static",
        "struct",
        "super",
        "switch",
        "synchronized",
        "template",
        "this",
        "throw",
        "true",
        "try",
        "typeid",
        "typeof",
        "ubyte",
        "ucent",
        "uint",
        "ulong",
        "union",
        "unittest",
        "ushort",
        "version",
        "void",
        "wchar",
        "while",
        "with",
    }
)


def to_d_type_name(c_name: str) -> str:
    """Get the D spelling of a C base type name.

    ``struct foo``, ``union foo`` and ``enum foo`` lose their tag keyword,
    since D refers to aggregates by bare name. Names with no builtin mapping
    (typedef names) are returned as identifiers.

    :param c_name: C type name without qualifiers.
    :returns: D type name.
    """
    name = " ".join(c_name.split())
    if name in C_TO_D_TYPES:
        return C_TO_D_TYPES[name]
    if name in D_NATIVE_ALIASES:
        return name
    for tag in ("struct ", "union ", "enum "):
        if name.startswith(tag):
            return escape_identifier(name[len(tag) :])
    return escape_identifier(name)


def escape_identifier(name: str) -> str:
    """Append ``_`` to identifiers that are D keywords."""
    if name in D_KEYWORDS:
        return f"{name}_"
    return name
