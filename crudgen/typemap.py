# File: crudgen/typemap.py
"""
crudgen - Type Mapper
======================
Maps PostgreSQL type names to the TypeScript types used in generated
accessor modules, and to the canonical native names used in ``$n::cast``
parameter literals.

Every function here is total and side-effect free: an unmapped native
type never fails, it surfaces as a PascalCase type name synthesised from
its own identifier (this is how enumerated and other user-defined types
become named types in the generated code).
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional

from crudgen.utils import to_pascal_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.typemap")

ARRAY_DATA_TYPE: str = "ARRAY"
USER_DEFINED_DATA_TYPE: str = "USER-DEFINED"
NULLABLE_SUFFIX: str = " | undefined"

_TYPE_MODIFIER_RE: re.Pattern[str] = re.compile(r"\s*\([^)]*\)")

# ---------------------------------------------------------------------------
# Native name -> canonical udt name
# ---------------------------------------------------------------------------

# SQL-standard spellings (as reported in information_schema.columns.data_type
# or written in DDL) mapped to the udt names PostgreSQL uses for casts.
NATIVE_ALIASES: Dict[str, str] = {
    "smallint": "int2",
    "integer": "int4",
    "int": "int4",
    "bigint": "int8",
    "smallserial": "int2",
    "serial": "int4",
    "bigserial": "int8",
    "serial2": "int2",
    "serial4": "int4",
    "serial8": "int8",
    "real": "float4",
    "double precision": "float8",
    "decimal": "numeric",
    "boolean": "bool",
    "character varying": "varchar",
    "character": "bpchar",
    "char": "bpchar",
    "bit varying": "varbit",
    "timestamp without time zone": "timestamp",
    "timestamp with time zone": "timestamptz",
    "time without time zone": "time",
    "time with time zone": "timetz",
}

# ---------------------------------------------------------------------------
# Canonical udt name -> TypeScript type
# ---------------------------------------------------------------------------

TS_TYPES: Dict[str, str] = {
    # Numeric
    "int2": "number",
    "int4": "number",
    "int8": "number",
    "float4": "number",
    "float8": "number",
    "numeric": "number",
    "oid": "number",
    "money": "string",
    # Boolean
    "bool": "boolean",
    # Character
    "text": "string",
    "varchar": "string",
    "bpchar": "string",
    "name": "string",
    "citext": "string",
    "uuid": "string",
    "xml": "string",
    "tsvector": "string",
    "tsquery": "string",
    # Network
    "inet": "string",
    "cidr": "string",
    "macaddr": "string",
    "macaddr8": "string",
    # Bit strings
    "bit": "string",
    "varbit": "string",
    # Date / Time
    "date": "Date",
    "timestamp": "Date",
    "timestamptz": "Date",
    "time": "string",
    "timetz": "string",
    "interval": "string",
    # JSON / Binary
    "json": "any",
    "jsonb": "any",
    "bytea": "Buffer",
    # Geometric
    "point": "string",
    "line": "string",
    "lseg": "string",
    "box": "string",
    "path": "string",
    "polygon": "string",
    "circle": "string",
}


def _normalise(name: str) -> str:
    """Lower-case a type name and drop length/precision modifiers."""
    return _TYPE_MODIFIER_RE.sub("", name).strip().lower()


def canonical_native(name: str) -> Optional[str]:
    """
    Canonical udt name for a built-in type spelling, or ``None`` when the
    name is not a known built-in (enum and other user-defined types).
    """
    key: str = _normalise(name)
    if key in NATIVE_ALIASES:
        return NATIVE_ALIASES[key]
    if key in TS_TYPES:
        return key
    return None


def array_element(udt_name: str) -> str:
    """Strip one level of array-ness from a udt name (``_int4`` -> ``int4``)."""
    if udt_name.startswith("_"):
        return udt_name[1:]
    if udt_name.endswith("[]"):
        return udt_name[:-2]
    return udt_name


def is_array_type(data_type: str) -> bool:
    """
    True for the catalog ``ARRAY`` marker and for native names that carry
    their own array marker (``text[]``, ``_int4``).
    """
    if data_type.upper() == ARRAY_DATA_TYPE:
        return True
    key: str = _normalise(data_type)
    if canonical_native(key) is not None:
        return False
    return key.endswith("[]") or key.startswith("_")


def element_type_name(data_type: str, udt_name: Optional[str] = None) -> str:
    """Native element name of an array column ('' when the catalog gave none)."""
    if data_type.upper() == ARRAY_DATA_TYPE:
        return array_element(udt_name or "")
    return array_element(_normalise(data_type))


def _scalar_target(name: str) -> str:
    key: str = _normalise(name)
    canonical: str = NATIVE_ALIASES.get(key, key)
    if canonical in TS_TYPES:
        return TS_TYPES[canonical]
    return to_pascal_case(name)


def resolve_base_type(data_type: str, udt_name: Optional[str] = None) -> str:
    """Resolved TypeScript type without the nullability marker."""
    if is_array_type(data_type):
        element: str = element_type_name(data_type, udt_name)
        if not element:
            return "any[]"
        return f"{_scalar_target(element)}[]"
    if udt_name and _normalise(udt_name) in TS_TYPES:
        return TS_TYPES[_normalise(udt_name)]
    if data_type.upper() == USER_DEFINED_DATA_TYPE:
        return to_pascal_case(udt_name or data_type)
    return _scalar_target(data_type)


def resolve_target_type(
    data_type: str,
    udt_name: Optional[str] = None,
    is_nullable: bool = False,
) -> str:
    """
    Resolve the TypeScript type for a column.

    Examples:
        >>> resolve_target_type("integer", "int4")
        'number'
        >>> resolve_target_type("ARRAY", "_text")
        'string[]'
        >>> resolve_target_type("USER-DEFINED", "order_status", True)
        'OrderStatus | undefined'
    """
    base: str = resolve_base_type(data_type, udt_name)
    if is_nullable:
        return base + NULLABLE_SUFFIX
    return base


def strip_nullable(target_type: str) -> str:
    """Remove the nullability marker added by ``resolve_target_type``."""
    if target_type.endswith(NULLABLE_SUFFIX):
        return target_type[: -len(NULLABLE_SUFFIX)]
    return target_type


def resolve_native_type(data_type: str, udt_name: Optional[str] = None) -> str:
    """
    Canonical native type name used for parameter casts.

    Catalog ``udt_name`` values are already canonical and win over the
    SQL-standard ``data_type`` spelling. Arrays resolve their element and
    append ``[]``.
    """
    if is_array_type(data_type):
        element: str = element_type_name(data_type, udt_name)
        return f"{canonical_native(element) or element}[]"
    if udt_name:
        return udt_name
    return canonical_native(data_type) or _normalise(data_type)


def cast_literal(native_type: str) -> str:
    """Cast suffix appended to a bind parameter (``int4`` -> ``::int4``)."""
    return f"::{native_type}"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ARRAY_DATA_TYPE",
    "USER_DEFINED_DATA_TYPE",
    "NULLABLE_SUFFIX",
    "NATIVE_ALIASES",
    "TS_TYPES",
    "canonical_native",
    "array_element",
    "is_array_type",
    "element_type_name",
    "resolve_base_type",
    "resolve_target_type",
    "strip_nullable",
    "resolve_native_type",
    "cast_literal",
]

logger.debug("crudgen.typemap loaded with %d public symbols.", len(__all__))
