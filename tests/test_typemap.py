"""
tests/test_typemap.py
Unit tests for crudgen.typemap: native name canonicalisation, TypeScript
type resolution and cast literals.
"""

from __future__ import annotations

import pytest

from crudgen.typemap import (
    TS_TYPES,
    array_element,
    canonical_native,
    cast_literal,
    element_type_name,
    is_array_type,
    resolve_native_type,
    resolve_target_type,
    strip_nullable,
)


class TestCanonicalNative:
    @pytest.mark.parametrize(
        "spelling, canonical",
        [
            ("integer", "int4"),
            ("INTEGER", "int4"),
            ("bigserial", "int8"),
            ("character varying(255)", "varchar"),
            ("timestamp with time zone", "timestamptz"),
            ("double precision", "float8"),
            ("jsonb", "jsonb"),
            ("numeric(10,2)", "numeric"),
        ],
    )
    def test_known_spellings(self, spelling: str, canonical: str) -> None:
        assert canonical_native(spelling) == canonical

    def test_unknown_is_none(self) -> None:
        assert canonical_native("order_status") is None

    def test_every_canonical_name_maps_to_itself(self) -> None:
        for name in TS_TYPES:
            assert canonical_native(name) == name


class TestResolveTargetType:
    @pytest.mark.parametrize(
        "data_type, udt_name, expected",
        [
            ("integer", "int4", "number"),
            ("numeric", "numeric", "number"),
            ("boolean", "bool", "boolean"),
            ("text", "text", "string"),
            ("character varying", "varchar", "string"),
            ("uuid", "uuid", "string"),
            ("timestamp without time zone", "timestamp", "Date"),
            ("date", "date", "Date"),
            ("time without time zone", "time", "string"),
            ("jsonb", "jsonb", "any"),
            ("bytea", "bytea", "Buffer"),
            ("money", "money", "string"),
        ],
    )
    def test_scalars(self, data_type: str, udt_name: str, expected: str) -> None:
        assert resolve_target_type(data_type, udt_name) == expected

    def test_nullable_adds_undefined(self) -> None:
        assert resolve_target_type("integer", "int4", is_nullable=True) == "number | undefined"

    def test_arrays(self) -> None:
        assert resolve_target_type("ARRAY", "_text") == "string[]"
        assert resolve_target_type("ARRAY", "_int4") == "number[]"
        assert resolve_target_type("ARRAY", "_status") == "Status[]"

    @pytest.mark.parametrize(
        "data_type, expected",
        [
            ("text[]", "string[]"),
            ("integer[]", "number[]"),
            ("character varying(20)[]", "string[]"),
            ("_int4", "number[]"),
            ("_text", "string[]"),
            ("order_status[]", "OrderStatus[]"),
        ],
    )
    def test_array_marker_in_native_name(self, data_type: str, expected: str) -> None:
        assert resolve_target_type(data_type) == expected
        assert is_array_type(data_type)

    def test_user_defined_becomes_pascal_name(self) -> None:
        assert resolve_target_type("USER-DEFINED", "order_status") == "OrderStatus"

    def test_known_extension_type_keeps_mapping(self) -> None:
        assert resolve_target_type("USER-DEFINED", "citext") == "string"

    def test_strip_nullable(self) -> None:
        assert strip_nullable("Date | undefined") == "Date"
        assert strip_nullable("Date") == "Date"


class TestNativeType:
    def test_udt_name_wins(self) -> None:
        assert resolve_native_type("integer", "int4") == "int4"
        assert resolve_native_type("USER-DEFINED", "status") == "status"

    def test_data_type_fallback(self) -> None:
        assert resolve_native_type("character varying") == "varchar"

    def test_arrays(self) -> None:
        assert resolve_native_type("ARRAY", "_int4") == "int4[]"
        assert resolve_native_type("integer[]") == "int4[]"
        assert resolve_native_type("_text") == "text[]"
        assert array_element("_int4") == "int4"
        assert array_element("int4[]") == "int4"

    def test_scalars_are_not_arrays(self) -> None:
        assert not is_array_type("integer")
        assert not is_array_type("USER-DEFINED")
        assert element_type_name("ARRAY", "_status") == "status"
        assert element_type_name("status[]") == "status"

    @pytest.mark.parametrize("udt_name", ["int4", "text", "timestamptz", "bool", "status"])
    def test_cast_literal_round_trips_udt_name(self, udt_name: str) -> None:
        native = resolve_native_type("USER-DEFINED" if udt_name == "status" else "x", udt_name)
        assert cast_literal(native) == f"::{udt_name}"
