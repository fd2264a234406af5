"""
tests/test_erd.py
Unit tests for crudgen.erd: pgAdmin ERD documents are turned into the
same ``SchemaModel`` shape the catalog introspector produces.
"""

from __future__ import annotations

import json
import pathlib
from typing import Any, Dict, List

import pytest

from crudgen.erd import ErdFormatError, extract_nodes, load_erd_file, node_to_table, parse_erd
from crudgen.models import DefaultClass


def _node(node_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    return {"id": node_id, "type": "table", "otherInfo": {"data": data}}


def _document(*tables: Dict[str, Any]) -> Dict[str, Any]:
    models = {f"n{i}": _node(f"n{i}", t) for i, t in enumerate(tables)}
    return {
        "version": "8.0",
        "data": {
            "layers": [
                {"type": "diagram-links", "models": {}},
                {"type": "diagram-nodes", "models": models},
            ]
        },
    }


USERS: Dict[str, Any] = {
    "schema": "public",
    "name": "users",
    "columns": [
        {"name": "id", "cltype": "serial", "attnotnull": True},
        {"name": "email", "cltype": "text", "attnotnull": True},
        {"name": "created_at", "cltype": "timestamp without time zone", "defval": "now()"},
    ],
    "primary_key": [{"columns": [{"column": "id"}]}],
    "unique_constraint": [{"columns": [{"column": "email"}]}],
    "foreign_key": [],
}

ORDERS: Dict[str, Any] = {
    "schema": "public",
    "name": "orders",
    "columns": [
        {"name": "id", "cltype": "bigint", "attnotnull": True, "colconstype": "i", "attidentity": "a"},
        {"name": "user_id", "cltype": "integer"},
        {"name": "status", "cltype": "status", "attnotnull": True},
        {"name": "tags", "cltype": "character varying(20)[]"},
    ],
    "primary_key": [{"columns": [{"column": "id"}]}],
    "foreign_key": [
        {"columns": [{"local_column": "user_id", "references_table_name": "(public) users", "referenced": "id"}]}
    ],
}


class TestExtractNodes:
    def test_requires_version(self) -> None:
        with pytest.raises(ErdFormatError):
            extract_nodes({"data": {}})

    def test_finds_nested_node_layer(self) -> None:
        nodes: List[Dict[str, Any]] = extract_nodes(_document(USERS, ORDERS))
        assert [n["name"] for n in nodes] == ["users", "orders"]

    def test_node_without_data(self) -> None:
        doc = _document(USERS)
        doc["data"]["layers"][1]["models"]["n0"]["otherInfo"] = {}
        with pytest.raises(ErdFormatError):
            extract_nodes(doc)


class TestNodeToTable:
    def test_serial_becomes_sequence_default(self) -> None:
        table = node_to_table(USERS)
        id_col = table.get_column("id")
        assert id_col.native_type == "int4"
        assert id_col.default_value == "nextval('users_id_seq'::regclass)"
        assert id_col.default_class == DefaultClass.HARD
        assert id_col.is_primary and not id_col.is_nullable

    def test_unique_and_defaults(self) -> None:
        table = node_to_table(USERS)
        assert table.get_column("email").is_unique
        created_at = table.get_column("created_at")
        assert created_at.is_nullable
        assert created_at.target_type == "Date | undefined"
        assert created_at.default_class == DefaultClass.SOFT

    def test_identity_foreign_key_user_type_and_array(self) -> None:
        table = node_to_table(ORDERS)
        id_col, user_id, status, tags = table.columns
        assert id_col.is_identity and id_col.default_class == DefaultClass.HARD
        assert user_id.is_foreign
        assert (user_id.foreign_schema, user_id.foreign_table, user_id.foreign_column) == ("public", "users", "id")
        assert status.data_type == "USER-DEFINED"
        assert status.target_type == "Status"
        assert tags.is_array
        assert tags.native_type == "varchar[]"
        assert tags.target_type == "string[] | undefined"

    def test_reference_without_schema_uses_own_schema(self) -> None:
        data = json.loads(json.dumps(ORDERS))
        data["schema"] = "sales"
        data["foreign_key"][0]["columns"][0]["references_table_name"] = "users"
        user_id = node_to_table(data).get_column("user_id")
        assert (user_id.foreign_schema, user_id.foreign_table) == ("sales", "users")


class TestParseErd:
    def test_parse(self) -> None:
        model = parse_erd(json.dumps(_document(USERS, ORDERS)))
        assert model.table_count == 2
        assert model.enums == []

    def test_invalid_json(self) -> None:
        with pytest.raises(ErdFormatError):
            parse_erd("{not json")

    def test_missing_key(self) -> None:
        broken = json.loads(json.dumps(USERS))
        del broken["columns"][0]["name"]
        with pytest.raises(ErdFormatError):
            parse_erd(json.dumps(_document(broken)))

    def test_load_file(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "schema.pgerd"
        path.write_text(json.dumps(_document(USERS)), encoding="utf-8")
        assert load_erd_file(path).tables[0].name == "users"

    def test_load_missing_file(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_erd_file(tmp_path / "missing.pgerd")
