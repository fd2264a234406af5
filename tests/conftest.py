"""
tests/conftest.py
Shared fixtures for the crudgen test suite.

Schema fixtures are plain pydantic models built in code or loaded from
``schema_example.yaml``. Catalog access is faked with a small in-memory
engine that answers the introspector's queries from canned rows; real
file I/O happens inside pytest's ``tmp_path`` directories.
"""

from __future__ import annotations

import copy
import logging
import pathlib
from typing import Any, Dict, List, Optional

import pytest
import yaml
from unittest import mock

from crudgen.models import Column, DatabaseConfig, EnumType, GenerationConfig, SchemaModel, Table


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

ROOT_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
SCHEMA_EXAMPLE_PATH: pathlib.Path = ROOT_DIR / "schema_example.yaml"


# ---------------------------------------------------------------------------
# Snapshot fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_schema_dict() -> Dict[str, Any]:
    """Load the reference schema_example.yaml once per session and return as dict."""
    assert SCHEMA_EXAMPLE_PATH.exists(), (
        f"Reference schema not found at {SCHEMA_EXAMPLE_PATH}. "
        "Make sure schema_example.yaml is in the project root."
    )
    with open(SCHEMA_EXAMPLE_PATH, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    assert isinstance(data, dict), "Top-level YAML must be a mapping."
    return data


@pytest.fixture()
def schema_dict(raw_schema_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Return a deep copy so each test can mutate freely."""
    return copy.deepcopy(raw_schema_dict)


@pytest.fixture()
def shop_model(schema_dict: Dict[str, Any]) -> SchemaModel:
    """users + orders (nullable FK to users, enum and array columns) + status enum."""
    return SchemaModel.model_validate(schema_dict)


# ---------------------------------------------------------------------------
# Hand-built schema fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def users_table() -> Table:
    """users(id serial pk, email text unique not null, created_at timestamp default now())."""
    return Table(
        name="users",
        columns=[
            Column(
                name="id",
                position=1,
                data_type="integer",
                udt_name="int4",
                is_nullable=False,
                default_value="nextval('users_id_seq'::regclass)",
                is_primary=True,
            ),
            Column(
                name="email",
                position=2,
                data_type="text",
                udt_name="text",
                is_nullable=False,
                is_unique=True,
            ),
            Column(
                name="created_at",
                position=3,
                data_type="timestamp without time zone",
                udt_name="timestamp",
                is_nullable=True,
                default_value="now()",
            ),
        ],
    )


@pytest.fixture()
def users_model(users_table: Table) -> SchemaModel:
    return SchemaModel(tables=[users_table])


@pytest.fixture()
def status_enum() -> EnumType:
    return EnumType(name="status", labels=["active", "inactive"])


@pytest.fixture()
def accounts_model(status_enum: EnumType) -> SchemaModel:
    """accounts(id int pk, status status not null default 'active')."""
    accounts = Table(
        name="accounts",
        columns=[
            Column(name="id", position=1, data_type="integer", udt_name="int4", is_nullable=False, is_primary=True),
            Column(
                name="status",
                position=2,
                data_type="USER-DEFINED",
                udt_name="status",
                is_nullable=False,
                default_value="'active'::status",
            ),
        ],
    )
    return SchemaModel(tables=[accounts], enums=[status_enum])


# ---------------------------------------------------------------------------
# Configuration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def output_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    """Output root that does not exist yet."""
    return tmp_path / "generated"


@pytest.fixture()
def generation_config(output_dir: pathlib.Path) -> GenerationConfig:
    return GenerationConfig(output_dir=str(output_dir))


@pytest.fixture()
def database_config() -> DatabaseConfig:
    return DatabaseConfig(host="db.local", port=5433, database="shop", username="app", password="secret")


# ---------------------------------------------------------------------------
# Fake SQLAlchemy engine
# ---------------------------------------------------------------------------


class FakeCatalog:
    """
    Canned catalog rows keyed by ``(schema, table)``.

    Each query is recognised by a fragment of its SQL text.
    """

    def __init__(self) -> None:
        self.tables: List[Dict[str, Any]] = []
        self.enums: List[Dict[str, Any]] = []
        self.columns: Dict[tuple, List[Dict[str, Any]]] = {}
        self.primary: Dict[tuple, List[str]] = {}
        self.foreign: Dict[tuple, List[Dict[str, Any]]] = {}
        self.unique: Dict[tuple, List[str]] = {}
        self.queries: List[str] = []

    def rows_for(self, sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        self.queries.append(sql)
        key: tuple = (params.get("schema"), params.get("table"))
        if "information_schema.tables" in sql:
            return self.tables
        if "pg_enum" in sql:
            return self.enums
        if "information_schema.columns" in sql:
            return self.columns.get(key, [])
        if "'PRIMARY KEY'" in sql:
            return [{"column_name": c} for c in self.primary.get(key, [])]
        if "referential_constraints" in sql:
            return self.foreign.get(key, [])
        if "'UNIQUE'" in sql:
            return [{"column_name": c} for c in self.unique.get(key, [])]
        raise AssertionError(f"Unexpected query: {sql}")


def make_engine(catalog: FakeCatalog, error: Optional[Exception] = None) -> mock.MagicMock:
    """
    A stand-in for ``sqlalchemy.engine.Engine``: ``connect()`` yields a
    connection whose ``execute(...).mappings().all()`` returns catalog rows,
    or raises *error* when given.
    """

    def execute(clause: Any, params: Optional[Dict[str, Any]] = None) -> mock.MagicMock:
        if error is not None:
            raise error
        result = mock.MagicMock()
        result.mappings.return_value.all.return_value = catalog.rows_for(clause.text, params or {})
        return result

    connection = mock.MagicMock()
    connection.execute.side_effect = execute
    engine = mock.MagicMock()
    engine.connect.return_value.__enter__.return_value = connection
    engine.connect.return_value.__exit__.return_value = False
    return engine


@pytest.fixture()
def users_catalog() -> FakeCatalog:
    """Catalog rows for the users table plus the status enum."""
    catalog = FakeCatalog()
    key = ("public", "users")
    catalog.tables = [{"table_schema": "public", "table_name": "users"}]
    catalog.enums = [
        {"enum_schema": "public", "enum_name": "status", "enum_label": "active"},
        {"enum_schema": "public", "enum_name": "status", "enum_label": "inactive"},
    ]
    catalog.columns[key] = [
        {
            "column_name": "id",
            "ordinal_position": 1,
            "column_default": "nextval('users_id_seq'::regclass)",
            "is_nullable": "NO",
            "data_type": "integer",
            "udt_name": "int4",
            "is_identity": "NO",
            "identity_generation": None,
        },
        {
            "column_name": "email",
            "ordinal_position": 2,
            "column_default": None,
            "is_nullable": "NO",
            "data_type": "text",
            "udt_name": "text",
            "is_identity": "NO",
            "identity_generation": None,
        },
        {
            "column_name": "created_at",
            "ordinal_position": 3,
            "column_default": "now()",
            "is_nullable": "YES",
            "data_type": "timestamp without time zone",
            "udt_name": "timestamp",
            "is_identity": "NO",
            "identity_generation": None,
        },
    ]
    catalog.primary[key] = ["id"]
    catalog.unique[key] = ["email"]
    return catalog


@pytest.fixture()
def users_engine(users_catalog: FakeCatalog) -> mock.MagicMock:
    return make_engine(users_catalog)


@pytest.fixture()
def engine_factory():
    """``make_engine`` for tests that build their own catalog."""
    return make_engine


@pytest.fixture()
def empty_catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture(autouse=True)
def _reset_crudgen_logger():
    """The CLI detaches the crudgen logger from root; re-attach it for caplog."""
    yield
    root = logging.getLogger("crudgen")
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)
