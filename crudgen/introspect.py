# File: crudgen/introspect.py
"""
crudgen - Schema Model Builder
===============================
Reads the PostgreSQL catalog through SQLAlchemy and assembles the
``SchemaModel`` consumed by the synthesis engine.

Build steps:
1. Base tables outside the system schemas.
2. Enumerated types with their labels in declaration order.
3. Per table: columns, primary-key columns, foreign-key edges and
   unique-constraint columns.
4. Cross-reference key membership and attach foreign coordinates.
5. Resolve target / native types through the type mapper.
6. Assemble each ``Table`` in ordinal order.

All queries share one connection. Any catalog failure aborts the whole
build with ``CatalogError``; a partial model is never returned.

Row assembly (``assemble_table`` / ``assemble_enums``) works on plain
mappings keyed by catalog column names, so the ERD reader feeds the same
code path.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from crudgen.models import Column, DatabaseConfig, EnumType, SchemaModel, Table
from crudgen.typemap import resolve_native_type, resolve_target_type
from crudgen.utils import Timer

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.introspect")

Row = Mapping[str, Any]

# ---------------------------------------------------------------------------
# Catalog queries
# ---------------------------------------------------------------------------

TABLES_QUERY: str = """
SELECT table_schema, table_name
  FROM information_schema.tables
 WHERE table_type = 'BASE TABLE'
   AND table_schema NOT IN ('pg_catalog', 'information_schema')
 ORDER BY table_schema, table_name
"""

ENUMS_QUERY: str = """
SELECT n.nspname AS enum_schema, t.typname AS enum_name, e.enumlabel AS enum_label
  FROM pg_catalog.pg_type t
  JOIN pg_catalog.pg_enum e ON e.enumtypid = t.oid
  JOIN pg_catalog.pg_namespace n ON n.oid = t.typnamespace
 WHERE n.nspname NOT IN ('pg_catalog', 'information_schema')
 ORDER BY n.nspname, t.typname, e.enumsortorder
"""

COLUMNS_QUERY: str = """
SELECT column_name, ordinal_position, column_default, is_nullable,
       data_type, udt_name, is_identity, identity_generation
  FROM information_schema.columns
 WHERE table_schema = :schema
   AND table_name = :table
 ORDER BY ordinal_position
"""

PRIMARY_KEY_QUERY: str = """
SELECT kcu.column_name
  FROM information_schema.table_constraints tc
  JOIN information_schema.key_column_usage kcu
    ON kcu.constraint_name = tc.constraint_name
   AND kcu.constraint_schema = tc.constraint_schema
   AND kcu.table_name = tc.table_name
 WHERE tc.constraint_type = 'PRIMARY KEY'
   AND tc.table_schema = :schema
   AND tc.table_name = :table
 ORDER BY kcu.ordinal_position
"""

FOREIGN_KEY_QUERY: str = """
SELECT kcu.column_name,
       ccu.table_schema AS foreign_schema,
       ccu.table_name AS foreign_table,
       ccu.column_name AS foreign_column
  FROM information_schema.referential_constraints rc
  JOIN information_schema.key_column_usage kcu
    ON kcu.constraint_name = rc.constraint_name
   AND kcu.constraint_schema = rc.constraint_schema
  JOIN information_schema.key_column_usage ccu
    ON ccu.constraint_name = rc.unique_constraint_name
   AND ccu.constraint_schema = rc.unique_constraint_schema
   AND ccu.ordinal_position = kcu.position_in_unique_constraint
 WHERE kcu.table_schema = :schema
   AND kcu.table_name = :table
 ORDER BY kcu.ordinal_position
"""

UNIQUE_QUERY: str = """
SELECT kcu.column_name
  FROM information_schema.table_constraints tc
  JOIN information_schema.key_column_usage kcu
    ON kcu.constraint_name = tc.constraint_name
   AND kcu.constraint_schema = tc.constraint_schema
   AND kcu.table_name = tc.table_name
 WHERE tc.constraint_type = 'UNIQUE'
   AND tc.table_schema = :schema
   AND tc.table_name = :table
 ORDER BY kcu.ordinal_position
"""


class CatalogError(RuntimeError):
    """Raised when any catalog query fails; the model build is abandoned."""


# ---------------------------------------------------------------------------
# Row assembly (shared with the ERD reader)
# ---------------------------------------------------------------------------


def _yes(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).upper() in ("YES", "TRUE", "T", "1")


def assemble_enums(rows: Iterable[Row]) -> List[EnumType]:
    """Group ``(enum_schema, enum_name, enum_label)`` rows into ``EnumType``s."""
    labels: Dict[tuple, List[str]] = {}
    for row in rows:
        key: tuple = (row["enum_schema"], row["enum_name"])
        labels.setdefault(key, []).append(row["enum_label"])
    return [
        EnumType(name=name, schema_name=schema, labels=values)
        for (schema, name), values in labels.items()
    ]


def assemble_table(
    schema_name: str,
    table_name: str,
    column_rows: Sequence[Row],
    primary_key_columns: Iterable[str] = (),
    foreign_key_rows: Sequence[Row] = (),
    unique_columns: Iterable[str] = (),
) -> Table:
    """
    Build a ``Table`` from catalog-shaped rows.

    ``column_rows`` use the ``information_schema.columns`` names
    (``column_name``, ``ordinal_position``, ``is_nullable`` as YES/NO...);
    ``foreign_key_rows`` carry ``column_name`` plus the referenced
    ``foreign_schema`` / ``foreign_table`` / ``foreign_column``.
    """
    primary: Set[str] = set(primary_key_columns)
    unique: Set[str] = set(unique_columns)
    foreign: Dict[str, Row] = {}
    for fk in foreign_key_rows:
        foreign.setdefault(fk["column_name"], fk)

    columns: List[Column] = []
    for row in column_rows:
        name: str = row["column_name"]
        data_type: str = row["data_type"]
        udt_name: Optional[str] = row.get("udt_name")
        is_nullable: bool = _yes(row.get("is_nullable", "YES"))
        is_identity: bool = _yes(row.get("is_identity", "NO"))
        fk_row: Optional[Row] = foreign.get(name)
        columns.append(
            Column(
                name=name,
                position=int(row["ordinal_position"]),
                default_value=row.get("column_default"),
                is_nullable=is_nullable,
                data_type=data_type,
                udt_name=udt_name,
                target_type=resolve_target_type(data_type, udt_name, is_nullable),
                native_type=resolve_native_type(data_type, udt_name),
                is_identity=is_identity,
                identity_generation=row.get("identity_generation") if is_identity else None,
                is_primary=name in primary,
                is_unique=name in unique,
                is_foreign=fk_row is not None,
                foreign_schema=fk_row["foreign_schema"] if fk_row else None,
                foreign_table=fk_row["foreign_table"] if fk_row else None,
                foreign_column=fk_row["foreign_column"] if fk_row else None,
            )
        )

    table: Table = Table(name=table_name, schema_name=schema_name, columns=columns)
    logger.debug(
        "Assembled %s: %d columns, %d key columns.",
        table.qualified_name,
        len(table.columns),
        len(table.key_columns),
    )
    return table


# ---------------------------------------------------------------------------
# Introspector
# ---------------------------------------------------------------------------


class SchemaIntrospector:
    """
    Builds a ``SchemaModel`` from a live database.

    The engine is created from the explicit ``DatabaseConfig`` unless one is
    injected; an engine created here is disposed after the build.
    """

    def __init__(self, database: DatabaseConfig, engine: Optional[Engine] = None) -> None:
        self.database: DatabaseConfig = database
        self._engine: Optional[Engine] = engine

    def _fetch(self, conn: Connection, query: str, **params: Any) -> List[Row]:
        return list(conn.execute(text(query), params).mappings().all())

    @contextmanager
    def _connection(self, label: str) -> Iterator[Connection]:
        owns_engine: bool = self._engine is None
        engine: Engine = self._engine or create_engine(self.database.url())
        try:
            with Timer(label), engine.connect() as conn:
                yield conn
        except SQLAlchemyError as exc:
            logger.error("Catalog query failed: %s", exc)
            raise CatalogError(f"Catalog query failed: {exc}") from exc
        finally:
            if owns_engine:
                engine.dispose()

    def fetch_enums(self) -> List[EnumType]:
        """Only the enumerated types; used when tables come from an ERD file."""
        with self._connection("fetch_enums") as conn:
            enums: List[EnumType] = assemble_enums(self._fetch(conn, ENUMS_QUERY))
        logger.info("Fetched %d enum types from %r", len(enums), self.database)
        return enums

    def build_model(self) -> SchemaModel:
        logger.info("Introspecting %r", self.database)
        with self._connection("introspect") as conn:
            table_rows: List[Row] = self._fetch(conn, TABLES_QUERY)
            enums: List[EnumType] = assemble_enums(self._fetch(conn, ENUMS_QUERY))

            tables: List[Table] = []
            for row in table_rows:
                schema_name: str = row["table_schema"]
                table_name: str = row["table_name"]
                params: Dict[str, str] = {"schema": schema_name, "table": table_name}
                tables.append(
                    assemble_table(
                        schema_name,
                        table_name,
                        self._fetch(conn, COLUMNS_QUERY, **params),
                        [r["column_name"] for r in self._fetch(conn, PRIMARY_KEY_QUERY, **params)],
                        self._fetch(conn, FOREIGN_KEY_QUERY, **params),
                        [r["column_name"] for r in self._fetch(conn, UNIQUE_QUERY, **params)],
                    )
                )

        model: SchemaModel = SchemaModel(tables=tables, enums=enums)
        logger.info("Introspection complete: %r", model)
        return model


# ---------------------------------------------------------------------------
# Result wrapper
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class ModelBuildResult:
    """Outcome of a model build; ``model`` is set only on success."""

    success: bool
    model: Optional[SchemaModel] = None
    error: Optional[str] = None
    source: str = "database"

    def summary(self) -> str:
        if self.success and self.model is not None:
            return f"Model from {self.source}: {self.model.table_count} tables, {len(self.model.enums)} enums."
        return f"Model from {self.source} FAILED: {self.error}"


def build_schema_model(
    database: DatabaseConfig,
    engine: Optional[Engine] = None,
) -> ModelBuildResult:
    """Introspect *database*; catalog failures are reported, not raised."""
    try:
        model: SchemaModel = SchemaIntrospector(database, engine=engine).build_model()
    except CatalogError as exc:
        return ModelBuildResult(success=False, error=str(exc))
    return ModelBuildResult(success=True, model=model)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "TABLES_QUERY",
    "ENUMS_QUERY",
    "COLUMNS_QUERY",
    "PRIMARY_KEY_QUERY",
    "FOREIGN_KEY_QUERY",
    "UNIQUE_QUERY",
    "CatalogError",
    "assemble_enums",
    "assemble_table",
    "SchemaIntrospector",
    "ModelBuildResult",
    "build_schema_model",
]

logger.debug("crudgen.introspect loaded with %d public symbols.", len(__all__))
