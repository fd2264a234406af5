# File: crudgen/models.py
"""
crudgen - Core Data Models
===========================
Pydantic V2 models describing an introspected database schema and the
configuration of a generation run. These models are the single source of
truth for the whole pipeline: Introspection -> Validation -> Synthesis ->
Export.

Schema entities (``EnumType``, ``Column``, ``Table``, ``SchemaModel``) are
frozen: a model is built once per run and only read afterwards.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)
from sqlalchemy.engine import URL

from crudgen.typemap import (
    element_type_name,
    is_array_type,
    resolve_native_type,
    resolve_target_type,
    strip_nullable,
)
from crudgen.utils import to_pascal_case, to_singular

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class IdentityGeneration(str, Enum):
    """How an identity column obtains its value."""

    ALWAYS = "ALWAYS"
    BY_DEFAULT = "BY DEFAULT"


class DefaultClass(str, Enum):
    """Partition of columns by how their value is supplied on insert."""

    REQUIRED = "required"
    SOFT = "soft"
    HARD = "hard"


class ReadStyle(str, Enum):
    """Shape of the generated read / update accessors."""

    PER_KEY = "per_key"
    CRITERIA = "criteria"


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

# Entities ignore unknown keys so that a dumped snapshot (which carries the
# computed fields) can be loaded back.
_ENTITY_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    use_enum_values=True,
    frozen=True,
    extra="ignore",
)

_SETTINGS_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    frozen=False,
    extra="forbid",
)

SEQUENCE_MARKER: str = "nextval("


# ---------------------------------------------------------------------------
# Schema entities
# ---------------------------------------------------------------------------


class EnumType(BaseModel):
    """An enumerated type and its labels in declaration order."""

    model_config = _ENTITY_CONFIG

    name: str = Field(..., min_length=1, description="Native type name.")
    schema_name: str = Field(default="public", description="Owning schema.")
    labels: List[str] = Field(
        default_factory=list, description="Labels in database declaration order."
    )

    @field_validator("labels")
    @classmethod
    def _unique_labels(cls, v: List[str]) -> List[str]:
        if len(v) != len(set(v)):
            dupes: List[str] = sorted({x for x in v if v.count(x) > 1})
            raise ValueError(f"Duplicate enum labels detected: {dupes}")
        return v

    @computed_field  # type: ignore[misc]
    @property
    def type_name(self) -> str:
        """Name of the generated enum declaration."""
        return to_pascal_case(self.name)

    def __repr__(self) -> str:
        return f"<EnumType {self.schema_name}.{self.name} {self.labels}>"


class Column(BaseModel):
    """
    A single column of a table.

    ``target_type`` and ``native_type`` are resolved through the type mapper
    when they are not supplied explicitly, so snapshots only need the catalog
    fields.
    """

    model_config = _ENTITY_CONFIG

    name: str = Field(..., min_length=1, description="Column name.")
    position: int = Field(..., ge=1, description="1-based ordinal position.")
    default_value: Optional[str] = Field(
        default=None, description="Raw default expression, e.g. \"now()\"."
    )
    is_nullable: bool = Field(default=True, description="Whether NULL is allowed.")
    data_type: str = Field(
        ..., min_length=1, description="Catalog data_type (integer, ARRAY, USER-DEFINED...)."
    )
    udt_name: Optional[str] = Field(
        default=None, description="Catalog udt_name (int4, _text, status...)."
    )
    target_type: str = Field(default="", description="Resolved TypeScript type.")
    native_type: str = Field(default="", description="Canonical native type for casts.")
    is_identity: bool = Field(default=False, description="Identity column?")
    identity_generation: Optional[IdentityGeneration] = Field(
        default=None, description="ALWAYS or BY DEFAULT for identity columns."
    )
    is_primary: bool = Field(default=False, description="Part of the primary key?")
    is_unique: bool = Field(default=False, description="Part of a unique constraint?")
    is_foreign: bool = Field(default=False, description="References another table?")
    foreign_schema: Optional[str] = Field(default=None, description="Referenced schema.")
    foreign_table: Optional[str] = Field(default=None, description="Referenced table.")
    foreign_column: Optional[str] = Field(default=None, description="Referenced column.")

    @model_validator(mode="before")
    @classmethod
    def _resolve_types(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data_type: Optional[str] = data.get("data_type")
        if data_type:
            if not data.get("target_type"):
                data["target_type"] = resolve_target_type(
                    data_type, data.get("udt_name"), bool(data.get("is_nullable", True))
                )
            if not data.get("native_type"):
                data["native_type"] = resolve_native_type(data_type, data.get("udt_name"))
        if data.get("is_foreign") and not data.get("foreign_schema"):
            data["foreign_schema"] = "public"
        return data

    @model_validator(mode="after")
    def _validate_foreign_reference(self) -> "Column":
        if self.is_foreign and not (self.foreign_table and self.foreign_column):
            raise ValueError(
                f"Column '{self.name}' is a foreign key but 'foreign_table' / "
                f"'foreign_column' are missing."
            )
        return self

    # -- Derived helpers ----------------------------------------------------

    @computed_field  # type: ignore[misc]
    @property
    def default_class(self) -> DefaultClass:
        """
        Exactly one of required / soft / hard.

        A sequence-backed default or an ``ALWAYS`` identity is hard; any other
        default or a ``BY DEFAULT`` identity is soft; everything else must be
        supplied by the caller. An identity with no recorded generation is
        treated as hard.
        """
        if self.is_identity:
            if self.identity_generation == IdentityGeneration.BY_DEFAULT:
                return DefaultClass.SOFT
            return DefaultClass.HARD
        if self.default_value is None:
            return DefaultClass.REQUIRED
        if self.is_sequence_default:
            return DefaultClass.HARD
        return DefaultClass.SOFT

    @property
    def is_sequence_default(self) -> bool:
        return self.default_value is not None and SEQUENCE_MARKER in self.default_value.lower()

    @property
    def base_type(self) -> str:
        """Target type without the nullability marker."""
        return strip_nullable(self.target_type)

    @property
    def is_array(self) -> bool:
        return is_array_type(self.data_type)

    @property
    def type_lookup_name(self) -> str:
        """Native name used to find a matching enum (array element for arrays)."""
        if self.is_array:
            return element_type_name(self.data_type, self.udt_name)
        return self.udt_name or self.data_type

    def __repr__(self) -> str:
        flags: str = "".join(
            flag
            for flag, on in ((" PK", self.is_primary), (" UQ", self.is_unique), (" FK", self.is_foreign))
            if on
        )
        null_flag: str = " NULL" if self.is_nullable else " NOT NULL"
        return f"<Column {self.position}:{self.name} {self.native_type}{flags}{null_flag}>"


class Table(BaseModel):
    """
    A base table and its columns, always kept in ordinal order.

    One ``Table`` drives one generated unit: the value class, its read,
    insert, update and delete accessors.
    """

    model_config = _ENTITY_CONFIG

    name: str = Field(..., min_length=1, description="Table name.")
    schema_name: str = Field(default="public", description="Owning schema.")
    columns: List[Column] = Field(
        default_factory=list, description="Columns, sorted by position."
    )

    @field_validator("columns")
    @classmethod
    def _sort_by_position(cls, v: List[Column]) -> List[Column]:
        return sorted(v, key=lambda c: c.position)

    # -- Computed helpers ---------------------------------------------------

    @computed_field  # type: ignore[misc]
    @property
    def class_name(self) -> str:
        """Singular PascalCase name of the value class (``users`` -> ``User``)."""
        return to_singular(to_pascal_case(self.name))

    @computed_field  # type: ignore[misc]
    @property
    def plural_name(self) -> str:
        """PascalCase collection name used in accessor names (``Users``)."""
        return to_pascal_case(self.name)

    @computed_field  # type: ignore[misc]
    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.name}"

    @property
    def key_columns(self) -> List[Column]:
        """Primary, foreign or unique columns, de-duplicated by name, in ordinal order."""
        seen: Dict[str, Column] = {}
        for col in self.columns:
            if (col.is_primary or col.is_foreign or col.is_unique) and col.name not in seen:
                seen[col.name] = col
        return list(seen.values())

    @property
    def required_columns(self) -> List[Column]:
        return [c for c in self.columns if c.default_class == DefaultClass.REQUIRED]

    @property
    def soft_default_columns(self) -> List[Column]:
        return [c for c in self.columns if c.default_class == DefaultClass.SOFT]

    @property
    def hard_default_columns(self) -> List[Column]:
        return [c for c in self.columns if c.default_class == DefaultClass.HARD]

    @property
    def foreign_key_columns(self) -> List[Column]:
        return [c for c in self.columns if c.is_foreign]

    def get_column(self, name: str) -> Optional[Column]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def __repr__(self) -> str:
        return f"<Table {self.qualified_name} ({len(self.columns)} cols)>"


class SchemaModel(BaseModel):
    """
    Root model: every base table and every enumerated type found in the
    database (or loaded from a snapshot / ERD file).
    """

    model_config = _ENTITY_CONFIG

    tables: List[Table] = Field(default_factory=list, description="All tables.")
    enums: List[EnumType] = Field(default_factory=list, description="All enum types.")

    def get_table(self, schema_name: str, name: str) -> Optional[Table]:
        for table in self.tables:
            if table.schema_name == schema_name and table.name == name:
                return table
        return None

    def find_enum(self, native_name: str) -> Optional[EnumType]:
        """Exact match on the native name first, then case-insensitive."""
        for enum in self.enums:
            if enum.name == native_name:
                return enum
        lowered: str = native_name.lower()
        for enum in self.enums:
            if enum.name.lower() == lowered:
                return enum
        return None

    @computed_field  # type: ignore[misc]
    @property
    def table_count(self) -> int:
        return len(self.tables)

    @computed_field  # type: ignore[misc]
    @property
    def total_columns(self) -> int:
        return sum(len(t.columns) for t in self.tables)

    def __repr__(self) -> str:
        return (
            f"<SchemaModel {self.table_count} tables, "
            f"{self.total_columns} columns, {len(self.enums)} enums>"
        )


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class DatabaseConfig(BaseModel):
    """Connection parameters, as stored in the ``.crudgen.json`` file."""

    model_config = _SETTINGS_CONFIG

    host: str = Field(default="localhost", min_length=1, description="Server host.")
    port: int = Field(default=5432, ge=1, le=65535, description="Server port.")
    database: str = Field(default="postgres", min_length=1, description="Database name.")
    username: str = Field(default="postgres", min_length=1, description="Login role.")
    password: str = Field(default="", description="Login password.")

    def url(self) -> URL:
        """SQLAlchemy URL for the psycopg2 driver."""
        return URL.create(
            "postgresql+psycopg2",
            username=self.username,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.database,
        )

    def __repr__(self) -> str:
        return f"<DatabaseConfig {self.username}@{self.host}:{self.port}/{self.database}>"


class GenerationConfig(BaseModel):
    """
    Master configuration for a generation run.

    A single instance of this model (combined with a ``SchemaModel`` and a
    ``DatabaseConfig``) is all the synthesis engine needs.
    """

    model_config = _SETTINGS_CONFIG

    # -- Output -------------------------------------------------------------
    output_dir: str = Field(
        default="./generated", description="Root directory for generated modules."
    )
    overwrite_existing: bool = Field(
        default=False, description="Replace output_dir when it already exists."
    )

    # -- Accessor shape -----------------------------------------------------
    read_style: ReadStyle = Field(
        default=ReadStyle.PER_KEY,
        description="One get-by function per key subset, or a single criteria getter.",
    )
    max_combination_columns: int = Field(
        default=6,
        ge=1,
        le=12,
        description="Largest key / soft-default set expanded into every subset.",
    )

    # -- Code style ---------------------------------------------------------
    indent_size: int = Field(default=4, ge=2, le=8, description="Indentation width.")
    file_extension: str = Field(default=".ts", description="Extension of written files.")
    module_extension: str = Field(
        default=".js", description="Extension used in relative import specifiers."
    )
    client_module: str = Field(
        default="pg", min_length=1, description="Module providing the database client."
    )

    @field_validator("file_extension", "module_extension")
    @classmethod
    def _leading_dot(cls, v: str) -> str:
        if v and not v.startswith("."):
            return f".{v}"
        return v


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "IdentityGeneration",
    "DefaultClass",
    "ReadStyle",
    "SEQUENCE_MARKER",
    "EnumType",
    "Column",
    "Table",
    "SchemaModel",
    "DatabaseConfig",
    "GenerationConfig",
]

logger.debug("crudgen.models loaded with %d public symbols.", len(__all__))
