# File: crudgen/validators.py
"""
crudgen - Schema & Configuration Validators
============================================
Cross-entity semantic checks over the models in ``crudgen.models``.

Pydantic already guarantees per-field structure. This module adds what
only the whole schema can tell: duplicate ordinals, foreign keys whose
target is missing or not a key of the target table, enum types that are
referenced but unknown or named like a generated class, identifier
hazards, and key sets large enough to trigger the combination cap.

Usage by downstream modules:
    from crudgen.validators import validate_full
    result = validate_full(model, config)
    if not result.is_valid:
        ...
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Set, Tuple

from crudgen.models import EnumType, GenerationConfig, SchemaModel, Table
from crudgen.typemap import USER_DEFINED_DATA_TYPE, canonical_native

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationError:
    """Lightweight error descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning" | "info"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()


class ValidationResult:
    """Accumulates ``ValidationError`` instances produced by the checks."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._items.append(ValidationError("error", code, message, context))

    def add_warning(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._items.append(ValidationError("warning", code, message, context))

    def add_info(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._items.append(ValidationError("info", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_warning]

    @property
    def codes(self) -> List[str]:
        return [e.code for e in self._items]

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def summary(self) -> str:
        return (
            f"Validation: {len(self.errors)} error(s), "
            f"{len(self.warnings)} warning(s), "
            f"{len(self._items)} total item(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self, include_info: bool = False) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            if not include_info and item.level == "info":
                continue
            lines.append(f"  {item.level.upper():<7} [{item.code}] {item.message}")
            for k, v in item.context.items():
                lines.append(f"          {k}: {v}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def validate_tables_present(model: SchemaModel) -> ValidationResult:
    """A model without tables has nothing to generate."""
    result: ValidationResult = ValidationResult()
    if not model.tables:
        result.add_error("NO_TABLES", "The schema contains no base tables.")
    for table in model.tables:
        if not table.columns:
            result.add_warning(
                "TABLE_WITHOUT_COLUMNS",
                f"Table '{table.qualified_name}' has no columns; its unit will be minimal.",
                {"table": table.qualified_name},
            )
    return result


def validate_table_names(model: SchemaModel) -> ValidationResult:
    """Duplicate qualified names are errors; unusual identifiers are warnings."""
    result: ValidationResult = ValidationResult()
    seen: Set[Tuple[str, str]] = set()

    for table in model.tables:
        ctx: Dict[str, Any] = {"table": table.qualified_name}
        key: Tuple[str, str] = (table.schema_name, table.name)
        if key in seen:
            result.add_error(
                "DUPLICATE_TABLE_NAME",
                f"Table '{table.qualified_name}' is defined more than once.",
                ctx,
            )
        seen.add(key)

        if not _IDENTIFIER_RE.match(table.name):
            result.add_warning(
                "TABLE_NAME_NOT_IDENTIFIER",
                f"Table name '{table.name}' is not a plain identifier; "
                f"generated names are derived as '{table.class_name}' / '{table.plural_name}'.",
                ctx,
            )

    logger.debug("validate_table_names: checked %d tables, %d issue(s).", len(model.tables), len(result))
    return result


def validate_columns(model: SchemaModel) -> ValidationResult:
    """Column names and ordinals must be unique within each table."""
    result: ValidationResult = ValidationResult()

    for table in model.tables:
        names_seen: Set[str] = set()
        positions_seen: Set[int] = set()
        for col in table.columns:
            ctx: Dict[str, Any] = {"table": table.qualified_name, "column": col.name}
            if col.name in names_seen:
                result.add_error(
                    "DUPLICATE_COLUMN_NAME",
                    f"Column '{col.name}' is duplicated in table '{table.qualified_name}'.",
                    ctx,
                )
            names_seen.add(col.name)

            if col.position in positions_seen:
                result.add_error(
                    "DUPLICATE_COLUMN_POSITION",
                    f"Position {col.position} is used twice in table '{table.qualified_name}'.",
                    {**ctx, "position": col.position},
                )
            positions_seen.add(col.position)

            if not _IDENTIFIER_RE.match(col.name):
                result.add_warning(
                    "COLUMN_NAME_NOT_IDENTIFIER",
                    f"Column '{col.name}' in table '{table.qualified_name}' is not a plain "
                    f"identifier; it will be quoted in SQL and renamed in parameters.",
                    ctx,
                )

    return result


def _is_key_of(table: Table, column_name: str) -> bool:
    col = table.get_column(column_name)
    return col is not None and (col.is_primary or col.is_unique)


def validate_foreign_keys(model: SchemaModel) -> ValidationResult:
    """
    Every foreign key must point at an existing table and column, and that
    column must be a primary or unique key there: the generated existence
    check calls the target's lookup accessor for it.
    """
    result: ValidationResult = ValidationResult()

    for table in model.tables:
        for col in table.foreign_key_columns:
            target_name: str = f"{col.foreign_schema}.{col.foreign_table}"
            ctx: Dict[str, Any] = {
                "table": table.qualified_name,
                "column": col.name,
                "references": f"{target_name}.{col.foreign_column}",
            }
            target: Optional[Table] = model.get_table(col.foreign_schema or "", col.foreign_table or "")
            if target is None:
                result.add_error(
                    "FK_TARGET_TABLE_MISSING",
                    f"'{table.qualified_name}.{col.name}' references table "
                    f"'{target_name}' which is not in the schema.",
                    ctx,
                )
                continue
            if target.get_column(col.foreign_column or "") is None:
                result.add_error(
                    "FK_TARGET_COLUMN_MISSING",
                    f"'{table.qualified_name}.{col.name}' references column "
                    f"'{col.foreign_column}' which does not exist in '{target_name}'.",
                    ctx,
                )
                continue
            if not _is_key_of(target, col.foreign_column or ""):
                result.add_error(
                    "FK_TARGET_NOT_KEY",
                    f"'{table.qualified_name}.{col.name}' references "
                    f"'{target_name}.{col.foreign_column}', which is neither a primary "
                    f"nor a unique key.",
                    ctx,
                )

    return result


def validate_enum_references(model: SchemaModel) -> ValidationResult:
    """User-defined column types without a matching enum become opaque named types."""
    result: ValidationResult = ValidationResult()

    for table in model.tables:
        for col in table.columns:
            is_user_defined: bool = (
                col.data_type.upper() == USER_DEFINED_DATA_TYPE or col.is_array
            ) and canonical_native(col.type_lookup_name) is None
            if is_user_defined and model.find_enum(col.type_lookup_name) is None:
                result.add_warning(
                    "UNKNOWN_USER_TYPE",
                    f"Column '{table.qualified_name}.{col.name}' uses type "
                    f"'{col.type_lookup_name}' which is not a known enum; it will be "
                    f"typed as '{col.base_type}' without a declaration.",
                    {"table": table.qualified_name, "column": col.name},
                )

    return result


def validate_combination_sizes(model: SchemaModel, config: GenerationConfig) -> ValidationResult:
    """Key and soft-default sets above the cap only get single-column variants."""
    result: ValidationResult = ValidationResult()
    cap: int = config.max_combination_columns

    for table in model.tables:
        ctx: Dict[str, Any] = {"table": table.qualified_name, "cap": cap}
        if len(table.key_columns) > cap:
            result.add_warning(
                "KEY_SET_TOO_LARGE",
                f"Table '{table.qualified_name}' has {len(table.key_columns)} key columns; "
                f"only single-column lookups will be generated.",
                ctx,
            )
        if len(table.soft_default_columns) > cap:
            result.add_warning(
                "SOFT_DEFAULTS_TOO_LARGE",
                f"Table '{table.qualified_name}' has {len(table.soft_default_columns)} "
                f"defaultable columns; only single-column insert overloads will be generated.",
                ctx,
            )

    return result


def validate_accessor_names(model: SchemaModel) -> ValidationResult:
    """Two tables of one schema that collapse to the same generated names clash on import."""
    result: ValidationResult = ValidationResult()
    seen: Dict[Tuple[str, str], str] = {}

    for table in model.tables:
        key: Tuple[str, str] = (table.schema_name, table.plural_name)
        if key in seen:
            result.add_warning(
                "ACCESSOR_NAME_CLASH",
                f"Tables '{seen[key]}' and '{table.qualified_name}' both generate "
                f"accessors named '*{table.plural_name}*'.",
                {"table": table.qualified_name, "other": seen[key]},
            )
        else:
            seen[key] = table.qualified_name

    return result


def validate_declaration_names(model: SchemaModel) -> ValidationResult:
    """An enum declared in a table's module must not share a name with the module's class or interfaces."""
    result: ValidationResult = ValidationResult()

    for table in model.tables:
        taken: Set[str] = {
            table.class_name,
            f"{table.class_name}Criteria",
            f"{table.class_name}Changes",
        }
        reported: Set[str] = set()
        for col in table.columns:
            if canonical_native(col.type_lookup_name) is not None:
                continue
            enum: Optional[EnumType] = model.find_enum(col.type_lookup_name)
            if enum is None or enum.type_name not in taken or enum.type_name in reported:
                continue
            reported.add(enum.type_name)
            result.add_error(
                "DECLARATION_NAME_CLASH",
                f"Enum '{enum.name}' used by '{table.qualified_name}.{col.name}' would be "
                f"declared as '{enum.type_name}', which the module for "
                f"'{table.qualified_name}' already declares.",
                {"table": table.qualified_name, "column": col.name, "enum": enum.name},
            )

    return result


# ---------------------------------------------------------------------------
# Aggregate entry points
# ---------------------------------------------------------------------------


def validate_schema(model: SchemaModel) -> ValidationResult:
    """Run all schema-level checks."""
    result: ValidationResult = ValidationResult()
    result.merge(validate_tables_present(model))
    result.merge(validate_table_names(model))
    result.merge(validate_columns(model))
    result.merge(validate_foreign_keys(model))
    result.merge(validate_enum_references(model))
    result.merge(validate_accessor_names(model))
    result.merge(validate_declaration_names(model))
    return result


def validate_full(model: SchemaModel, config: GenerationConfig) -> ValidationResult:
    """
    **Master validation entry point**, called by the generator before
    synthesis. Errors abort generation; warnings are logged and reported.
    """
    logger.info("Starting validation of %r", model)

    result: ValidationResult = ValidationResult()
    result.merge(validate_schema(model))
    result.merge(validate_combination_sizes(model, config))

    for item in result.warnings:
        logger.warning("%s", item)
    if result.has_errors:
        logger.error("Validation FAILED with %d error(s). %s", len(result.errors), result.summary())
    else:
        logger.info("Validation PASSED. %s", result.summary())

    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ValidationError",
    "ValidationResult",
    "validate_tables_present",
    "validate_table_names",
    "validate_columns",
    "validate_foreign_keys",
    "validate_enum_references",
    "validate_combination_sizes",
    "validate_accessor_names",
    "validate_declaration_names",
    "validate_schema",
    "validate_full",
]

logger.debug("crudgen.validators loaded with %d public symbols.", len(__all__))
