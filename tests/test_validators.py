"""
tests/test_validators.py
Unit tests for crudgen.validators.

Tests cover:
- Empty schemas
- Duplicate tables and columns
- Foreign key referential integrity
- Unknown user-defined types
- Combination caps, accessor name clashes and enum declaration clashes
- Full validation pipeline (validate_full)
"""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from crudgen.models import Column, EnumType, GenerationConfig, SchemaModel, Table
from crudgen.validators import (
    ValidationResult,
    validate_accessor_names,
    validate_columns,
    validate_combination_sizes,
    validate_declaration_names,
    validate_enum_references,
    validate_foreign_keys,
    validate_full,
    validate_table_names,
    validate_tables_present,
)


def _col(name: str, position: int, **extra: Any) -> Column:
    data: Dict[str, Any] = {"name": name, "position": position, "data_type": "integer", "udt_name": "int4"}
    data.update(extra)
    return Column(**data)


def _fk(name: str, position: int, table: str, column: str = "id") -> Column:
    return _col(name, position, is_foreign=True, foreign_table=table, foreign_column=column)


# ===========================================================================
# ValidationResult
# ===========================================================================


class TestValidationResult:
    def test_accumulates_and_merges(self) -> None:
        first = ValidationResult()
        first.add_error("A", "broken")
        second = ValidationResult()
        second.add_warning("B", "odd")
        second.add_info("C", "fyi")
        first.merge(second)
        assert first.codes == ["A", "B", "C"]
        assert len(first.errors) == 1
        assert len(first.warnings) == 1
        assert not first.is_valid
        assert "broken" in first.format_report()

    def test_warnings_keep_result_valid(self) -> None:
        result = ValidationResult()
        result.add_warning("W", "just a warning")
        assert result.is_valid
        assert not result.has_errors


# ===========================================================================
# Individual checks
# ===========================================================================


class TestTablesPresent:
    def test_no_tables_is_error(self) -> None:
        result = validate_tables_present(SchemaModel())
        assert result.codes == ["NO_TABLES"]

    def test_table_without_columns_is_warning(self) -> None:
        result = validate_tables_present(SchemaModel(tables=[Table(name="empty")]))
        assert result.is_valid
        assert result.codes == ["TABLE_WITHOUT_COLUMNS"]

    def test_shop_model_passes(self, shop_model: SchemaModel) -> None:
        assert len(validate_tables_present(shop_model)) == 0


class TestTableAndColumnNames:
    def test_duplicate_table(self) -> None:
        model = SchemaModel(tables=[Table(name="t", columns=[_col("id", 1)]), Table(name="t")])
        assert "DUPLICATE_TABLE_NAME" in validate_table_names(model).codes

    def test_same_name_in_other_schema_is_fine(self) -> None:
        model = SchemaModel(tables=[Table(name="t"), Table(name="t", schema_name="audit")])
        assert validate_table_names(model).is_valid

    def test_odd_table_name_warns(self) -> None:
        model = SchemaModel(tables=[Table(name="order items")])
        result = validate_table_names(model)
        assert result.is_valid
        assert result.codes == ["TABLE_NAME_NOT_IDENTIFIER"]

    def test_duplicate_column_name_and_position(self) -> None:
        model = SchemaModel(tables=[Table(name="t", columns=[_col("a", 1), _col("a", 1)])])
        codes = validate_columns(model).codes
        assert "DUPLICATE_COLUMN_NAME" in codes
        assert "DUPLICATE_COLUMN_POSITION" in codes


class TestForeignKeys:
    def test_valid_reference(self, shop_model: SchemaModel) -> None:
        assert validate_foreign_keys(shop_model).is_valid

    @pytest.mark.parametrize(
        "target_table, target_column, code",
        [
            ("teams", "id", "FK_TARGET_TABLE_MISSING"),
            ("users", "uuid", "FK_TARGET_COLUMN_MISSING"),
            ("users", "name", "FK_TARGET_NOT_KEY"),
        ],
    )
    def test_broken_reference(self, target_table: str, target_column: str, code: str) -> None:
        users = Table(name="users", columns=[_col("id", 1, is_primary=True), _col("name", 2)])
        posts = Table(name="posts", columns=[_col("id", 1, is_primary=True), _fk("author", 2, target_table, target_column)])
        result = validate_foreign_keys(SchemaModel(tables=[users, posts]))
        assert result.codes == [code]


class TestEnumReferences:
    def test_known_enum(self, shop_model: SchemaModel) -> None:
        assert len(validate_enum_references(shop_model)) == 0

    def test_unknown_user_type_warns(self) -> None:
        table = Table(name="t", columns=[_col("mood", 1, data_type="USER-DEFINED", udt_name="mood")])
        result = validate_enum_references(SchemaModel(tables=[table]))
        assert result.is_valid
        assert result.codes == ["UNKNOWN_USER_TYPE"]

    def test_extension_type_is_not_reported(self) -> None:
        table = Table(name="t", columns=[_col("email", 1, data_type="USER-DEFINED", udt_name="citext")])
        assert len(validate_enum_references(SchemaModel(tables=[table]))) == 0


class TestCombinationSizes:
    def test_cap_exceeded(self) -> None:
        columns: List[Column] = [_col(f"k{i}", i, is_unique=True) for i in range(1, 5)]
        model = SchemaModel(tables=[Table(name="t", columns=columns)])
        result = validate_combination_sizes(model, GenerationConfig(max_combination_columns=3))
        assert result.codes == ["KEY_SET_TOO_LARGE"]

    def test_soft_defaults_cap(self) -> None:
        columns: List[Column] = [_col(f"d{i}", i, default_value="0") for i in range(1, 4)]
        model = SchemaModel(tables=[Table(name="t", columns=columns)])
        result = validate_combination_sizes(model, GenerationConfig(max_combination_columns=2))
        assert result.codes == ["SOFT_DEFAULTS_TOO_LARGE"]


class TestAccessorNames:
    def test_clash(self) -> None:
        model = SchemaModel(tables=[Table(name="user_roles"), Table(name="UserRoles")])
        assert validate_accessor_names(model).codes == ["ACCESSOR_NAME_CLASH"]


class TestDeclarationNames:
    def _model(self, table_name: str, enum_name: str, data_type: str = "USER-DEFINED") -> SchemaModel:
        column = _col("value", 2, data_type=data_type, udt_name=f"_{enum_name}" if data_type == "ARRAY" else enum_name)
        table = Table(name=table_name, columns=[_col("id", 1, is_primary=True), column])
        return SchemaModel(tables=[table], enums=[EnumType(name=enum_name, labels=["a", "b"])])

    def test_enum_named_like_value_class(self) -> None:
        result = validate_declaration_names(self._model("mood", "mood"))
        assert result.codes == ["DECLARATION_NAME_CLASH"]
        assert not result.is_valid

    def test_enum_named_like_criteria_interface(self) -> None:
        result = validate_declaration_names(self._model("mood", "mood_criteria", "ARRAY"))
        assert result.codes == ["DECLARATION_NAME_CLASH"]

    def test_distinct_names_pass(self) -> None:
        assert len(validate_declaration_names(self._model("entries", "mood"))) == 0

    def test_full_validation_rejects_clash(self) -> None:
        result = validate_full(self._model("mood", "mood"), GenerationConfig())
        assert "DECLARATION_NAME_CLASH" in result.codes


# ===========================================================================
# validate_full
# ===========================================================================


class TestValidateFull:
    def test_shop_model_is_valid(self, shop_model: SchemaModel) -> None:
        result = validate_full(shop_model, GenerationConfig())
        assert result.is_valid, result.format_report()

    def test_empty_model_fails(self) -> None:
        result = validate_full(SchemaModel(), GenerationConfig())
        assert not result.is_valid
        assert "NO_TABLES" in result.codes
