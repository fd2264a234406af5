# File: crudgen/templates.py
"""
crudgen - Code Synthesis Engine
================================
Turns one ``Table`` (plus the shared ``SchemaModel``) into a
``GeneratedUnit``: a TypeScript module for node-postgres containing, in
order,

    1. a banner and a ``createClient()`` factory built from ``DatabaseConfig``
    2. enum declarations for the enum types its columns use
    3. the value class, plus ``<Class>Criteria`` / ``<Class>Changes`` interfaces
    4. read accessors (get-all, and get-by per key subset or a criteria getter)
    5. insert accessors (base insert plus one overload per soft-default subset)
    6. update accessors (per key subset, or criteria based)
    7. a criteria-based delete accessor

Every declaration carries the imports its code needs; the unit's printer
consolidates them (see ``crudgen.ir``).

Foreign-key pre-validation: a foreign-key column is checked iff it is a
parameter of the insert overload (or a supplied change field of an
update). Nullable columns are checked only when the value is neither
``null`` nor ``undefined``, which is exactly when a value is written.
"""

from __future__ import annotations

import contextlib
import json
import logging
import re
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple

from crudgen.ir import CodeWriter, Declaration, GeneratedUnit, ImportRequest, module_specifier
from crudgen.models import (
    Column,
    DatabaseConfig,
    EnumType,
    GenerationConfig,
    ReadStyle,
    SchemaModel,
    Table,
)
from crudgen.typemap import canonical_native, cast_literal
from crudgen.utils import (
    align_keywords,
    beautify_name,
    capped_key_combinations,
    qualified_table,
    sql_identifier,
    to_camel_case,
    to_pascal_case,
    ts_identifier,
    ts_member,
    ts_property,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.templates")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MISSING_PARAMETERS_MESSAGE: str = "Missing Parameters"

_NOW_EXPRESSIONS: FrozenSet[str] = frozenset({
    "now()",
    "current_timestamp",
    "current_date",
    "localtimestamp",
    "transaction_timestamp()",
    "statement_timestamp()",
    "clock_timestamp()",
})
_TRUE_LITERALS: FrozenSet[str] = frozenset({"true", "t", "yes", "y", "on", "1"})
_FALSE_LITERALS: FrozenSet[str] = frozenset({"false", "f", "no", "n", "off", "0"})

_CAST_SUFFIX_RE: re.Pattern[str] = re.compile(r"::[A-Za-z_][\w\s\".\[\]]*$")
_QUOTED_LITERAL_RE: re.Pattern[str] = re.compile(r"^'((?:[^']|'')*)'$")
_NUMBER_RE: re.Pattern[str] = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


class SynthesisError(ValueError):
    """Raised when a table cannot be turned into a unit (e.g. dangling FK)."""


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------


def column_suffix(columns: Sequence[Column]) -> str:
    """``[id, email]`` -> ``IDAndEmail``."""
    return "And".join(to_pascal_case(c.name) for c in columns)


def get_all_name(table: Table) -> str:
    return f"getAll{table.plural_name}"


def get_by_name(table: Table, columns: Sequence[Column]) -> str:
    return f"get{table.plural_name}By{column_suffix(columns)}"


def get_by_criteria_name(table: Table) -> str:
    return f"get{table.plural_name}"


def insert_name(table: Table, supplied_defaults: Sequence[Column]) -> str:
    if supplied_defaults:
        return f"add{table.class_name}With{column_suffix(supplied_defaults)}"
    return f"add{table.class_name}"


def update_by_name(table: Table, columns: Sequence[Column]) -> str:
    return f"update{table.plural_name}By{column_suffix(columns)}"


def update_by_criteria_name(table: Table) -> str:
    return f"update{table.plural_name}"


def delete_name(table: Table) -> str:
    return f"delete{table.plural_name}"


def _helper_prefix(table: Table) -> str:
    return to_camel_case(table.class_name)


# ---------------------------------------------------------------------------
# Default literals
# ---------------------------------------------------------------------------


def _strip_casts(expression: str) -> str:
    expr: str = expression.strip()
    while True:
        stripped: str = _CAST_SUFFIX_RE.sub("", expr).strip()
        while stripped.startswith("(") and stripped.endswith(")"):
            stripped = stripped[1:-1].strip()
        if stripped == expr:
            return expr
        expr = stripped


def render_default_literal(column: Column, enum: Optional[EnumType] = None) -> Optional[str]:
    """
    TypeScript initializer for a column default, or ``None`` when the
    default is absent, sequence-backed or not a literal we can render.

    Examples (column type -> default -> initializer):
        Date    now()                  new Date()
        number  '0'::integer           0
        string  'draft'::text          "draft"
        Status  'active'::status       Status.active
    """
    if column.default_value is None or column.is_sequence_default:
        return None
    expr: str = _strip_casts(column.default_value)
    if expr.upper() == "NULL":
        return None

    quoted: Optional[re.Match[str]] = _QUOTED_LITERAL_RE.match(expr)
    literal: Optional[str] = quoted.group(1).replace("''", "'") if quoted else None
    base: str = column.base_type

    if column.is_array:
        return "[]" if literal == "{}" else None
    if base == "Date":
        if expr.lower() in _NOW_EXPRESSIONS:
            return "new Date()"
        if literal is not None:
            return f"new Date({json.dumps(literal)})"
        return None
    if base == "number":
        candidate: str = literal if literal is not None else expr
        return candidate if _NUMBER_RE.match(candidate) else None
    if base == "boolean":
        lowered: str = (literal if literal is not None else expr).lower()
        if lowered in _TRUE_LITERALS:
            return "true"
        if lowered in _FALSE_LITERALS:
            return "false"
        return None
    if enum is not None:
        if literal is not None and literal in enum.labels:
            return ts_member(enum.type_name, literal)
        return None
    if base == "any":
        if literal is None:
            return None
        try:
            return json.dumps(json.loads(literal))
        except ValueError:
            return None
    if base == "string" and literal is not None:
        return json.dumps(literal)
    return None


# ---------------------------------------------------------------------------
# TemplateGenerator class
# ---------------------------------------------------------------------------


class TemplateGenerator:
    """
    Code-generation engine for one accessor module per table.

    Stateless between calls: every ``generate_*`` method reads only its
    arguments and the configuration given at construction.
    """

    def __init__(self, config: GenerationConfig, database: DatabaseConfig) -> None:
        self._config: GenerationConfig = config
        self._database: DatabaseConfig = database
        logger.debug(
            "TemplateGenerator initialised (read_style=%s, cap=%d).",
            config.read_style,
            config.max_combination_columns,
        )

    # ===================================================================
    # Entry point
    # ===================================================================

    def generate_unit(self, table: Table, model: SchemaModel) -> GeneratedUnit:
        """Synthesise the complete unit for *table*."""
        unit: GeneratedUnit = GeneratedUnit(
            schema_name=table.schema_name,
            table_name=table.name,
            client_module=self._config.client_module,
            module_extension=self._config.module_extension,
            file_extension=self._config.file_extension,
            indent_size=self._config.indent_size,
        )
        unit.add(self.generate_banner(table))
        unit.add(self.generate_client_factory())
        for declaration in self.generate_enums(table, model):
            unit.add(declaration)
        unit.add(self.generate_value_class(table, model))
        unit.add(self.generate_criteria_interface(table))
        unit.add(self.generate_changes_interface(table))
        for declaration in self.generate_helpers(table):
            unit.add(declaration)
        for declaration in self.generate_reads(table):
            unit.add(declaration)
        for declaration in self.generate_inserts(table, model):
            unit.add(declaration)
        for declaration in self.generate_updates(table, model):
            unit.add(declaration)
        unit.add(self.generate_delete(table))

        logger.debug("Synthesised %r", unit)
        return unit

    # ===================================================================
    # 1. Banner & client factory
    # ===================================================================

    def generate_banner(self, table: Table) -> Declaration:
        w: CodeWriter = CodeWriter()
        w.line(f"// Accessors for {table.qualified_name}.")
        w.line("// Generated by crudgen; manual changes are lost on the next run.")
        return Declaration("comment", "banner", w.lines)

    def generate_client_factory(self) -> Declaration:
        db: DatabaseConfig = self._database
        w: CodeWriter = CodeWriter()
        with w.block("function createClient() {"):
            with w.block("return new Client({", "});"):
                w.line(f"host: process.env.PGHOST ?? {json.dumps(db.host)},")
                w.line(f"port: Number(process.env.PGPORT ?? {db.port}),")
                w.line(f"database: process.env.PGDATABASE ?? {json.dumps(db.database)},")
                w.line(f"user: process.env.PGUSER ?? {json.dumps(db.username)},")
                w.line(f"password: process.env.PGPASSWORD ?? {json.dumps(db.password)},")
        return Declaration("function", "createClient", w.lines)

    # ===================================================================
    # 2. Enums
    # ===================================================================

    def column_enum(self, column: Column, model: SchemaModel) -> Optional[EnumType]:
        """The enum a column is typed with, if any."""
        if canonical_native(column.type_lookup_name) is not None:
            return None
        return model.find_enum(column.type_lookup_name)

    def generate_enums(self, table: Table, model: SchemaModel) -> List[Declaration]:
        """One declaration per distinct enum used by the table's columns."""
        declarations: List[Declaration] = []
        seen: List[str] = []
        for col in table.columns:
            enum: Optional[EnumType] = self.column_enum(col, model)
            if enum is None or enum.type_name in seen:
                continue
            seen.append(enum.type_name)
            w: CodeWriter = CodeWriter()
            with w.block(f"export enum {enum.type_name} {{"):
                for label in enum.labels:
                    w.line(f"{ts_property(label)} = {json.dumps(label)},")
            declarations.append(Declaration("enum", enum.type_name, w.lines))
        return declarations

    # ===================================================================
    # 3. Value class & interfaces
    # ===================================================================

    def field_doc(self, table: Table, column: Column) -> str:
        if column.is_primary:
            return f"Primary key of {table.qualified_name}."
        if column.is_foreign:
            return (
                f"Foreign key referencing "
                f"{column.foreign_schema}.{column.foreign_table}.{column.foreign_column}."
            )
        if column.base_type == "boolean":
            return f"Flag: {beautify_name(column.name)}."
        return f"{beautify_name(column.name)}."

    def generate_value_class(self, table: Table, model: SchemaModel) -> Declaration:
        w: CodeWriter = CodeWriter()
        w.extend(["/**", f" * A row of {table.qualified_name}.", " */"])
        with w.block(f"export class {table.class_name} {{"):
            for col in table.columns:
                w.extend(["/**", f" * {self.field_doc(table, col)}", " */"])
                field: str = f"{ts_property(col.name)}: {col.target_type}"
                initializer: Optional[str] = render_default_literal(col, self.column_enum(col, model))
                if initializer is not None:
                    field += f" = {initializer}"
                w.line(field + ";")
            if table.columns:
                w.line()
            params: str = ", ".join(f"{ts_identifier(c.name)}: {c.target_type}" for c in table.columns)
            with w.block(f"constructor({params}) {{"):
                for col in table.columns:
                    w.line(f"{ts_member('this', col.name)} = {ts_identifier(col.name)};")
        return Declaration("class", table.class_name, w.lines)

    def _optional_field(self, column: Column) -> str:
        suffix: str = " | null" if column.is_nullable else ""
        return f"{ts_property(column.name)}?: {column.base_type}{suffix};"

    def generate_criteria_interface(self, table: Table) -> Declaration:
        name: str = f"{table.class_name}Criteria"
        w: CodeWriter = CodeWriter()
        with w.block(f"export interface {name} {{"):
            for col in table.columns:
                w.line(self._optional_field(col))
        return Declaration("interface", name, w.lines)

    def generate_changes_interface(self, table: Table) -> Declaration:
        """Every column except hard defaults (sequence / ALWAYS identity) may change."""
        name: str = f"{table.class_name}Changes"
        hard: List[str] = [c.name for c in table.hard_default_columns]
        w: CodeWriter = CodeWriter()
        with w.block(f"export interface {name} {{"):
            for col in table.columns:
                if col.name not in hard:
                    w.line(self._optional_field(col))
        return Declaration("interface", name, w.lines)

    # ===================================================================
    # Private helpers shared by the accessors
    # ===================================================================

    def generate_helpers(self, table: Table) -> List[Declaration]:
        prefix: str = _helper_prefix(table)
        declarations: List[Declaration] = []

        w: CodeWriter = CodeWriter()
        with w.block(f"const {prefix}Columns: {{[key: string]: [string, string]}} = {{", "};"):
            for col in table.columns:
                w.line(
                    f"{ts_property(col.name)}: "
                    f"[{json.dumps(sql_identifier(col.name))}, {json.dumps(cast_literal(col.native_type))}],"
                )
        declarations.append(Declaration("const", f"{prefix}Columns", w.lines))

        w = CodeWriter()
        args: str = ", ".join(ts_member("row", c.name) for c in table.columns)
        with w.block(f"function {prefix}FromRow(row: any): {table.class_name} {{"):
            w.line(f"return new {table.class_name}({args});")
        declarations.append(Declaration("function", f"{prefix}FromRow", w.lines))

        w = CodeWriter()
        with w.block(
            f"function {prefix}WhereClauses(criteria: {table.class_name}Criteria, "
            f"values: unknown[]): string[] {{"
        ):
            w.line("const clauses: string[] = [];")
            with w.block(f"for (const [key, [column, cast]] of Object.entries({prefix}Columns)) {{"):
                w.line("const value = (criteria as {[key: string]: unknown})[key];")
                with w.block("if (value === undefined) {"):
                    w.line("continue;")
                w.line("if (value === null) {")
                with w.indented():
                    w.line("clauses.push(`${column} IS NULL`);")
                w.line("} else {")
                with w.indented():
                    w.line("values.push(value);")
                    w.line("clauses.push(`${column} = $${values.length}${cast}`);")
                w.line("}")
            w.line("return clauses;")
        declarations.append(Declaration("function", f"{prefix}WhereClauses", w.lines))

        w = CodeWriter()
        with w.block(
            f"function {prefix}Assignments(changes: {table.class_name}Changes, "
            f"values: unknown[]): string[] {{"
        ):
            w.line("const assignments: string[] = [];")
            with w.block(f"for (const [key, [column, cast]] of Object.entries({prefix}Columns)) {{"):
                w.line("const value = (changes as {[key: string]: unknown})[key];")
                with w.block("if (value === undefined) {"):
                    w.line("continue;")
                w.line("values.push(value);")
                w.line("assignments.push(`${column} = $${values.length}${cast}`);")
            w.line("return assignments;")
        declarations.append(Declaration("function", f"{prefix}Assignments", w.lines))

        return declarations

    # ===================================================================
    # Statement helpers
    # ===================================================================

    @contextlib.contextmanager
    def _client_session(self, w: CodeWriter) -> Iterator[None]:
        w.line("const client = createClient();")
        w.line("await client.connect();")
        w.line("try {")
        with w.indented():
            yield
        w.line("} finally {")
        with w.indented():
            w.line("await client.end();")
        w.line("}")

    def _emit_query(self, w: CodeWriter, lines: Sequence[str], raw_tail: Sequence[Tuple[int, str]] = ()) -> None:
        """
        ``const query = [...].join("\\n");`` from literal SQL lines.

        *raw_tail* entries ``(index, expression)`` replace the literal at
        *index* with a TypeScript expression (for dynamic clauses).
        """
        overrides: Dict[int, str] = dict(raw_tail)
        with w.block("const query = [", '].join("\\n");'):
            for index, text in enumerate(lines):
                w.line(f"{overrides.get(index, json.dumps(text))},")

    def _emit_missing_check(self, w: CodeWriter, columns: Sequence[Column]) -> None:
        checked: List[Column] = [c for c in columns if not c.is_nullable]
        if not checked:
            return
        condition: str = " || ".join(f"{ts_identifier(c.name)} === undefined" for c in checked)
        with w.block(f"if ({condition}) {{"):
            w.line(f"throw new Error({json.dumps(MISSING_PARAMETERS_MESSAGE)});")

    def _key_predicates(self, columns: Sequence[Column], start: int = 1) -> List[str]:
        return [
            f"{sql_identifier(c.name)} = ${start + i}{cast_literal(c.native_type)}"
            for i, c in enumerate(columns)
        ]

    def _param_list(self, columns: Sequence[Column], key_types: bool = False) -> str:
        """Parameter declarations; key parameters use the non-widened type."""
        return ", ".join(
            f"{ts_identifier(c.name)}: {c.base_type if key_types else c.target_type}"
            for c in columns
        )

    def _value_list(self, columns: Sequence[Column]) -> str:
        return ", ".join(
            f"{ts_identifier(c.name)} ?? null" if c.is_nullable else ts_identifier(c.name)
            for c in columns
        )

    # ===================================================================
    # Foreign-key pre-validation
    # ===================================================================

    def _lookup_call(self, table: Table, column: Column, model: SchemaModel, value: str) -> Tuple[str, Optional[ImportRequest]]:
        target: Optional[Table] = model.get_table(column.foreign_schema or "", column.foreign_table or "")
        target_col: Optional[Column] = target.get_column(column.foreign_column or "") if target else None
        if target is None or target_col is None:
            raise SynthesisError(
                f"{table.qualified_name}.{column.name} references "
                f"{column.foreign_schema}.{column.foreign_table}.{column.foreign_column}, "
                f"which is not in the schema model."
            )
        if self._config.read_style == ReadStyle.CRITERIA:
            function: str = get_by_criteria_name(target)
            call: str = f"{function}({{{ts_property(target_col.name)}: {value}}})"
        else:
            function = get_by_name(target, [target_col])
            call = f"{function}({value})"

        request: Optional[ImportRequest] = None
        if (target.schema_name, target.name) != (table.schema_name, table.name):
            request = ImportRequest(
                module_specifier(
                    table.schema_name,
                    target.schema_name,
                    target.name,
                    self._config.module_extension,
                ),
                function,
            )
        return call, request

    def _emit_fk_checks(
        self,
        w: CodeWriter,
        table: Table,
        model: SchemaModel,
        checks: Sequence[Tuple[Column, str, bool]],
    ) -> List[ImportRequest]:
        """
        Emit one existence check per ``(column, value expression, guarded)``;
        guarded checks only run when the value is present.
        """
        imports: List[ImportRequest] = []
        for column, value, guarded in checks:
            call, request = self._lookup_call(table, column, model, value)
            if request is not None:
                imports.append(request)
            if guarded:
                with w.block(f"if ({value} != null) {{"):
                    self._emit_fk_check(w, column, call)
            else:
                self._emit_fk_check(w, column, call)
        return imports

    def _emit_fk_check(self, w: CodeWriter, column: Column, call: str) -> None:
        variable: str = f"{ts_identifier(column.name)}Matches"
        message: str = (
            f"{column.name} does not reference an existing row in "
            f"{column.foreign_schema}.{column.foreign_table}.{column.foreign_column}"
        )
        w.line(f"const {variable} = await {call};")
        with w.block(f"if ({variable}.length === 0) {{"):
            w.line(f"throw new Error({json.dumps(message)});")

    # ===================================================================
    # 4. Reads
    # ===================================================================

    def generate_reads(self, table: Table) -> List[Declaration]:
        declarations: List[Declaration] = [self.generate_get_all(table)]
        if self._config.read_style == ReadStyle.CRITERIA:
            declarations.append(self.generate_get_by_criteria(table))
        else:
            for subset in capped_key_combinations(
                table.key_columns,
                self._config.max_combination_columns,
                f"Key set of {table.qualified_name}",
            ):
                declarations.append(self.generate_get_by(table, subset))
        return declarations

    def generate_get_all(self, table: Table) -> Declaration:
        name: str = get_all_name(table)
        w: CodeWriter = CodeWriter()
        with w.block(f"export async function {name}(): Promise<{table.class_name}[]> {{"):
            with self._client_session(w):
                self._emit_query(
                    w,
                    align_keywords([("SELECT", "*"), ("FROM", qualified_table(table.schema_name, table.name))]),
                )
                w.line("const result = await client.query(query);")
                w.line(f"return result.rows.map({_helper_prefix(table)}FromRow);")
        return Declaration("function", name, w.lines)

    def generate_get_by(self, table: Table, columns: Sequence[Column]) -> Declaration:
        """``get<Plural>By<A>And<B>(a, b)``: every parameter must be present."""
        name: str = get_by_name(table, columns)
        predicates: List[str] = self._key_predicates(columns)
        clauses: List[Tuple[str, str]] = [
            ("SELECT", "*"),
            ("FROM", qualified_table(table.schema_name, table.name)),
            ("WHERE", predicates[0]),
        ] + [("AND", p) for p in predicates[1:]]

        w: CodeWriter = CodeWriter()
        with w.block(
            f"export async function {name}({self._param_list(columns, key_types=True)}): "
            f"Promise<{table.class_name}[]> {{"
        ):
            condition: str = " || ".join(f"{ts_identifier(c.name)} === undefined" for c in columns)
            with w.block(f"if ({condition}) {{"):
                w.line(f"throw new Error({json.dumps(MISSING_PARAMETERS_MESSAGE)});")
            with self._client_session(w):
                self._emit_query(w, align_keywords(clauses))
                args: str = ", ".join(ts_identifier(c.name) for c in columns)
                w.line(f"const result = await client.query(query, [{args}]);")
                w.line(f"return result.rows.map({_helper_prefix(table)}FromRow);")
        return Declaration("function", name, w.lines)

    def generate_get_by_criteria(self, table: Table) -> Declaration:
        """``get<Plural>(criteria)``: predicate built from the fields present."""
        name: str = get_by_criteria_name(table)
        prefix: str = _helper_prefix(table)
        aligned: List[str] = align_keywords([
            ("SELECT", "*"),
            ("FROM", qualified_table(table.schema_name, table.name)),
            ("WHERE", ""),
            ("AND", ""),
        ])

        w: CodeWriter = CodeWriter()
        with w.block(
            f"export async function {name}(criteria: {table.class_name}Criteria = {{}}): "
            f"Promise<{table.class_name}[]> {{"
        ):
            w.line("const values: unknown[] = [];")
            w.line(f"const clauses = {prefix}WhereClauses(criteria, values);")
            with w.block("const lines = [", "];"):
                w.line(f"{json.dumps(aligned[0])},")
                w.line(f"{json.dumps(aligned[1])},")
            with w.block("if (clauses.length > 0) {"):
                w.line(
                    f"lines.push({json.dumps(aligned[2] + ' ')} + "
                    f"clauses.join({json.dumps(chr(10) + aligned[3] + ' ')}));"
                )
            with self._client_session(w):
                w.line('const result = await client.query(lines.join("\\n"), values);')
                w.line(f"return result.rows.map({prefix}FromRow);")
        return Declaration("function", name, w.lines)

    # ===================================================================
    # 5. Inserts
    # ===================================================================

    def generate_inserts(self, table: Table, model: SchemaModel) -> List[Declaration]:
        subsets: List[Tuple[Column, ...]] = [()]
        subsets.extend(
            capped_key_combinations(
                table.soft_default_columns,
                self._config.max_combination_columns,
                f"Soft-default set of {table.qualified_name}",
            )
        )
        return [self.generate_insert(table, subset, model) for subset in subsets]

    def generate_insert(self, table: Table, supplied_defaults: Sequence[Column], model: SchemaModel) -> Declaration:
        """
        ``add<Class>[With<Defaults>](...)``: required columns plus the chosen
        soft defaults, in ordinal order. The value object is rebuilt from the
        returned row, so hard defaults are filled in too.
        """
        name: str = insert_name(table, supplied_defaults)
        supplied: List[str] = [c.name for c in table.required_columns]
        supplied.extend(c.name for c in supplied_defaults)
        params: List[Column] = [c for c in table.columns if c.name in supplied]
        target: str = qualified_table(table.schema_name, table.name)

        if params:
            column_list: str = ", ".join(sql_identifier(c.name) for c in params)
            placeholders: str = ", ".join(f"${i}{cast_literal(c.native_type)}" for i, c in enumerate(params, start=1))
            clauses: List[Tuple[str, str]] = [
                ("INSERT INTO", f"{target} ({column_list})"),
                ("VALUES", f"({placeholders})"),
                ("RETURNING", "*"),
            ]
        else:
            clauses = [("INSERT INTO", target), ("DEFAULT VALUES", ""), ("RETURNING", "*")]

        w: CodeWriter = CodeWriter()
        with w.block(
            f"export async function {name}({self._param_list(params)}): "
            f"Promise<{table.class_name}> {{"
        ):
            self._emit_missing_check(w, params)
            imports: List[ImportRequest] = self._emit_fk_checks(
                w,
                table,
                model,
                [(c, ts_identifier(c.name), c.is_nullable) for c in params if c.is_foreign],
            )
            with self._client_session(w):
                self._emit_query(w, align_keywords(clauses))
                if params:
                    w.line(f"const result = await client.query(query, [{self._value_list(params)}]);")
                else:
                    w.line("const result = await client.query(query);")
                w.line(f"return {_helper_prefix(table)}FromRow(result.rows[0]);")
        return Declaration("function", name, w.lines, imports)

    # ===================================================================
    # 6. Updates
    # ===================================================================

    def generate_updates(self, table: Table, model: SchemaModel) -> List[Declaration]:
        if self._config.read_style == ReadStyle.CRITERIA:
            return [self.generate_update_by_criteria(table, model)]
        return [
            self.generate_update_by(table, subset, model)
            for subset in capped_key_combinations(
                table.key_columns,
                self._config.max_combination_columns,
                f"Key set of {table.qualified_name}",
            )
        ]

    def _change_checks(self, table: Table) -> List[Tuple[Column, str, bool]]:
        hard: List[str] = [c.name for c in table.hard_default_columns]
        return [
            (c, ts_member("changes", c.name), True)
            for c in table.foreign_key_columns
            if c.name not in hard
        ]

    def _update_keywords(self) -> List[str]:
        return align_keywords([("UPDATE", ""), ("SET", ""), ("WHERE", ""), ("AND", ""), ("RETURNING", "")])

    def generate_update_by(self, table: Table, columns: Sequence[Column], model: SchemaModel) -> Declaration:
        """
        ``update<Plural>By<Keys>(keys..., changes)``: key values bind first as
        ``$1..$k``; only supplied change fields enter the SET clause.
        """
        name: str = update_by_name(table, columns)
        prefix: str = _helper_prefix(table)
        update_kw, set_kw, where_kw, and_kw, returning_kw = self._update_keywords()
        predicates: List[str] = self._key_predicates(columns)
        lines: List[str] = [
            f"{update_kw} {qualified_table(table.schema_name, table.name)}",
            "",
            f"{where_kw} {predicates[0]}",
        ] + [f"{and_kw} {p}" for p in predicates[1:]] + [f"{returning_kw} *"]
        set_expression: str = (
            f"{json.dumps(set_kw + ' ')} + assignments.join({json.dumps(',' + chr(10) + ' ' * (len(set_kw) + 1))})"
        )

        w: CodeWriter = CodeWriter()
        with w.block(
            f"export async function {name}({self._param_list(columns, key_types=True)}, "
            f"changes: {table.class_name}Changes): Promise<{table.class_name}[]> {{"
        ):
            condition: str = " || ".join(f"{ts_identifier(c.name)} === undefined" for c in columns)
            with w.block(f"if ({condition}) {{"):
                w.line(f"throw new Error({json.dumps(MISSING_PARAMETERS_MESSAGE)});")
            imports: List[ImportRequest] = self._emit_fk_checks(w, table, model, self._change_checks(table))
            keys: str = ", ".join(ts_identifier(c.name) for c in columns)
            w.line(f"const values: unknown[] = [{keys}];")
            w.line(f"const assignments = {prefix}Assignments(changes, values);")
            with w.block("if (assignments.length === 0) {"):
                w.line('throw new Error("No changes supplied");')
            with self._client_session(w):
                self._emit_query(w, lines, [(1, set_expression)])
                w.line("const result = await client.query(query, values);")
                w.line(f"return result.rows.map({prefix}FromRow);")
        return Declaration("function", name, w.lines, imports)

    def generate_update_by_criteria(self, table: Table, model: SchemaModel) -> Declaration:
        """``update<Plural>(criteria, changes)``; empty criteria are rejected."""
        name: str = update_by_criteria_name(table)
        prefix: str = _helper_prefix(table)
        update_kw, set_kw, where_kw, and_kw, returning_kw = self._update_keywords()
        lines: List[str] = [
            f"{update_kw} {qualified_table(table.schema_name, table.name)}",
            "",
            "",
            f"{returning_kw} *",
        ]
        set_expression: str = (
            f"{json.dumps(set_kw + ' ')} + assignments.join({json.dumps(',' + chr(10) + ' ' * (len(set_kw) + 1))})"
        )
        where_expression: str = (
            f"{json.dumps(where_kw + ' ')} + clauses.join({json.dumps(chr(10) + and_kw + ' ')})"
        )

        w: CodeWriter = CodeWriter()
        with w.block(
            f"export async function {name}(criteria: {table.class_name}Criteria, "
            f"changes: {table.class_name}Changes): Promise<{table.class_name}[]> {{"
        ):
            imports: List[ImportRequest] = self._emit_fk_checks(w, table, model, self._change_checks(table))
            w.line("const values: unknown[] = [];")
            w.line(f"const assignments = {prefix}Assignments(changes, values);")
            with w.block("if (assignments.length === 0) {"):
                w.line('throw new Error("No changes supplied");')
            w.line(f"const clauses = {prefix}WhereClauses(criteria, values);")
            with w.block("if (clauses.length === 0) {"):
                w.line('throw new Error("Refusing to update without criteria");')
            with self._client_session(w):
                self._emit_query(w, lines, [(1, set_expression), (2, where_expression)])
                w.line("const result = await client.query(query, values);")
                w.line(f"return result.rows.map({prefix}FromRow);")
        return Declaration("function", name, w.lines, imports)

    # ===================================================================
    # 7. Delete
    # ===================================================================

    def generate_delete(self, table: Table) -> Declaration:
        """``delete<Plural>(criteria)`` returning the deleted rows."""
        name: str = delete_name(table)
        prefix: str = _helper_prefix(table)
        delete_kw, where_kw, and_kw, returning_kw = align_keywords(
            [("DELETE FROM", ""), ("WHERE", ""), ("AND", ""), ("RETURNING", "")]
        )
        lines: List[str] = [
            f"{delete_kw} {qualified_table(table.schema_name, table.name)}",
            "",
            f"{returning_kw} *",
        ]
        where_expression: str = (
            f"{json.dumps(where_kw + ' ')} + clauses.join({json.dumps(chr(10) + and_kw + ' ')})"
        )

        w: CodeWriter = CodeWriter()
        with w.block(
            f"export async function {name}(criteria: {table.class_name}Criteria): "
            f"Promise<{table.class_name}[]> {{"
        ):
            w.line("const values: unknown[] = [];")
            w.line(f"const clauses = {prefix}WhereClauses(criteria, values);")
            with w.block("if (clauses.length === 0) {"):
                w.line('throw new Error("Refusing to delete without criteria");')
            with self._client_session(w):
                self._emit_query(w, lines, [(1, where_expression)])
                w.line("const result = await client.query(query, values);")
                w.line(f"return result.rows.map({prefix}FromRow);")
        return Declaration("function", name, w.lines)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "MISSING_PARAMETERS_MESSAGE",
    "SynthesisError",
    "column_suffix",
    "get_all_name",
    "get_by_name",
    "get_by_criteria_name",
    "insert_name",
    "update_by_name",
    "update_by_criteria_name",
    "delete_name",
    "render_default_literal",
    "TemplateGenerator",
]

logger.debug("crudgen.templates loaded with %d public symbols.", len(__all__))
