# File: crudgen/erd.py
"""
crudgen - pgAdmin ERD Reader
=============================
Builds a ``SchemaModel`` from a pgAdmin ERD file without a database
connection. Each diagram node is turned into catalog-shaped rows and fed
through the same ``assemble_table`` path as live introspection, so both
sources produce identical models for identical schemas.

ERD files carry no enum definitions; user-defined column types are kept
as ``USER-DEFINED`` and surface as named types.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from crudgen.introspect import assemble_table
from crudgen.models import SchemaModel, Table
from crudgen.typemap import ARRAY_DATA_TYPE, USER_DEFINED_DATA_TYPE, canonical_native

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.erd")

NODES_LAYER_TYPE: str = "diagram-nodes"

_SERIAL_TYPES: Dict[str, str] = {
    "smallserial": "smallint",
    "serial": "integer",
    "bigserial": "bigint",
}

# "(schema) table" or plain "table"
_REFERENCE_RE: re.Pattern[str] = re.compile(r"^\s*(?:\((?P<schema>[^)]*)\))?\s*(?P<table>.+?)\s*$")


class ErdFormatError(ValueError):
    """Raised when a file is not a readable pgAdmin ERD document."""


# ---------------------------------------------------------------------------
# Document traversal
# ---------------------------------------------------------------------------


def _iter_node_layers(obj: Any) -> Iterator[Dict[str, Any]]:
    if isinstance(obj, dict):
        if obj.get("type") == NODES_LAYER_TYPE and isinstance(obj.get("models"), dict):
            yield obj
            return
        for value in obj.values():
            yield from _iter_node_layers(value)
    elif isinstance(obj, list):
        for value in obj:
            yield from _iter_node_layers(value)


def extract_nodes(document: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Return the ``otherInfo.data`` payload of every diagram node."""
    if not isinstance(document, dict) or "version" not in document:
        raise ErdFormatError("The file is not a pgAdmin ERD file (no 'version' key).")
    nodes: List[Dict[str, Any]] = []
    for layer in _iter_node_layers(document):
        for model in layer["models"].values():
            data: Any = (model.get("otherInfo") or {}).get("data")
            if not isinstance(data, dict):
                raise ErdFormatError(f"Diagram node {model.get('id')!r} has no table data.")
            nodes.append(data)
    return nodes


# ---------------------------------------------------------------------------
# Node -> catalog rows
# ---------------------------------------------------------------------------


def _column_types(cltype: str) -> Tuple[str, str]:
    """``(data_type, udt_name)`` for an ERD column type string."""
    raw: str = cltype.strip()
    if raw.endswith("[]"):
        element: str = raw[:-2].strip()
        return ARRAY_DATA_TYPE, "_" + (canonical_native(element) or element)
    canonical: Optional[str] = canonical_native(raw)
    if canonical is None:
        return USER_DEFINED_DATA_TYPE, raw
    base: str = raw.split("(")[0].strip().lower()
    return _SERIAL_TYPES.get(base, base), canonical


def _identity_generation(column: Dict[str, Any]) -> Optional[str]:
    code: Any = column.get("attidentity")
    if code == "a":
        return "ALWAYS"
    if code == "b":
        return "BY DEFAULT"
    return None


def node_to_table(data: Dict[str, Any]) -> Table:
    """Convert one ERD node payload into a ``Table``."""
    try:
        schema_name: str = data["schema"]
        table_name: str = data["name"]
        erd_columns: List[Dict[str, Any]] = data.get("columns") or []
    except (KeyError, TypeError) as exc:
        raise ErdFormatError(f"Malformed ERD table node: {exc}") from exc

    column_rows: List[Dict[str, Any]] = []
    for position, column in enumerate(erd_columns, start=1):
        name: str = column["name"]
        cltype: str = str(column.get("cltype") or "text")
        data_type, udt_name = _column_types(cltype)
        default: Optional[str] = column.get("defval") or None
        if cltype.strip().lower() in _SERIAL_TYPES:
            default = f"nextval('{table_name}_{name}_seq'::regclass)"
        is_identity: bool = column.get("colconstype") == "i"
        column_rows.append({
            "column_name": name,
            "ordinal_position": position,
            "column_default": default,
            "is_nullable": "NO" if column.get("attnotnull") else "YES",
            "data_type": data_type,
            "udt_name": udt_name,
            "is_identity": "YES" if is_identity else "NO",
            "identity_generation": _identity_generation(column) if is_identity else None,
        })

    primary: List[str] = [
        entry["column"]
        for constraint in data.get("primary_key") or []
        for entry in constraint.get("columns") or []
    ]

    foreign_rows: List[Dict[str, Any]] = []
    for constraint in data.get("foreign_key") or []:
        for entry in constraint.get("columns") or []:
            match: Optional[re.Match[str]] = _REFERENCE_RE.match(entry.get("references_table_name", ""))
            if match is None or not entry.get("local_column"):
                raise ErdFormatError(f"Malformed foreign key on {schema_name}.{table_name}: {entry!r}")
            foreign_rows.append({
                "column_name": entry["local_column"],
                "foreign_schema": match.group("schema") or schema_name,
                "foreign_table": match.group("table"),
                "foreign_column": entry["referenced"],
            })

    unique: List[str] = [
        entry["column"]
        for constraint in data.get("unique_constraint") or []
        for entry in constraint.get("columns") or []
    ]

    return assemble_table(schema_name, table_name, column_rows, primary, foreign_rows, unique)


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def parse_erd(content: Union[str, bytes]) -> SchemaModel:
    """Parse ERD file content into a ``SchemaModel``."""
    try:
        document: Any = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ErdFormatError(f"The ERD file is not valid JSON: {exc}") from exc

    try:
        tables: List[Table] = [node_to_table(node) for node in extract_nodes(document)]
    except KeyError as exc:
        raise ErdFormatError(f"Malformed ERD document, missing key {exc}") from exc

    model: SchemaModel = SchemaModel(tables=tables, enums=[])
    logger.info("Parsed ERD: %r", model)
    return model


def load_erd_file(path: Union[str, Path]) -> SchemaModel:
    """Read and parse a pgAdmin ERD file."""
    file_path: Path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"ERD file not found: {file_path}")
    return parse_erd(file_path.read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "NODES_LAYER_TYPE",
    "ErdFormatError",
    "extract_nodes",
    "node_to_table",
    "parse_erd",
    "load_erd_file",
]

logger.debug("crudgen.erd loaded with %d public symbols.", len(__all__))
