# File: crudgen/__init__.py
"""
crudgen - Typed CRUD Accessor Generator for PostgreSQL
=======================================================

Reads a PostgreSQL schema (live catalog, pgAdmin ERD file or a JSON/YAML
snapshot) and writes one TypeScript module per table: a typed value class
plus async node-postgres accessors to read, insert, update and delete rows.

Architecture overview::

    cli.py -> generator.py (AccessorGenerator)
                  |-- introspect.py / erd.py   schema model builders
                  |-- validators.py            cross-entity checks
                  |-- templates.py             synthesis engine
                  |       |-- typemap.py       native <-> TypeScript types
                  |       `-- ir.py            declarations, imports, printer
                  `-- exporters.py             all-or-nothing writer

Usage::

    # As a library
    from crudgen import AccessorGenerator, DatabaseConfig, GenerationConfig
    gen = AccessorGenerator(GenerationConfig(output_dir="out"), DatabaseConfig())
    report = gen.generate_from_database()

    # From the command line
    crudgen --output ./generated --force
"""

from __future__ import annotations

__version__: str = "0.1.0"

from crudgen.models import (
    Column,
    DatabaseConfig,
    DefaultClass,
    EnumType,
    GenerationConfig,
    IdentityGeneration,
    ReadStyle,
    SchemaModel,
    Table,
)
from crudgen.introspect import CatalogError, SchemaIntrospector, build_schema_model
from crudgen.erd import ErdFormatError, parse_erd, load_erd_file
from crudgen.validators import validate_full, ValidationResult
from crudgen.ir import GeneratedUnit, resolve_imports
from crudgen.templates import TemplateGenerator
from crudgen.exporters import UnitExporter, ExportManifest, ExportResult
from crudgen.generator import AccessorGenerator, GenerationReport, dump_model, load_schema_file

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    "__version__",
    # Core orchestrator
    "AccessorGenerator",
    "GenerationReport",
    "load_schema_file",
    "dump_model",
    # Models
    "Column",
    "DatabaseConfig",
    "DefaultClass",
    "EnumType",
    "GenerationConfig",
    "IdentityGeneration",
    "ReadStyle",
    "SchemaModel",
    "Table",
    # Schema sources
    "CatalogError",
    "SchemaIntrospector",
    "build_schema_model",
    "ErdFormatError",
    "parse_erd",
    "load_erd_file",
    # Validation
    "validate_full",
    "ValidationResult",
    # Synthesis
    "GeneratedUnit",
    "resolve_imports",
    "TemplateGenerator",
    # Export
    "UnitExporter",
    "ExportManifest",
    "ExportResult",
]
