# File: crudgen/generator.py
"""
crudgen - Generation Pipeline (Orchestrator)
=============================================

Connects every phase together:

    Schema source -> Validation -> Synthesis -> Import resolution -> Export

The ``AccessorGenerator`` class provides both a programmatic API and the
backend for the CLI.

Workflow::

    1. Refuse early when the output directory exists and overwriting is off.
    2. Build the ``SchemaModel`` from the database, a snapshot file or a
       pgAdmin ERD file.
    3. Run the validation pipeline (validators.py).
    4. Feed each table to ``TemplateGenerator`` (templates.py).
    5. Hand the units to ``UnitExporter`` (exporters.py).
    6. Return a ``GenerationReport`` with metrics and an exit code.

Error handling strategy:
    - Detected failures (no tables, catalog errors, malformed input,
      validation errors, existing output) end the run with exit code 1
      and nothing written.
    - I/O errors while writing propagate to the caller.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.engine import Engine

from crudgen.erd import ErdFormatError, load_erd_file
from crudgen.exporters import ExportManifest, ExportResult, UnitExporter
from crudgen.introspect import CatalogError, ModelBuildResult, SchemaIntrospector, build_schema_model
from crudgen.ir import GeneratedUnit
from crudgen.models import DatabaseConfig, EnumType, GenerationConfig, SchemaModel
from crudgen.templates import SynthesisError, TemplateGenerator
from crudgen.utils import Timer
from crudgen.validators import ValidationResult, validate_full

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.generator")

EXIT_OK: int = 0
EXIT_FAILED: int = 1

_YAML_SUFFIXES = (".yaml", ".yml")


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """
    Report produced by every ``AccessorGenerator.generate*`` call.

    ``exit_code`` is 0 on success and 1 for any detected failure; the CLI
    reserves 2 for unexpected exceptions.
    """

    success: bool = False
    source: str = ""
    output_directory: str = ""

    total_tables: int = 0
    total_files: int = 0
    total_bytes: int = 0
    total_lines: int = 0
    total_elapsed_seconds: float = 0.0

    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)
    generation_errors: List[str] = field(default_factory=list)
    export_errors: List[str] = field(default_factory=list)

    manifest: Optional[ExportManifest] = None

    @property
    def exit_code(self) -> int:
        return EXIT_OK if self.success else EXIT_FAILED

    @property
    def errors(self) -> List[str]:
        return self.validation_errors + self.generation_errors + self.export_errors

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "SUCCESS" if self.success else "FAILED"
        lines.append("=" * 60)
        lines.append("  crudgen - Generation Report")
        lines.append("=" * 60)
        lines.append(f"  Status:           {status}")
        lines.append(f"  Source:           {self.source}")
        lines.append(f"  Output:           {self.output_directory}")
        lines.append(f"  Tables:           {self.total_tables}")
        lines.append(f"  Files written:    {self.total_files}")
        lines.append(f"  Total lines:      {self.total_lines:,}")
        lines.append(f"  Total bytes:      {self.total_bytes:,}")
        lines.append(f"  Total time:       {self.total_elapsed_seconds:.3f}s")
        lines.append("-" * 60)

        if self.step_metrics:
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                mark: str = "ok" if step.success else "!!"
                lines.append(
                    f"    [{mark}] {step.step_name:<24s} "
                    f"{step.elapsed_seconds:>7.3f}s  {step.detail}"
                )

        sections = (
            ("Validation Errors", self.validation_errors),
            ("Validation Warnings", self.validation_warnings),
            ("Generation Errors", self.generation_errors),
            ("Export Errors", self.export_errors),
        )
        for title, items in sections:
            if items:
                lines.append("-" * 60)
                lines.append(f"  {title} ({len(items)}):")
                for item in items:
                    lines.append(f"    - {item}")

        lines.append("=" * 60)
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Snapshot helpers
# ---------------------------------------------------------------------------


def _read_structured(path: Path) -> Any:
    text: str = path.read_text(encoding="utf-8")
    if path.suffix.lower() in _YAML_SUFFIXES:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc


def load_schema_file(path: Union[str, Path]) -> SchemaModel:
    """
    Load a schema snapshot (JSON, or YAML for ``.yaml`` / ``.yml``).

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed or isn't a valid model.
    """
    file_path: Path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Snapshot file not found: {file_path}")
    if not file_path.is_file():
        raise ValueError(f"Snapshot path is not a file: {file_path}")

    raw: Any = _read_structured(file_path)
    if not isinstance(raw, dict):
        raise ValueError(
            f"Expected a mapping at top level of {file_path}, got {type(raw).__name__}."
        )
    try:
        model: SchemaModel = SchemaModel.model_validate(raw)
    except PydanticValidationError as exc:
        raise ValueError(f"Invalid schema snapshot {file_path}: {exc}") from exc

    logger.info("Loaded snapshot %s: %r", file_path, model)
    return model


def dump_model(model: SchemaModel, path: Union[str, Path]) -> Path:
    """Write *model* as a snapshot that ``load_schema_file`` reads back."""
    file_path: Path = Path(path)
    data: Dict[str, Any] = model.model_dump(mode="json")
    if file_path.suffix.lower() in _YAML_SUFFIXES:
        content: str = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    else:
        content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(content, encoding="utf-8")
    logger.info("Wrote model snapshot to %s", file_path)
    return file_path


# ---------------------------------------------------------------------------
# AccessorGenerator
# ---------------------------------------------------------------------------


class AccessorGenerator:
    """
    Orchestrates one generation run.

    Usage::

        generator = AccessorGenerator(GenerationConfig(output_dir="out"), DatabaseConfig())
        report = generator.generate_from_database()
        sys.exit(report.exit_code)

    The generator is reusable; each ``generate*`` call builds a fresh report.
    """

    def __init__(
        self,
        config: Optional[GenerationConfig] = None,
        database: Optional[DatabaseConfig] = None,
    ) -> None:
        self._config: GenerationConfig = config or GenerationConfig()
        self._database: DatabaseConfig = database or DatabaseConfig()
        self._templates: TemplateGenerator = TemplateGenerator(self._config, self._database)
        logger.debug(
            "AccessorGenerator initialised: output=%s, overwrite=%s.",
            self._config.output_dir,
            self._config.overwrite_existing,
        )

    @property
    def config(self) -> GenerationConfig:
        return self._config

    def _exporter(self) -> UnitExporter:
        return UnitExporter(Path(self._config.output_dir), overwrite=self._config.overwrite_existing)

    # -----------------------------------------------------------------
    # Public: synthesis only
    # -----------------------------------------------------------------

    def synthesize(self, model: SchemaModel) -> List[GeneratedUnit]:
        """One unit per table, in model order. Nothing is written."""
        return [self._templates.generate_unit(table, model) for table in model.tables]

    # -----------------------------------------------------------------
    # Public: entry points per schema source
    # -----------------------------------------------------------------

    def generate(self, model: SchemaModel, *, source: str = "model") -> GenerationReport:
        """Full pipeline from an in-memory model."""
        return self._run(lambda: model, source)

    def generate_from_database(
        self,
        engine: Optional[Engine] = None,
        *,
        dump_to: Optional[Union[str, Path]] = None,
    ) -> GenerationReport:
        def build() -> SchemaModel:
            result: ModelBuildResult = build_schema_model(self._database, engine=engine)
            if not result.success or result.model is None:
                raise ValueError(result.error or "Catalog introspection failed.")
            return result.model

        return self._run(build, "database", dump_to)

    def generate_from_snapshot(
        self,
        path: Union[str, Path],
        *,
        dump_to: Optional[Union[str, Path]] = None,
    ) -> GenerationReport:
        return self._run(lambda: load_schema_file(path), f"snapshot {path}", dump_to)

    def generate_from_erd(
        self,
        path: Union[str, Path],
        *,
        offline: bool = False,
        engine: Optional[Engine] = None,
        dump_to: Optional[Union[str, Path]] = None,
    ) -> GenerationReport:
        """
        Tables come from the ERD file. Unless *offline*, enum types are
        fetched from the database since ERD files do not carry them.
        """

        def build() -> SchemaModel:
            model: SchemaModel = load_erd_file(path)
            if offline:
                return model
            enums: List[EnumType] = SchemaIntrospector(self._database, engine=engine).fetch_enums()
            return SchemaModel(tables=model.tables, enums=enums)

        return self._run(build, f"erd {path}", dump_to)

    # -----------------------------------------------------------------
    # Internal: master pipeline
    # -----------------------------------------------------------------

    def _run(
        self,
        build: Callable[[], SchemaModel],
        source: str,
        dump_to: Optional[Union[str, Path]] = None,
    ) -> GenerationReport:
        """
        With *dump_to* the built model is written as a snapshot and the run
        stops there; no accessor modules are generated.
        """
        pipeline_start: float = time.perf_counter()
        exporter: UnitExporter = self._exporter()
        report: GenerationReport = GenerationReport(
            source=source, output_directory=str(exporter.output_dir)
        )

        if dump_to is not None:
            dumped: Optional[SchemaModel] = self._step_build(build, source, report)
            if dumped is not None:
                with Timer("dump_model") as t:
                    target: Path = dump_model(dumped, dump_to)
                report.output_directory = str(target.parent.resolve())
                report.step_metrics.append(GenerationStepMetric(
                    step_name="Dump Model",
                    success=True,
                    elapsed_seconds=t.elapsed,
                    detail=str(target),
                ))
            return self._finalise_report(report, pipeline_start)

        precondition: List[str] = exporter.check_target()
        if precondition:
            for message in precondition:
                logger.error(message)
            report.export_errors.extend(precondition)
            return self._finalise_report(report, pipeline_start)

        model: Optional[SchemaModel] = self._step_build(build, source, report)
        if model is None:
            return self._finalise_report(report, pipeline_start)

        if not self._step_validate(model, report):
            return self._finalise_report(report, pipeline_start)

        units: List[GeneratedUnit] = self._step_synthesize(model, report)
        if report.generation_errors:
            return self._finalise_report(report, pipeline_start)

        self._step_export(exporter, units, report)
        return self._finalise_report(report, pipeline_start)

    def _step_build(
        self,
        build: Callable[[], SchemaModel],
        source: str,
        report: GenerationReport,
    ) -> Optional[SchemaModel]:
        t: Timer = Timer("build_model")
        try:
            with t:
                model: SchemaModel = build()
        except (FileNotFoundError, ErdFormatError, CatalogError, ValueError) as exc:
            logger.error("Could not build schema model from %s: %s", source, exc)
            report.generation_errors.append(str(exc))
            report.step_metrics.append(GenerationStepMetric(
                step_name="Build Model",
                success=False,
                elapsed_seconds=t.elapsed,
                detail=str(exc),
            ))
            return None

        report.total_tables = model.table_count
        report.step_metrics.append(GenerationStepMetric(
            step_name="Build Model",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{model.table_count} tables, {len(model.enums)} enums",
        ))
        return model

    def _step_validate(self, model: SchemaModel, report: GenerationReport) -> bool:
        with Timer("validation") as t:
            result: ValidationResult = validate_full(model, self._config)

        report.validation_errors.extend(str(e) for e in result.errors)
        report.validation_warnings.extend(str(w) for w in result.warnings)
        report.step_metrics.append(GenerationStepMetric(
            step_name="Validation",
            success=result.is_valid,
            elapsed_seconds=t.elapsed,
            detail=result.summary(),
        ))
        return result.is_valid

    def _step_synthesize(self, model: SchemaModel, report: GenerationReport) -> List[GeneratedUnit]:
        units: List[GeneratedUnit] = []
        with Timer("synthesis") as t:
            for table in model.tables:
                try:
                    units.append(self._templates.generate_unit(table, model))
                except SynthesisError as exc:
                    message: str = f"{table.qualified_name}: {exc}"
                    logger.error("Synthesis failed for %s", message)
                    report.generation_errors.append(message)

        report.step_metrics.append(GenerationStepMetric(
            step_name="Synthesis",
            success=not report.generation_errors,
            elapsed_seconds=t.elapsed,
            detail=f"{len(units)} units",
        ))
        logger.info("Synthesised %d units in %.3fs.", len(units), t.elapsed)
        return units

    def _step_export(
        self,
        exporter: UnitExporter,
        units: List[GeneratedUnit],
        report: GenerationReport,
    ) -> None:
        export_result: ExportResult = exporter.export(units)
        report.manifest = export_result.manifest
        report.export_errors.extend(export_result.errors)
        report.total_files = export_result.manifest.total_files
        report.total_bytes = export_result.manifest.total_bytes
        report.total_lines = export_result.manifest.total_lines
        report.step_metrics.append(GenerationStepMetric(
            step_name="Export",
            success=export_result.success,
            elapsed_seconds=export_result.elapsed_seconds,
            detail=f"{report.total_files} files",
        ))

    # -----------------------------------------------------------------
    # Internal: finalise report
    # -----------------------------------------------------------------

    def _finalise_report(self, report: GenerationReport, pipeline_start: float) -> GenerationReport:
        report.total_elapsed_seconds = time.perf_counter() - pipeline_start
        report.success = not report.errors
        if report.success:
            logger.info("Generation finished: %d files from %s.", report.total_files, report.source)
        else:
            logger.error("Generation failed with %d error(s).", len(report.errors))
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "EXIT_OK",
    "EXIT_FAILED",
    "AccessorGenerator",
    "GenerationReport",
    "GenerationStepMetric",
    "load_schema_file",
    "dump_model",
]

logger.debug("crudgen.generator loaded.")
