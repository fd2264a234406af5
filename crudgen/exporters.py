# File: crudgen/exporters.py
"""
crudgen - Unit Exporter (File-System Manager)
==============================================

Responsible for:
    1. Refusing to touch an existing output directory unless overwriting
       was requested.
    2. Writing every generated unit to ``<output>/<schema>/<table>.ts``.
    3. Producing an in-memory manifest with checksums.

Writes are all-or-nothing: units are staged in a temporary sibling
directory which is moved into place only after every file was written.
A failed write removes the staging directory and re-raises, leaving the
previous output (if any) untouched.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

from crudgen.ir import GeneratedUnit
from crudgen.utils import Timer, count_lines, sha256_hex

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.exporters")


# ---------------------------------------------------------------------------
# Data classes for export results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Immutable record of a single exported file."""

    relative_path: str
    size_bytes: int
    line_count: int
    sha256: str


@dataclass(frozen=False, slots=True)
class ExportManifest:
    """Every file written by one export, with checksums."""

    output_directory: str = ""
    total_files: int = 0
    total_bytes: int = 0
    total_lines: int = 0
    files: List[FileRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output_directory": self.output_directory,
            "total_files": self.total_files,
            "total_bytes": self.total_bytes,
            "total_lines": self.total_lines,
            "files": [
                {
                    "relative_path": f.relative_path,
                    "size_bytes": f.size_bytes,
                    "line_count": f.line_count,
                    "sha256": f.sha256,
                }
                for f in self.files
            ],
        }

    def to_json(self, indent_size: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent_size, ensure_ascii=False)


@dataclass(frozen=True, slots=True)
class ExportResult:
    """Final result returned by ``UnitExporter.export()``."""

    success: bool
    manifest: ExportManifest
    errors: Tuple[str, ...]
    elapsed_seconds: float


# ---------------------------------------------------------------------------
# UnitExporter class
# ---------------------------------------------------------------------------


class UnitExporter:
    """
    Writes generated units below one output directory.

    Usage::

        exporter = UnitExporter(Path("./generated"), overwrite=False)
        result = exporter.export(units)

    Precondition failures (output exists, overwrite off) are reported in the
    result; I/O errors during the write propagate to the caller.
    """

    def __init__(self, output_dir: Path, *, overwrite: bool = False) -> None:
        self._output_dir: Path = Path(output_dir).resolve()
        self._overwrite: bool = overwrite
        logger.debug(
            "UnitExporter initialised: output_dir=%s, overwrite=%s.",
            self._output_dir,
            self._overwrite,
        )

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def check_target(self) -> List[str]:
        """Errors that forbid writing to the output directory."""
        if self._output_dir.exists() and not self._overwrite:
            return [
                f"Output directory {self._output_dir} already exists; "
                f"use --force to replace it."
            ]
        if self._output_dir.exists() and not self._output_dir.is_dir():
            return [f"Output path {self._output_dir} exists and is not a directory."]
        return []

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def export(self, units: Sequence[GeneratedUnit]) -> ExportResult:
        with Timer("export") as timer:
            errors: List[str] = self.check_target()
            records: List[FileRecord] = []
            if not errors:
                records = self._write_all(units)

        manifest: ExportManifest = self._build_manifest(records)
        if errors:
            for message in errors:
                logger.error(message)
        else:
            logger.info(
                "Export completed: %d files, %d bytes, %.3fs.",
                manifest.total_files,
                manifest.total_bytes,
                timer.elapsed,
            )
        return ExportResult(
            success=not errors,
            manifest=manifest,
            errors=tuple(errors),
            elapsed_seconds=timer.elapsed,
        )

    # -----------------------------------------------------------------
    # Internal: staging & file writing
    # -----------------------------------------------------------------

    def _write_all(self, units: Sequence[GeneratedUnit]) -> List[FileRecord]:
        parent: Path = self._output_dir.parent
        parent.mkdir(parents=True, exist_ok=True)
        staging: Path = Path(
            tempfile.mkdtemp(dir=str(parent), prefix=f".{self._output_dir.name}.", suffix=".tmp")
        )
        try:
            records: List[FileRecord] = [self._write_unit(staging, unit) for unit in units]
            if self._output_dir.exists():
                logger.info("Replacing existing output directory %s", self._output_dir)
                shutil.rmtree(self._output_dir)
            os.replace(staging, self._output_dir)
        except OSError:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        return records

    @staticmethod
    def _write_unit(root: Path, unit: GeneratedUnit) -> FileRecord:
        content: str = unit.render()
        target: Path = root / unit.relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        encoded: bytes = content.encode("utf-8")
        target.write_bytes(encoded)
        logger.debug("Staged %s (%d bytes).", unit.relative_path, len(encoded))
        return FileRecord(
            relative_path=unit.relative_path,
            size_bytes=len(encoded),
            line_count=count_lines(content),
            sha256=sha256_hex(content),
        )

    # -----------------------------------------------------------------
    # Internal: manifest
    # -----------------------------------------------------------------

    def _build_manifest(self, records: List[FileRecord]) -> ExportManifest:
        return ExportManifest(
            output_directory=str(self._output_dir),
            total_files=len(records),
            total_bytes=sum(r.size_bytes for r in records),
            total_lines=sum(r.line_count for r in records),
            files=list(records),
        )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "UnitExporter",
    "ExportManifest",
    "ExportResult",
    "FileRecord",
]

logger.debug("crudgen.exporters loaded.")
