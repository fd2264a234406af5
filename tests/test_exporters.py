"""
tests/test_exporters.py
Unit tests for crudgen.exporters (UnitExporter).

All tests write into pytest's ``tmp_path``.
"""

from __future__ import annotations

import json
import pathlib
from typing import List
from unittest import mock

import pytest

from crudgen.exporters import ExportResult, UnitExporter
from crudgen.ir import Declaration, GeneratedUnit
from crudgen.utils import sha256_hex


def _unit(table_name: str, schema_name: str = "public") -> GeneratedUnit:
    unit = GeneratedUnit(schema_name=schema_name, table_name=table_name)
    unit.add(Declaration("comment", "banner", [(0, f"// {table_name}")]))
    return unit


@pytest.fixture()
def units() -> List[GeneratedUnit]:
    return [_unit("users"), _unit("orders"), _unit("events", "audit")]


def _leftovers(parent: pathlib.Path) -> List[str]:
    return sorted(p.name for p in parent.iterdir() if p.name.endswith(".tmp"))


class TestExport:
    def test_writes_one_file_per_unit(self, output_dir: pathlib.Path, units: List[GeneratedUnit]) -> None:
        result: ExportResult = UnitExporter(output_dir).export(units)
        assert result.success
        assert (output_dir / "public" / "users.ts").is_file()
        assert (output_dir / "public" / "orders.ts").is_file()
        assert (output_dir / "audit" / "events.ts").is_file()
        content = (output_dir / "public" / "users.ts").read_text(encoding="utf-8")
        assert content == units[0].render()

    def test_manifest(self, output_dir: pathlib.Path, units: List[GeneratedUnit]) -> None:
        manifest = UnitExporter(output_dir).export(units).manifest
        assert manifest.total_files == 3
        assert [f.relative_path for f in manifest.files] == ["public/users.ts", "public/orders.ts", "audit/events.ts"]
        assert manifest.files[0].sha256 == sha256_hex(units[0].render())
        assert manifest.total_bytes == sum(f.size_bytes for f in manifest.files)
        assert json.loads(manifest.to_json())["total_files"] == 3

    def test_no_staging_left_behind(self, output_dir: pathlib.Path, units: List[GeneratedUnit]) -> None:
        UnitExporter(output_dir).export(units)
        assert _leftovers(output_dir.parent) == []

    def test_empty_unit_list_creates_directory(self, output_dir: pathlib.Path) -> None:
        result = UnitExporter(output_dir).export([])
        assert result.success
        assert output_dir.is_dir()
        assert list(output_dir.iterdir()) == []


class TestExistingOutput:
    def test_refused_without_overwrite(self, output_dir: pathlib.Path, units: List[GeneratedUnit]) -> None:
        output_dir.mkdir()
        marker = output_dir / "keep.txt"
        marker.write_text("mine", encoding="utf-8")
        result = UnitExporter(output_dir).export(units)
        assert not result.success
        assert "--force" in result.errors[0]
        assert marker.read_text(encoding="utf-8") == "mine"
        assert not (output_dir / "public").exists()

    def test_replaced_with_overwrite(self, output_dir: pathlib.Path, units: List[GeneratedUnit]) -> None:
        output_dir.mkdir()
        (output_dir / "stale.ts").write_text("old", encoding="utf-8")
        result = UnitExporter(output_dir, overwrite=True).export(units)
        assert result.success
        assert not (output_dir / "stale.ts").exists()
        assert (output_dir / "public" / "users.ts").is_file()

    def test_file_in_the_way(self, output_dir: pathlib.Path) -> None:
        output_dir.write_text("not a directory", encoding="utf-8")
        assert UnitExporter(output_dir, overwrite=True).check_target() != []


class TestFailedWrite:
    def test_staging_removed_and_error_raised(self, output_dir: pathlib.Path, units: List[GeneratedUnit]) -> None:
        with mock.patch("crudgen.exporters.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                UnitExporter(output_dir).export(units)
        assert not output_dir.exists()
        assert _leftovers(output_dir.parent) == []

    def test_previous_output_untouched(self, output_dir: pathlib.Path, units: List[GeneratedUnit]) -> None:
        output_dir.mkdir()
        (output_dir / "old.ts").write_text("old", encoding="utf-8")
        with mock.patch.object(UnitExporter, "_write_unit", side_effect=OSError("boom")):
            with pytest.raises(OSError):
                UnitExporter(output_dir, overwrite=True).export(units)
        assert (output_dir / "old.ts").read_text(encoding="utf-8") == "old"
        assert _leftovers(output_dir.parent) == []
